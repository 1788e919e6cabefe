import pytest
from typer.testing import CliRunner

from conftest import FakeResponse, make_session, profile_row, token_payload
from unasys_crm import cli
from unasys_crm.context import build_context

runner = CliRunner()


@pytest.fixture
def anonymous(monkeypatch, backend, store):
    ctx = build_context(backend=backend, store=store)
    monkeypatch.setattr(cli, "_context", ctx)
    return ctx


@pytest.fixture
def signed_in(monkeypatch, backend, store, http):
    store.save_session(make_session())
    http.queue(FakeResponse(200, [profile_row("c1", "Acme")]))
    ctx = build_context(backend=backend, store=store)
    monkeypatch.setattr(cli, "_context", ctx)
    return ctx


def test_whoami_signed_out(anonymous):
    result = runner.invoke(cli.app, ["whoami"])

    assert result.exit_code == 0
    assert "Non connecté" in result.output


def test_protected_command_requires_login(anonymous):
    result = runner.invoke(cli.app, ["clients", "list"])

    assert result.exit_code == 1
    assert "Non connecté" in result.output


def test_login(anonymous, http):
    http.queue(FakeResponse(200, token_payload()), FakeResponse(200, [profile_row("c1", "Acme")]))

    result = runner.invoke(
        cli.app, ["login", "--email", "ana@example.com", "--password", "secret123"]
    )

    assert result.exit_code == 0
    assert "ana@example.com" in result.output
    assert "Acme" in result.output


def test_login_invalid_credentials(anonymous, http):
    http.queue(FakeResponse(400, {"error_description": "Invalid login credentials"}))

    result = runner.invoke(
        cli.app, ["login", "--email", "ana@example.com", "--password", "nope"]
    )

    assert result.exit_code == 1
    assert "incorrect" in result.output


def test_whoami_signed_in(signed_in):
    result = runner.invoke(cli.app, ["whoami"])

    assert result.exit_code == 0
    assert "Acme" in result.output
    assert "admin" in result.output


def test_create_client_with_invalid_json(signed_in, http):
    result = runner.invoke(cli.app, ["clients", "create", "{name: nope"])

    assert result.exit_code == 1
    assert "JSON invalide pour client" in result.output
    assert len(http.calls) == 1


def test_create_client(signed_in, http):
    http.queue(FakeResponse(201, [{"id": "cl-1", "company_id": "c1", "name": "Maria"}]))

    result = runner.invoke(cli.app, ["clients", "create", '{"name": "Maria"}'])

    assert result.exit_code == 0
    assert "cl-1" in result.output
    assert http.last["json"][0]["company_id"] == "c1"


def test_validation_error_is_reported(signed_in, http):
    result = runner.invoke(cli.app, ["clients", "create", '{"name": "M"}'])

    assert result.exit_code == 1
    assert "validation" in result.output


def test_switch_to_unknown_company(signed_in):
    result = runner.invoke(cli.app, ["companies", "switch", "c9"])

    assert result.exit_code == 1
    assert "c9" in result.output


def test_read_all_messages(signed_in, http):
    http.queue(FakeResponse(200, [{"id": "m-1", "user_id": "user-1", "company_id": "c1",
                                   "title": "t", "message": "m", "is_read": True}]))

    result = runner.invoke(cli.app, ["messages", "read-all"])

    assert result.exit_code == 0
    assert "1 message" in result.output


def test_logout(signed_in, http):
    http.queue(FakeResponse(204))

    result = runner.invoke(cli.app, ["logout"])

    assert result.exit_code == 0
    assert signed_in.auth.session is None
