import pytest

from conftest import FakeResponse, make_session, profile_row, token_payload
from unasys_crm.context import build_context
from unasys_crm.exceptions import (
    CompanyLoadError,
    CompanyNotFoundError,
    NoCompanySelectedError,
    NotAuthenticatedError,
)


def signed_in_context(backend, store, http, *profile_responses):
    """Build a context whose stored session triggers the company lookup."""
    store.save_session(make_session())
    http.queue(*profile_responses)
    return build_context(backend=backend, store=store)


class TestFetchCompanies:
    def test_profiles_query(self, backend, store, http):
        signed_in_context(backend, store, http, FakeResponse(200, [profile_row()]))

        call = http.last
        assert call["url"].endswith("/rest/v1/profiles")
        assert call["params"] == [
            ("select", "*,company:companies(*)"),
            ("user_id", "eq.user-1"),
            ("is_active", "eq.true"),
        ]

    def test_first_company_is_selected_and_remembered(self, backend, store, http):
        ctx = signed_in_context(
            backend, store, http,
            FakeResponse(200, [profile_row("c1", "Acme"), profile_row("c2", "Beta")]),
        )

        assert [c.id for c in ctx.company.companies] == ["c1", "c2"]
        assert ctx.company.current_company.name == "Acme"
        assert ctx.company.loading is False
        assert store.get_current_company_id() == "c1"

    def test_remembered_company_wins(self, backend, store, http):
        store.set_current_company_id("c2")

        ctx = signed_in_context(
            backend, store, http,
            FakeResponse(200, [profile_row("c1", "Acme"), profile_row("c2", "Beta")]),
        )

        assert ctx.company.current_company.id == "c2"

    def test_stale_remembered_company_falls_back_to_first(self, backend, store, http):
        store.set_current_company_id("gone")

        ctx = signed_in_context(backend, store, http, FakeResponse(200, [profile_row("c1")]))

        assert ctx.company.current_company.id == "c1"
        assert store.get_current_company_id() == "c1"

    def test_no_profiles(self, backend, store, http):
        ctx = signed_in_context(backend, store, http, FakeResponse(200, []))

        assert ctx.company.companies == []
        assert ctx.company.current_company is None
        with pytest.raises(NoCompanySelectedError):
            ctx.principal()

    def test_signed_out_context_is_empty(self, backend, store, http):
        ctx = build_context(backend=backend, store=store)

        assert ctx.company.companies == []
        assert ctx.company.loading is False
        assert http.calls == []
        with pytest.raises(NotAuthenticatedError):
            ctx.principal()


class TestDemoFallback:
    def test_profile_error_attaches_demo_company(self, backend, store, http):
        ctx = signed_in_context(
            backend, store, http,
            FakeResponse(500, {"message": "permission denied for table profiles"}),
            FakeResponse(200, [{"id": "demo-co"}]),
            FakeResponse(201),
            FakeResponse(200, [profile_row("demo-co", "Demo")]),
        )

        lookup, insert = http.calls[1], http.calls[2]
        assert lookup["url"].endswith("/rest/v1/companies")
        assert ("email", "eq.demo@unasyscrm.com.br") in lookup["params"]
        assert insert["method"] == "POST"
        assert insert["json"][0]["company_id"] == "demo-co"
        assert insert["json"][0]["role"] == "admin"
        assert insert["json"][0]["user_id"] == "user-1"
        assert ctx.company.current_company.name == "Demo"

    def test_missing_demo_company_raises(self, backend, store, http):
        ctx = signed_in_context(backend, store, http, FakeResponse(200, []))
        http.queue(
            FakeResponse(500, {"message": "boom"}),
            FakeResponse(200, []),
        )

        with pytest.raises(CompanyLoadError):
            ctx.company.fetch_companies()
        assert ctx.company.loading is False


class TestSelection:
    def test_switch_company(self, backend, store, http):
        ctx = signed_in_context(
            backend, store, http,
            FakeResponse(200, [profile_row("c1", "Acme"), profile_row("c2", "Beta", role="viewer")]),
        )

        company = ctx.company.switch_company("c2")

        assert company.name == "Beta"
        assert store.get_current_company_id() == "c2"
        assert ctx.principal().company_id == "c2"
        assert ctx.principal().role == "viewer"

    def test_switch_to_unknown_company(self, backend, store, http):
        ctx = signed_in_context(backend, store, http, FakeResponse(200, [profile_row("c1")]))

        with pytest.raises(CompanyNotFoundError):
            ctx.company.switch_company("c9")
        assert ctx.company.current_company.id == "c1"

    def test_principal_carries_profile_permissions(self, backend, store, http):
        overrides = {"clients": {"delete": False}}
        ctx = signed_in_context(
            backend, store, http,
            FakeResponse(200, [profile_row("c1", role="manager", permissions=overrides)]),
        )

        principal = ctx.principal()

        assert principal.user_id == "user-1"
        assert principal.role == "manager"
        assert principal.permissions == overrides


class TestAuthFollowing:
    def test_sign_in_loads_companies(self, backend, store, http):
        ctx = build_context(backend=backend, store=store)
        http.queue(FakeResponse(200, token_payload()), FakeResponse(200, [profile_row("c1")]))

        ctx.auth.sign_in("ana@example.com", "secret123")

        assert ctx.company.current_company.id == "c1"

    def test_sign_out_clears_companies(self, backend, store, http):
        ctx = signed_in_context(backend, store, http, FakeResponse(200, [profile_row("c1")]))
        http.queue(FakeResponse(204))

        ctx.auth.sign_out()

        assert ctx.company.companies == []
        assert ctx.company.current_company is None

    def test_token_refresh_does_not_reload(self, backend, store, http):
        ctx = signed_in_context(backend, store, http, FakeResponse(200, [profile_row("c1")]))
        http.queue(FakeResponse(200, token_payload(refresh_token="refresh-2")))

        ctx.auth.refresh_session()

        assert len(http.calls) == 2
        assert http.last["url"].endswith("/auth/v1/token")

    def test_failed_load_for_new_user_drops_previous_company(self, backend, store, http):
        ctx = signed_in_context(backend, store, http, FakeResponse(200, [profile_row("c1")]))
        http.queue(
            FakeResponse(200, token_payload(user_id="user-2", email="bob@example.com")),
            FakeResponse(500, {"message": "boom"}),
            FakeResponse(200, []),
        )

        ctx.auth.sign_in("bob@example.com", "secret123")

        assert ctx.company.current_company is None
        assert ctx.company.companies == []
        assert ctx.company.profiles == []
        with pytest.raises(NoCompanySelectedError):
            ctx.principal()
