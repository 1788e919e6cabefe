import pytest
import requests

from conftest import ANON_KEY, BASE_URL, FakeResponse
from unasys_crm.backend import get_backend, reset_backend
from unasys_crm.config import settings
from unasys_crm.exceptions import (
    BackendError,
    BackendUnavailableError,
    ConfigurationError,
    NoRowsError,
    is_retriable_error,
)


class TestBackendClient:
    def test_anon_key_is_used_until_a_user_token_is_set(self, backend, http):
        http.queue(FakeResponse(200, []), FakeResponse(200, []))

        backend.table("clients").select().execute()
        assert http.last["headers"]["apikey"] == ANON_KEY
        assert http.last["headers"]["Authorization"] == f"Bearer {ANON_KEY}"

        backend.set_auth("user-token")
        backend.table("clients").select().execute()
        assert http.last["headers"]["Authorization"] == "Bearer user-token"

    def test_network_failure_raises_unavailable(self, backend, http):
        http.queue(requests.ConnectionError("connection refused"))

        with pytest.raises(BackendUnavailableError):
            backend.request("GET", "/rest/v1/clients")

    def test_error_body_is_mapped(self, backend, http):
        http.queue(FakeResponse(400, {"message": "bad filter", "code": "PGRST100",
                                      "hint": "check the column"}))

        with pytest.raises(BackendError) as exc_info:
            backend.request("GET", "/rest/v1/clients")

        err = exc_info.value
        assert err.status == 400
        assert err.backend_code == "PGRST100"
        assert err.hint == "check the column"
        assert err.message == "bad filter"

    def test_error_without_json_uses_text(self, backend, http):
        http.queue(FakeResponse(502, text="Bad Gateway"))

        with pytest.raises(BackendError) as exc_info:
            backend.request("GET", "/rest/v1/clients")
        assert exc_info.value.message == "Bad Gateway"
        assert exc_info.value.status == 502


class TestQueryBuilder:
    def test_select_with_filters_and_order(self, backend, http):
        http.queue(FakeResponse(200, [{"id": "1"}]))

        result = (
            backend.table("clients")
            .select("*")
            .eq("company_id", "c1")
            .order("created_at", ascending=False)
            .limit(10)
            .execute()
        )

        assert result.data == [{"id": "1"}]
        call = http.last
        assert call["method"] == "GET"
        assert call["url"] == f"{BASE_URL}/rest/v1/clients"
        assert call["params"] == [
            ("select", "*"),
            ("company_id", "eq.c1"),
            ("order", "created_at.desc"),
            ("limit", "10"),
        ]

    def test_multiline_columns_are_compacted(self, backend, http):
        http.queue(FakeResponse(200, []))

        backend.table("profiles").select("""
            *,
            company:companies(*)
        """).execute()

        assert http.last["params"][0] == ("select", "*,company:companies(*)")

    def test_filter_value_formatting(self, backend, http):
        http.queue(FakeResponse(200, []))

        (
            backend.table("tasks")
            .select()
            .eq("is_active", True)
            .eq("assigned_to", None)
            .neq("status", "done")
            .in_("status", ["todo", "in_progress", "a,b"])
            .gte("due_date", "2025-01-01")
            .ilike("title", "%call%")
            .execute()
        )

        params = http.last["params"]
        assert ("is_active", "eq.true") in params
        assert ("assigned_to", "is.null") in params
        assert ("status", "neq.done") in params
        assert ("status", 'in.(todo,in_progress,"a,b")') in params
        assert ("due_date", "gte.2025-01-01") in params
        assert ("title", "ilike.%call%") in params

    def test_insert_sends_a_list_and_returns_single_row(self, backend, http):
        http.queue(FakeResponse(201, [{"id": "new"}]))

        result = backend.table("clients").insert({"name": "Ana"}).single().execute()

        call = http.last
        assert call["method"] == "POST"
        assert call["json"] == [{"name": "Ana"}]
        assert call["headers"]["Prefer"] == "return=representation"
        assert result.data == {"id": "new"}

    def test_insert_minimal_returns_no_data(self, backend, http):
        http.queue(FakeResponse(201))

        result = backend.table("profiles").insert({"x": 1}, returning=False).execute()

        assert http.last["headers"]["Prefer"] == "return=minimal"
        assert result.data is None

    def test_update_without_filter_is_refused(self, backend, http):
        with pytest.raises(ValueError):
            backend.table("clients").update({"name": "x"}).execute()
        assert http.calls == []

    def test_update_uses_patch(self, backend, http):
        http.queue(FakeResponse(200, [{"id": "1", "name": "x"}]))

        backend.table("clients").update({"name": "x"}).eq("id", "1").execute()

        assert http.last["method"] == "PATCH"
        assert http.last["json"] == {"name": "x"}
        assert http.last["params"] == [("id", "eq.1")]

    def test_single_without_rows_raises_no_rows(self, backend, http):
        http.queue(FakeResponse(406, {"code": "PGRST116",
                                      "message": "JSON object requested, multiple (or no) rows returned"}))

        with pytest.raises(NoRowsError):
            backend.table("clients").select().eq("id", "missing").single().execute()
        assert http.last["headers"]["Accept"] == "application/vnd.pgrst.object+json"

    def test_maybe_single_returns_none_for_empty_list(self, backend, http):
        http.queue(FakeResponse(200, []))

        result = backend.table("companies").select("id").maybe_single().execute()

        assert result.data is None

    def test_count_uses_head_and_content_range(self, backend, http):
        http.queue(FakeResponse(200, headers={"Content-Range": "*/42"}))

        total = backend.table("clients").eq("company_id", "c1").count()

        call = http.last
        assert total == 42
        assert call["method"] == "HEAD"
        assert call["headers"]["Prefer"] == "count=exact"
        assert ("select", "*") in call["params"]

    def test_count_without_header_is_zero(self, backend, http):
        http.queue(FakeResponse(200))

        assert backend.table("clients").count() == 0


class TestSharedClient:
    def test_missing_settings_raise(self, monkeypatch):
        monkeypatch.setattr(settings, "SUPABASE_URL", "")
        monkeypatch.setattr(settings, "SUPABASE_ANON_KEY", "")
        reset_backend()

        with pytest.raises(ConfigurationError) as exc_info:
            get_backend()
        assert exc_info.value.missing == ["UNASYS_SUPABASE_URL", "UNASYS_SUPABASE_ANON_KEY"]

    def test_client_is_shared(self, monkeypatch):
        monkeypatch.setattr(settings, "SUPABASE_URL", BASE_URL + "/")
        monkeypatch.setattr(settings, "SUPABASE_ANON_KEY", ANON_KEY)
        reset_backend()

        first = get_backend()
        assert get_backend() is first
        assert first.url == BASE_URL
        reset_backend()


@pytest.mark.parametrize("exc, expected", [
    (BackendUnavailableError("offline"), True),
    (BackendError("boom", status=503), True),
    (BackendError("bad filter", status=400), False),
    (NoRowsError("clients"), False),
    (ConfigurationError(["X"]), False),
    (OSError("Connection reset by peer"), True),
])
def test_is_retriable_error(exc, expected):
    assert is_retriable_error(exc) is expected
