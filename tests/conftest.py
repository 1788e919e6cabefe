"""Shared fixtures: a recording HTTP session and ready-made sessions/principals."""

import time
from collections import deque

import jwt
import pytest

from unasys_crm.backend import BackendClient
from unasys_crm.config import settings
from unasys_crm.models import AuthSession
from unasys_crm.principal import Principal
from unasys_crm.session_store import SessionStore

BASE_URL = "https://project.example.co"
ANON_KEY = "anon-key"
JWT_SECRET = "unit-test-signing-secret-0123456789abcdef"


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, json_data=None, headers=None, text=None):
        self.status_code = status_code
        self._json = json_data
        self.headers = headers or {}
        if json_data is not None:
            self.text = repr(json_data)
        else:
            self.text = text or ""
        self.content = self.text.encode("utf-8")

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


class FakeHttp:
    """Records every request and answers from a queue of responses."""

    def __init__(self):
        self.calls = []
        self.responses = deque()

    def queue(self, *responses):
        self.responses.extend(responses)

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "params": list(params) if isinstance(params, list) else params,
                "json": json,
                "headers": dict(headers or {}),
                "timeout": timeout,
            }
        )
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = self.responses.popleft()
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def last(self):
        return self.calls[-1]


def make_token(user_id="user-1", email="ana@example.com", expires_in=3600):
    claims = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def token_payload(user_id="user-1", email="ana@example.com", expires_in=3600,
                  refresh_token="refresh-1"):
    """Body of a successful /token answer."""
    return {
        "access_token": make_token(user_id, email, expires_in),
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "expires_in": expires_in,
        "user": {"id": user_id, "email": email, "user_metadata": {"name": "Ana"}},
    }


def make_session(user_id="user-1", email="ana@example.com", expires_in=3600,
                 refresh_token="refresh-1") -> AuthSession:
    payload = token_payload(user_id, email, expires_in, refresh_token)
    payload["expires_at"] = int(time.time()) + expires_in
    return AuthSession.model_validate(payload)


def company_row(company_id="c1", name="Acme"):
    return {"id": company_id, "name": name, "email": f"{company_id}@example.com"}


def profile_row(company_id="c1", name="Acme", role="admin", user_id="user-1",
                permissions=None):
    return {
        "id": f"p-{company_id}",
        "user_id": user_id,
        "company_id": company_id,
        "role": role,
        "permissions": permissions,
        "is_active": True,
        "company": company_row(company_id, name),
    }


@pytest.fixture(autouse=True)
def _unsigned_tokens(monkeypatch):
    """Tokens are decoded without signature check unless a test opts in."""
    monkeypatch.setattr(settings, "JWT_SECRET", None)


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def backend(http):
    return BackendClient(BASE_URL, ANON_KEY, http=http)


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path)


@pytest.fixture
def principal():
    return Principal(
        user_id="user-1",
        email="ana@example.com",
        company_id="c1",
        role="admin",
    )


@pytest.fixture
def viewer():
    return Principal(
        user_id="user-2",
        email="vic@example.com",
        company_id="c1",
        role="viewer",
    )
