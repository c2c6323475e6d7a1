from __future__ import annotations

import itertools
from types import SimpleNamespace
from typing import Any

import pytest
from fastapi.testclient import TestClient
from supabase import AuthApiError, PostgrestAPIError

from tenxcards.config import Settings
from tenxcards.database import get_supabase
from tenxcards.main import create_app
from tenxcards.rate_limit import build_rate_limiters
from tenxcards.services.flashcard_generator import MockFlashcardGenerator

USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"
USER_TOKEN = "user-token"
OTHER_TOKEN = "other-token"

_TIMESTAMP = "2024-01-01T00:00:00+00:00"


def no_rows_error() -> PostgrestAPIError:
    return PostgrestAPIError(
        {
            "message": "JSON object requested, multiple (or no) rows returned",
            "code": "PGRST116",
            "hint": None,
            "details": "The result contains 0 rows",
        }
    )


class _Query:
    """Chainable stand-in for a PostgREST request builder over in-memory rows."""

    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self._db = db
        self._table = table
        self._action = "select"
        self._payload: Any = None
        self._filters: list = []
        self._order: tuple[str, bool] | None = None
        self._range: tuple[int, int] | None = None
        self._single = False
        self._count = False

    def select(self, _columns: str = "*", count: str | None = None) -> "_Query":
        self._count = count == "exact"
        return self

    def insert(self, payload: Any) -> "_Query":
        self._action = "insert"
        self._payload = payload
        return self

    def update(self, values: dict) -> "_Query":
        self._action = "update"
        self._payload = values
        return self

    def delete(self) -> "_Query":
        self._action = "delete"
        return self

    def eq(self, column: str, value: Any) -> "_Query":
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values: list) -> "_Query":
        self._filters.append(lambda row: row.get(column) in values)
        return self

    def or_(self, expression: str) -> "_Query":
        clauses = []
        for part in expression.split(","):
            column, _op, pattern = part.split(".", 2)
            clauses.append((column, pattern.strip("%").lower()))
        self._filters.append(
            lambda row: any(term in str(row.get(column) or "").lower() for column, term in clauses)
        )
        return self

    def order(self, column: str, desc: bool = False) -> "_Query":
        self._order = (column, desc)
        return self

    def range(self, start: int, end: int) -> "_Query":
        self._range = (start, end)
        return self

    def single(self) -> "_Query":
        self._single = True
        return self

    def _matches(self, row: dict) -> bool:
        return all(check(row) for check in self._filters)

    async def execute(self) -> SimpleNamespace:
        failure = self._db.failures.get((self._table, self._action))
        if failure is not None:
            raise failure
        self._db.operations.append((self._table, self._action, self._payload))
        rows = self._db.tables.setdefault(self._table, [])

        if self._action == "insert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = [self._db.add_row(self._table, dict(item)) for item in payload]
            return SimpleNamespace(data=[dict(row) for row in inserted], count=None)

        matched = [row for row in rows if self._matches(row)]
        if self._action == "update":
            for row in matched:
                row.update(self._payload)
                row["updated_at"] = _TIMESTAMP
            return SimpleNamespace(data=[dict(row) for row in matched], count=None)
        if self._action == "delete":
            self._db.tables[self._table] = [row for row in rows if not self._matches(row)]
            return SimpleNamespace(data=[dict(row) for row in matched], count=None)

        if self._single:
            if len(matched) != 1:
                raise no_rows_error()
            return SimpleNamespace(data=dict(matched[0]), count=None)
        if self._order is not None:
            column, desc = self._order
            matched.sort(key=lambda row: str(row.get(column) or ""), reverse=desc)
        total = len(matched)
        if self._range is not None:
            start, end = self._range
            matched = matched[start : end + 1]
        return SimpleNamespace(data=[dict(row) for row in matched], count=total if self._count else None)


class FakeAuth:
    """Records calls; ``errors[name]`` makes the named call raise."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.errors: dict[str, Exception] = {}
        self.tokens = {
            USER_TOKEN: SimpleNamespace(id=USER_ID, email="user@example.com"),
            OTHER_TOKEN: SimpleNamespace(id=OTHER_USER_ID, email="other@example.com"),
        }
        self.sign_up_session = True
        self.admin = SimpleNamespace(sign_out=self._admin_sign_out)

    def _record(self, name: str, payload: Any) -> None:
        self.calls.append((name, payload))
        if name in self.errors:
            raise self.errors[name]

    @staticmethod
    def session() -> SimpleNamespace:
        return SimpleNamespace(access_token="access-123", refresh_token="refresh-456", expires_in=3600)

    async def get_user(self, token: str) -> SimpleNamespace:
        self._record("get_user", token)
        user = self.tokens.get(token)
        if user is None:
            raise AuthApiError("invalid JWT: unable to parse or verify signature", 401, "bad_jwt")
        return SimpleNamespace(user=user)

    async def sign_in_with_password(self, credentials: dict) -> SimpleNamespace:
        self._record("sign_in_with_password", credentials)
        user = SimpleNamespace(id=USER_ID, email=credentials["email"])
        return SimpleNamespace(user=user, session=self.session())

    async def sign_up(self, credentials: dict) -> SimpleNamespace:
        self._record("sign_up", credentials)
        user = SimpleNamespace(id=USER_ID, email=credentials["email"])
        return SimpleNamespace(user=user, session=self.session() if self.sign_up_session else None)

    async def reset_password_for_email(self, email: str, options: dict) -> None:
        self._record("reset_password_for_email", (email, options))

    async def set_session(self, access_token: str, refresh_token: str) -> SimpleNamespace:
        self._record("set_session", (access_token, refresh_token))
        return SimpleNamespace(user=self.tokens.get(access_token), session=self.session())

    async def update_user(self, attributes: dict) -> SimpleNamespace:
        self._record("update_user", attributes)
        return SimpleNamespace(user=SimpleNamespace(id=USER_ID, email="user@example.com"))

    async def verify_otp(self, params: dict) -> SimpleNamespace:
        self._record("verify_otp", params)
        user = SimpleNamespace(id=USER_ID, email=params["email"])
        return SimpleNamespace(user=user, session=self.session())

    async def resend(self, params: dict) -> None:
        self._record("resend", params)

    async def exchange_code_for_session(self, params: dict) -> SimpleNamespace:
        self._record("exchange_code_for_session", params)
        return SimpleNamespace(user=SimpleNamespace(id=USER_ID), session=self.session())

    async def _admin_sign_out(self, jwt: str, scope: str = "global") -> None:
        self._record("admin.sign_out", jwt)

    async def close(self) -> None:
        self.calls.append(("close", None))


class FakeSupabase:
    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.failures: dict[tuple[str, str], Exception] = {}
        self.operations: list[tuple[str, str, Any]] = []
        self.auth = FakeAuth()
        self.postgrest = SimpleNamespace(auth=self._scope_to, aclose=self._close_postgrest)
        self.scoped_token: str | None = None
        self.closed: list[str] = []
        self._ids = itertools.count(1)

    def _scope_to(self, token: str) -> None:
        self.scoped_token = token

    async def _close_postgrest(self) -> None:
        self.closed.append("postgrest")

    def table(self, name: str) -> _Query:
        return _Query(self, name)

    def add_row(self, table: str, row: dict) -> dict:
        row.setdefault("id", next(self._ids))
        row.setdefault("created_at", _TIMESTAMP)
        row.setdefault("updated_at", _TIMESTAMP)
        self.tables.setdefault(table, []).append(row)
        return row

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])

    def row(self, table: str, row_id: int) -> dict | None:
        return next((row for row in self.rows(table) if row["id"] == row_id), None)


def make_settings(**overrides: Any) -> Settings:
    values = {
        "ENV": "development",
        "ENV_NAME": "local",
        "AI_PROVIDER": "mock",
        "RATE_LIMIT_BACKEND": "memory",
        "PUBLIC_SITE_URL": "https://app.example.com",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def make_client(fake_db: FakeSupabase):
    """Build a TestClient over a fresh app; keyword args override settings."""

    def _make(generator: Any = None, clock: Any = None, override_db: bool = True, **overrides: Any) -> TestClient:
        config = make_settings(**overrides)
        app = create_app(
            config,
            rate_limiters=build_rate_limiters(config, clock=clock),
            flashcard_generator=generator or MockFlashcardGenerator(),
        )
        if override_db:
            app.dependency_overrides[get_supabase] = lambda: fake_db
        return TestClient(app, raise_server_exceptions=False)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {USER_TOKEN}"}


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def other_user_id() -> str:
    return OTHER_USER_ID
