"""
Shared fixtures: in-memory stand-ins for both external boundaries.

No test talks to Supabase. The fakes implement the same abstract
interfaces as the real adapters and raise the same exceptions.
"""

import asyncio
import copy
import itertools
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Optional

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings
from finance_tracker.models.audit import AuditEvent, AuditEventType
from finance_tracker.models.auth import (
    AuthEventType,
    AuthPayload,
    AuthSession,
    Identity,
    OtpPurpose,
)
from finance_tracker.services.identity import IdentityProviderInterface, ProviderError
from finance_tracker.services.storage import (
    DuplicateError,
    NotFoundError,
    Row,
    TableStorageInterface,
)


# =============================================================================
# STORAGE
# =============================================================================

class InMemoryTableStorage(TableStorageInterface):
    """
    Table storage kept in dicts.

    Every call yields to the event loop first, so concurrent callers
    interleave the way they would against a remote database.
    """

    UNIQUE_KEYS = {
        "profiles": [("id",)],
        "budgets": [("id",), ("user_id", "mois")],
    }

    def __init__(self):
        self.tables: dict[str, list[Row]] = defaultdict(list)
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[tuple[str, str], list[Exception]] = defaultdict(list)
        self._ids = itertools.count(1)
        self._clock = datetime(2024, 1, 1, 8, 0, 0)

    def seed(self, table: str, *rows: Row) -> None:
        for row in rows:
            self.tables[table].append(self._stamp(dict(row)))

    def fail(self, operation: str, table: str, error: Exception, times: int = 1) -> None:
        """Make the next `times` calls of `operation` on `table` raise `error`."""
        self._failures[(operation, table)].extend([error] * times)

    def count(self, operation: str, table: str) -> int:
        return self.calls.count((operation, table))

    async def _enter(self, operation: str, table: str) -> None:
        await asyncio.sleep(0)
        self.calls.append((operation, table))
        pending = self._failures.get((operation, table))
        if pending:
            raise pending.pop(0)

    def _stamp(self, row: Row) -> Row:
        self._clock += timedelta(seconds=1)
        row.setdefault("id", f"row-{next(self._ids)}")
        row.setdefault("created_at", self._clock.isoformat())
        return row

    @staticmethod
    def _matches(row: Row, filters: Optional[dict[str, Any]]) -> bool:
        return all(row.get(column) == value for column, value in (filters or {}).items())

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        *,
        in_filters: Optional[dict[str, list[Any]]] = None,
        columns: str = "*",
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        await self._enter("select", table)
        rows = [
            row for row in self.tables[table]
            if self._matches(row, filters)
            and all(row.get(c) in values for c, values in (in_filters or {}).items())
        ]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by) or ""), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        if columns != "*":
            wanted = [c.strip() for c in columns.split(",")]
            rows = [{c: row.get(c) for c in wanted} for row in rows]
        return copy.deepcopy(rows)

    async def select_one(self, table: str, filters: dict[str, Any]) -> Row:
        rows = await self.select(table, filters, limit=1)
        if not rows:
            raise NotFoundError(f"No row in {table}")
        return rows[0]

    async def insert(self, table: str, rows: list[Row]) -> list[Row]:
        await self._enter("insert", table)
        new_rows = [self._stamp(dict(row)) for row in rows]
        for key in self.UNIQUE_KEYS.get(table, []):
            seen = {tuple(r.get(c) for c in key) for r in self.tables[table]}
            for row in new_rows:
                value = tuple(row.get(c) for c in key)
                if value in seen:
                    raise DuplicateError(f"duplicate key value violates unique constraint on {table}{key}")
                seen.add(value)
        self.tables[table].extend(new_rows)
        return copy.deepcopy(new_rows)

    async def update(self, table: str, values: Row, filters: dict[str, Any]) -> list[Row]:
        await self._enter("update", table)
        updated = []
        for row in self.tables[table]:
            if self._matches(row, filters):
                row.update(values)
                updated.append(copy.deepcopy(row))
        return updated

    async def delete(self, table: str, filters: dict[str, Any]) -> list[Row]:
        await self._enter("delete", table)
        kept, deleted = [], []
        for row in self.tables[table]:
            (deleted if self._matches(row, filters) else kept).append(row)
        self.tables[table] = kept
        return copy.deepcopy(deleted)


# =============================================================================
# IDENTITY PROVIDER
# =============================================================================

class FakeIdentityProvider(IdentityProviderInterface):
    """
    Identity provider with email confirmation switched on.

    Sign-up stores the account and its code (CODE); nothing is
    confirmed until verify_otp receives that code.
    """

    CODE = "123456"

    def __init__(self, require_confirmation: bool = True):
        self.require_confirmation = require_confirmation
        self.accounts: dict[str, dict[str, Any]] = {}
        self.codes: dict[str, str] = {}
        self.expired: set[str] = set()
        self.session: Optional[AuthSession] = None
        self.calls: list[str] = []
        self._listeners: list = []
        self._errors: dict[str, list[Exception]] = defaultdict(list)
        self._ids = itertools.count(1)

    def fail_next(self, method: str, error: Exception) -> None:
        self._errors[method].append(error)

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        if self._errors.get(method):
            raise self._errors[method].pop(0)

    def _identity(self, email: str) -> Identity:
        account = self.accounts[email]
        return Identity(id=account["id"], email=email, user_metadata=account["metadata"])

    async def _start_session(self, email: str) -> AuthSession:
        self.session = AuthSession(
            access_token=f"token-{email}",
            refresh_token="refresh",
            identity=self._identity(email),
        )
        await self.emit(AuthEventType.SIGNED_IN, self.session)
        return self.session

    async def emit(self, event: AuthEventType, session: Optional[AuthSession]) -> None:
        for listener in list(self._listeners):
            await listener(event, session)

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> AuthPayload:
        self._enter("sign_up")
        if email in self.accounts:
            raise ProviderError("User already registered", status=422, code="user_already_exists")
        self.accounts[email] = {
            "id": f"user-{next(self._ids)}",
            "password": password,
            "metadata": dict(metadata),
            "confirmed": not self.require_confirmation,
        }
        if self.require_confirmation:
            self.codes[email] = self.CODE
            return AuthPayload(identity=self._identity(email))
        return AuthPayload(identity=self._identity(email), session=await self._start_session(email))

    async def sign_in_with_password(self, email: str, password: str) -> AuthPayload:
        self._enter("sign_in_with_password")
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise ProviderError("Invalid login credentials", status=400, code="invalid_credentials")
        if not account["confirmed"]:
            raise ProviderError("Email not confirmed", status=400, code="email_not_confirmed")
        return AuthPayload(identity=self._identity(email), session=await self._start_session(email))

    async def verify_otp(self, email: str, token: str, purpose: OtpPurpose) -> AuthPayload:
        self._enter("verify_otp")
        if email in self.expired:
            raise ProviderError("Token has expired or is invalid", status=403, code="otp_expired")
        if email not in self.codes or self.codes[email] != token:
            raise ProviderError("Invalid OTP token", status=403)
        self.accounts[email]["confirmed"] = True
        del self.codes[email]
        return AuthPayload(identity=self._identity(email), session=await self._start_session(email))

    async def resend(self, email: str, purpose: OtpPurpose) -> None:
        self._enter("resend")
        self.codes[email] = self.CODE

    async def sign_out(self) -> None:
        self._enter("sign_out")
        self.session = None
        await self.emit(AuthEventType.SIGNED_OUT, None)

    async def get_session(self) -> Optional[AuthSession]:
        self._enter("get_session")
        return self.session

    async def get_user(self) -> Optional[Identity]:
        self._enter("get_user")
        return self.session.identity if self.session else None

    async def on_auth_state_change(self, listener):
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_session(user_id: str = "user-1", email: str = "alice@test.com", name: Optional[str] = "Alice") -> AuthSession:
    metadata = {"nom": name} if name else {}
    return AuthSession(
        access_token=f"token-{user_id}",
        identity=Identity(id=user_id, email=email, user_metadata=metadata),
    )


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def storage() -> InMemoryTableStorage:
    return InMemoryTableStorage()


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(
        default_country="Cameroun",
        default_currency="FCFA",
        default_display_name="User",
        otp_length=6,
        resend_cooldown_seconds=60,
        max_delta_attempts=5,
    )


class RecordingAuditLogger(AuditLogger):
    """Audit logger that also keeps every event it is given."""

    def __init__(self):
        super().__init__()
        self.events: list[AuditEvent] = []

    async def log(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return await super().log(event)

    def types(self) -> list[AuditEventType]:
        return [event.event_type for event in self.events]


@pytest.fixture
def audit() -> RecordingAuditLogger:
    return RecordingAuditLogger()
