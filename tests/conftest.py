"""
Shared fixtures: an in-memory stand-in for the Supabase query builder, a
token verifier that maps fixed bearer tokens to claims, and recording
doubles for the queue, email, completion and OAuth collaborators.
"""

import copy
import itertools
from typing import Any, Callable, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from app.core.dependencies import get_token_verifier
from app.core.errors import Unauthenticated
from app.core.rate_limit import limiter
from app.database.supabase_client import get_supabase, Tables
from app.main import app
from app.modules.auth.routes import get_oauth_client
from app.modules.circles.tags import TagConfigCache
from app.modules.invitations.mailer import get_email_sender
from app.modules.notifications.publisher import get_push_publisher
from app.modules.notifications.schemas import PublishResult
from app.modules.prompts.completion import get_completion_client

PRIMARY_KEYS = {
    Tables.CIRCLES: ("circle_id",),
    Tables.MEMBERSHIPS: ("user_id", "circle_id"),
    Tables.MESSAGES: ("message_id",),
    Tables.INVITATIONS: ("invitation_id",),
    Tables.TAG_CONFIG: ("tag_key",),
    Tables.SUBSCRIPTIONS: ("user_id", "subscription_id"),
}

USERS = {
    "alice-token": {"sub": "user-alice", "name": "Alice", "email": "alice@example.com"},
    "bob-token": {"sub": "user-bob", "email": "bob@example.com", "cognito:username": "bob"},
    "carol-token": {"sub": "user-carol", "name": "Carol", "email": "carol@example.com"},
}


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = None
        self.payload = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.order_by: List[tuple] = []
        self.row_limit = None

    def select(self, *args, **kwargs):
        self.op = self.op or "select"
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None, **kwargs):
        self.op, self.payload = "upsert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc: bool = False):
        self.order_by.append((column, desc))
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def _matching(self) -> List[Dict[str, Any]]:
        return [r for r in self.db.rows(self.table) if all(f(r) for f in self.filters)]

    def execute(self):
        self.db.calls.append((self.table, self.op))
        failure = self.db.failures.get((self.table, self.op))
        if failure is not None:
            raise failure
        rows = self.db.rows(self.table)
        if self.op == "select":
            result = self._matching()
            # Stable sorts applied last key first give multi-column ordering
            for column, desc in reversed(self.order_by):
                result = sorted(result, key=lambda r: r.get(column) or "", reverse=desc)
            if self.row_limit is not None:
                result = result[:self.row_limit]
            return FakeResponse(copy.deepcopy(result))
        if self.op in ("insert", "upsert"):
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            written = []
            for row in payload:
                existing = self.db.find_by_key(self.table, row)
                if existing is not None:
                    if self.op == "insert":
                        raise APIError({
                            "message": "duplicate key value violates unique constraint",
                            "code": "23505",
                            "hint": None,
                            "details": None,
                        })
                    existing.update(copy.deepcopy(row))
                    written.append(copy.deepcopy(existing))
                else:
                    rows.append(copy.deepcopy(row))
                    written.append(copy.deepcopy(row))
            return FakeResponse(written)
        if self.op == "update":
            updated = []
            for row in self._matching():
                row.update(copy.deepcopy(self.payload))
                updated.append(copy.deepcopy(row))
            return FakeResponse(updated)
        if self.op == "delete":
            removed = self._matching()
            self.db.tables[self.table] = [r for r in rows if r not in removed]
            return FakeResponse(copy.deepcopy(removed))
        raise AssertionError(f"unsupported operation {self.op}")


class FakeRpc:
    def __init__(self, handler, params):
        self.handler = handler
        self.params = params

    def execute(self):
        return FakeResponse(self.handler(self.params))


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[tuple, Exception] = {}
        self.calls: List[tuple] = []
        self.rpc_handlers = {"accept_circle_invitation": self._accept_circle_invitation}

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def find_by_key(self, table: str, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        key = PRIMARY_KEYS.get(table)
        if not key:
            return None
        for existing in self.rows(table):
            if all(existing.get(k) == row.get(k) for k in key):
                return existing
        return None

    def seed(self, table: str, *rows: Dict[str, Any]):
        for row in rows:
            self.rows(table).append(copy.deepcopy(row))

    def fail(self, table: str, op: str, exc: Exception):
        self.failures[(table, op)] = exc

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeRpc:
        return FakeRpc(self.rpc_handlers[name], params)

    def _accept_circle_invitation(self, params):
        # Mirrors accept_circle_invitation() in app/database/schema.sql
        for invitation in self.rows(Tables.INVITATIONS):
            if invitation["invitation_id"] != params["p_invitation_id"]:
                continue
            if (invitation["status"] != "PENDING"
                    or invitation["uses_count"] >= invitation["max_uses"]
                    or invitation["expires_at"] <= params["p_now_epoch"]):
                return []
            invitation.update({
                "status": "ACCEPTED",
                "uses_count": invitation["uses_count"] + 1,
                "accepted_by_user_id": params["p_user_id"],
                "accepted_at": params["p_now_iso"],
            })
            membership = {
                "user_id": params["p_user_id"],
                "circle_id": invitation["circle_id"],
                "role": invitation["role"],
                "joined_at": params["p_now_iso"],
                "display_name": params["p_display_name"],
            }
            existing = self.find_by_key(Tables.MEMBERSHIPS, membership)
            if existing is not None:
                role = "owner" if existing["role"] == "owner" else membership["role"]
                existing.update({"role": role, "display_name": membership["display_name"]})
            else:
                role = membership["role"]
                self.rows(Tables.MEMBERSHIPS).append(membership)
            return [{"accepted_circle_id": invitation["circle_id"], "accepted_role": role}]
        return []


class FakeVerifier:
    def verify(self, token: str) -> Dict[str, Any]:
        if token not in USERS:
            raise Unauthenticated("Invalid or expired token")
        return dict(USERS[token])


class RecordingPublisher:
    def __init__(self):
        self.events = []
        self.fail_with: Optional[str] = None

    def publish(self, event) -> PublishResult:
        self.events.append(event)
        if self.fail_with:
            return PublishResult(queued=False, error=self.fail_with)
        return PublishResult(queued=True, message_id=f"sqs-{len(self.events)}")


class RecordingEmailSender:
    def __init__(self):
        self.sent = []
        self.raise_error: Optional[Exception] = None

    def send(self, to_email, circle_name, inviter, invite_url) -> bool:
        if self.raise_error is not None:
            raise self.raise_error
        self.sent.append({"to": to_email, "circle_name": circle_name, "inviter": inviter, "url": invite_url})
        return True


class FakeCompletion:
    def __init__(self):
        self.response = '["What made you smile this week?", "What is a favourite family tradition?"]'
        self.error: Optional[Exception] = None
        self.calls = []

    def complete(self, prompt: str, temperature: float, max_tokens: int) -> str:
        self.calls.append({"prompt": prompt, "temperature": temperature, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.response


class FakeOAuthClient:
    def __init__(self):
        self.exchange_response = (200, {"refresh_token": "refresh-123", "access_token": "a", "id_token": "i"})
        self.refresh_response = (200, {"access_token": "fresh-access", "id_token": "fresh-id", "expires_in": 1800})
        self.exchanges = []

    def build_authorize_url(self, state, code_challenge):
        return f"https://idp.example.com/oauth2/authorize?state={state}&code_challenge={code_challenge}"

    def exchange_code(self, code, code_verifier):
        self.exchanges.append((code, code_verifier))
        return self.exchange_response

    def refresh(self, refresh_token):
        return self.refresh_response


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def oauth_client():
    return FakeOAuthClient()


@pytest.fixture
def ticking_clock(monkeypatch):
    """Strictly increasing created_at values so newest-first ordering is deterministic."""
    counter = itertools.count(1)

    def now():
        return f"2026-01-01T00:00:{next(counter):02d}.000Z"

    monkeypatch.setattr("app.modules.messages.service.utc_now_iso", now)
    return now


@pytest.fixture
def client(db, publisher, email_sender, completion, oauth_client):
    TagConfigCache.reset()
    limiter.enabled = False
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_token_verifier] = lambda: FakeVerifier()
    app.dependency_overrides[get_push_publisher] = lambda: publisher
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    app.dependency_overrides[get_completion_client] = lambda: completion
    app.dependency_overrides[get_oauth_client] = lambda: oauth_client
    yield TestClient(app)
    app.dependency_overrides.clear()
    limiter.enabled = True
    TagConfigCache.reset()


def auth(token: str = "alice-token") -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def add_member(db: FakeSupabase, user_id: str, circle_id: str, role: str = "member"):
    db.seed(Tables.MEMBERSHIPS, {
        "user_id": user_id,
        "circle_id": circle_id,
        "role": role,
        "joined_at": "2026-01-01T00:00:00.000Z",
        "display_name": user_id,
    })


def add_circle(db: FakeSupabase, circle_id: str, name: str, tags=None, owner: str = "user-alice"):
    db.seed(Tables.CIRCLES, {
        "circle_id": circle_id,
        "name": name,
        "description": "",
        "tags": tags or [],
        "created_at": "2026-01-01T00:00:00.000Z",
        "created_by_user_id": owner,
    })
    add_member(db, owner, circle_id, role="owner")
