"""Shared test fixtures.

The Supabase client is replaced by an in-memory fake of the PostgREST query
builder covering the calls this service makes. The WhatsApp API client is a
MagicMock, so no test touches the network.
"""
import os
import tempfile
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock, patch

os.environ.setdefault("UPLOAD_PATH", tempfile.mkdtemp(prefix="whatsapp-bridge-uploads-"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from whatsapp_bridge.config import Settings, get_settings  # noqa: E402
from whatsapp_bridge.database.message_store import (  # noqa: E402
    CHAT_SUMMARIES_VIEW,
    MESSAGES_TABLE,
    MessageStore,
)
from whatsapp_bridge.main import app  # noqa: E402
from whatsapp_bridge.services.conversation_service import (  # noqa: E402
    ConversationService,
    get_conversation_service,
)
from whatsapp_bridge.services.whatsapp_client import WhatsAppClient  # noqa: E402
from whatsapp_bridge.services.whatsapp_service import (  # noqa: E402
    WhatsAppService,
    get_whatsapp_service,
)

WEBHOOK_SECRET = "test_webhook_secret"
VERIFY_TOKEN = "test_verify_token"


# ----------------------------------------------------------------------
# In-memory Supabase
# ----------------------------------------------------------------------
class FakeResult:
    def __init__(self, data: List[Dict[str, Any]], count: Optional[int] = None):
        self.data = data
        self.count = count


def _sort_key(value: Any):
    if isinstance(value, str):
        try:
            return (0, datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return (1, value)
    return (2, value)


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.operation = "select"
        self.payload: Any = None
        self.columns: Optional[List[str]] = None
        self.count_method: Optional[str] = None
        self.filters: List = []
        self.order_by: Optional[tuple] = None
        self.offset = 0
        self.max_rows: Optional[int] = None

    # Builders
    def select(self, *columns, count=None):
        self.operation = "select"
        joined = ",".join(columns) if columns else "*"
        self.columns = None if joined.strip() == "*" else [c.strip() for c in joined.split(",")]
        self.count_method = count
        return self

    def insert(self, data):
        self.operation = "insert"
        self.payload = data
        return self

    def update(self, data):
        self.operation = "update"
        self.payload = data
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None
                            and _sort_key(row.get(column)) >= _sort_key(value))
        return self

    def or_(self, expression):
        conditions = []
        for part in expression.split(","):
            column, operator, pattern = part.split(".", 2)
            assert operator == "ilike"
            conditions.append((column, pattern.strip("%").lower()))
        self.filters.append(lambda row: any(
            term in str(row.get(column) or "").lower() for column, term in conditions))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def range(self, start, end):
        self.offset = start
        self.max_rows = end - start + 1
        return self

    def limit(self, size):
        self.max_rows = size
        return self

    def execute(self):
        if self.table in self.db.failing_tables:
            raise RuntimeError(f"database unavailable: {self.table}")
        self.db.calls.append((self.table, self.operation))

        if self.operation == "insert":
            return FakeResult(self.db.insert(self.table, self.payload))

        rows = [row for row in self.db.rows(self.table) if all(f(row) for f in self.filters)]

        if self.operation == "update":
            for row in rows:
                row.update(self.payload)
            return FakeResult([dict(row) for row in rows])

        if self.order_by:
            column, desc = self.order_by
            rows = sorted(rows, key=lambda row: _sort_key(row.get(column)), reverse=desc)
        total = len(rows)
        rows = rows[self.offset:]
        if self.max_rows is not None:
            rows = rows[:self.max_rows]
        if self.columns:
            rows = [{c: row.get(c) for c in self.columns} for row in rows]
        else:
            rows = [dict(row) for row in rows]
        return FakeResult(rows, total if self.count_method else None)


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failing_tables = set()
        self.calls: List[tuple] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def insert(self, table: str, data) -> List[Dict[str, Any]]:
        records = data if isinstance(data, list) else [data]
        stored = []
        for record in records:
            row = dict(record)
            row.setdefault("id", str(uuid.uuid4()))
            if table == MESSAGES_TABLE:
                row.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
            self.tables.setdefault(table, []).append(row)
            stored.append(dict(row))
        return stored

    def rows(self, table: str) -> List[Dict[str, Any]]:
        if table == CHAT_SUMMARIES_VIEW:
            return self._chat_summaries()
        return self.tables.get(table, [])

    def messages(self) -> List[Dict[str, Any]]:
        return self.tables.get(MESSAGES_TABLE, [])

    def _chat_summaries(self) -> List[Dict[str, Any]]:
        latest: Dict[str, Dict[str, Any]] = {}
        for row in self.messages():
            current = latest.get(row["phone_number"])
            if current is None or _sort_key(row["timestamp"]) > _sort_key(current["timestamp"]):
                latest[row["phone_number"]] = row
        return [{
            "phone_number": phone,
            "name": row.get("name"),
            "last_message": row.get("message_content"),
            "last_message_time": row.get("timestamp"),
        } for phone, row in latest.items()]


def make_message_row(**overrides) -> Dict[str, Any]:
    row = {
        "phone_number": "15551234567",
        "name": None,
        "message_type": "text",
        "message_content": "hello",
        "media_id": None,
        "media_url": None,
        "whatsapp_message_id": None,
        "direction": "incoming",
        "status": "received",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    row.update(overrides)
    return row


def send_response(message_id: str = "wamid.OUT123") -> Dict[str, Any]:
    return {
        "messaging_product": "whatsapp",
        "contacts": [{"input": "15551234567", "wa_id": "15551234567"}],
        "messages": [{"id": message_id}],
    }


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------
@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture(autouse=True)
def _database_logging(fake_supabase):
    """Route log_to_database writes into the fake instead of a real project."""
    with patch("whatsapp_bridge.utils.logger.get_supabase_client", return_value=fake_supabase):
        yield


@pytest.fixture
def whatsapp_api() -> MagicMock:
    api = MagicMock(spec=WhatsAppClient)
    api.send_message.return_value = send_response()
    api.upload_media.return_value = "media-123"
    return api


@pytest.fixture
def store(fake_supabase) -> MessageStore:
    return MessageStore(fake_supabase)


@pytest.fixture
def service(whatsapp_api, store) -> WhatsAppService:
    return WhatsAppService(whatsapp_api, store)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        webhook_secret=WEBHOOK_SECRET,
        whatsapp_verify_token=VERIFY_TOKEN,
        whatsapp_token="token",
        whatsapp_phone_number_id="123456789",
        upload_path=str(tmp_path / "uploads"),
        public_base_url="https://bridge.example.com",
    )


@pytest.fixture
def client(service, store, test_settings):
    app.dependency_overrides[get_whatsapp_service] = lambda: service
    app.dependency_overrides[get_conversation_service] = lambda: ConversationService(store)
    app.dependency_overrides[get_settings] = lambda: test_settings
    yield TestClient(app)
    app.dependency_overrides.clear()
