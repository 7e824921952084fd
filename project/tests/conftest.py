"""
Fixtures compartilhadas: store em memória, portão de autenticação falso e
TestClient com as dependências trocadas.
"""
import asyncio
import os
import tempfile
from datetime import datetime, timezone
from decimal import Decimal

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="bar-log-"))
os.environ.setdefault("LOG_PRINT", "0")
os.environ.setdefault("AUTH_SECRET_KEY", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from fastapi.testclient import TestClient

from app.config import Settings, get_settings
from app.main import app
from app.routes.auth import AdminDecision, get_auth_gate
from app.routes.sessions import get_store
from app.utils.store import StoreError

SESSION_ID = "4f1c2b9e-0d7a-4c55-9a0e-2f6f3e1a7b10"
ORDER_OLD_ID = "a3b1c6f0-5d2e-4a8b-9c7d-1e2f3a4b5c6d"
ORDER_NEW_ID = "b7c8d9e0-1f2a-4b3c-8d4e-5f6a7b8c9d0e"


def ts(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, 17, hour, minute, tzinfo=timezone.utc)


class FakeStore:
    """
    Store em memória com o mesmo contrato do SqlStore.

    failures: {(coleção, "notes" in colunas)} ou {coleção} que devem falhar.
    delays: {coleção: segundos} antes de responder.
    """

    def __init__(self, tables: dict[str, list[dict]] | None = None):
        self.tables = tables or {}
        self.failures: set = set()
        self.delays: dict[str, float] = {}
        self.calls: list[tuple[str, tuple]] = []

    def fail(self, collection: str, with_column: str | None = None):
        self.failures.add((collection, with_column) if with_column else collection)

    def _check(self, collection, columns):
        self.calls.append((collection, tuple(columns)))
        if collection in self.failures:
            raise StoreError(collection, "falha simulada")
        for name in columns:
            if (collection, name) in self.failures:
                raise StoreError(collection, f'column "{name}" does not exist')

    def _match(self, record, filters):
        for name, value in filters.items():
            if isinstance(value, (list, tuple, set, frozenset)):
                if record.get(name) not in value:
                    return False
            elif record.get(name) != value:
                return False
        return True

    async def find_one(self, collection, columns, filters):
        await asyncio.sleep(self.delays.get(collection, 0))
        self._check(collection, columns)
        rows = [r for r in self.tables.get(collection, []) if self._match(r, filters)]
        if len(rows) > 1:
            raise StoreError(collection, "mais de um registro para o filtro")
        return {c: rows[0].get(c) for c in columns} if rows else None

    async def find_many(self, collection, columns, filters, order_by=None, descending=False, limit=None):
        await asyncio.sleep(self.delays.get(collection, 0))
        self._check(collection, columns)
        rows = [r for r in self.tables.get(collection, []) if self._match(r, filters)]
        if order_by is not None:
            rows.sort(key=lambda r: r[order_by], reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return [{c: r.get(c) for c in columns} for r in rows]


class FakeGate:
    def __init__(self, authenticated: bool = True):
        self.authenticated = authenticated

    async def check_admin(self, request):
        return AdminDecision(authenticated=self.authenticated, login="admin" if self.authenticated else None)


def seed_tables() -> dict[str, list[dict]]:
    return {
        "order_sessions": [
            {"id": SESSION_ID, "code": "BAR#1/2024", "opened_at": ts(18), "closed_at": None},
        ],
        "orders": [
            {
                "id": ORDER_OLD_ID,
                "session_id": SESSION_ID,
                "code": "P-001",
                "customer_name": "Ana",
                "customer_phone": None,
                "notes": 'sem "gelo"',
                "status": "pendente",
                "source": "mesa_qr",
                "table_code": "M07",
                "subtotal": Decimal("25.00"),
                "created_at": ts(19),
            },
            {
                "id": ORDER_NEW_ID,
                "session_id": SESSION_ID,
                "code": "P-002",
                "customer_name": None,
                "customer_phone": None,
                "notes": None,
                "status": "concluido",
                "source": "balcao",
                "table_code": "M09",
                "subtotal": Decimal("12.5"),
                "created_at": ts(20),
            },
        ],
        "order_items": [
            # fora de ordem de propósito: a ordenação vem do created_at
            {
                "order_id": ORDER_OLD_ID,
                "drink_name": "Água",
                "qty": 1,
                "unit_price": Decimal("5"),
                "line_total": Decimal("5"),
                "notes": None,
                "created_at": ts(19, 2),
            },
            {
                "order_id": ORDER_OLD_ID,
                "drink_name": "Caipirinha",
                "qty": 2,
                "unit_price": Decimal("10"),
                "line_total": Decimal("20"),
                "notes": "limão",
                "created_at": ts(19, 1),
            },
        ],
    }


@pytest.fixture
def store():
    return FakeStore(seed_tables())


@pytest.fixture
def gate():
    return FakeGate(True)


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite://",
        AUTH_SECRET_KEY="test-secret",
        EXPORT_STAGE_TIMEOUT_SECONDS=2.0,
    )


@pytest.fixture
def client(store, gate, test_settings):
    """TestClient com store, portão e settings trocados."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_auth_gate] = lambda: gate
    app.dependency_overrides[get_settings] = lambda: test_settings

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
