"""
SqlStore contra SQLite (aiosqlite), incluindo um banco antigo em que
order_items ainda não tem a coluna notes.
"""
import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import insert, text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.models.order import Order, OrderItem, OrderSession
from app.services.export import export_session
from app.services.items import reconcile_items
from app.utils.database import Base
from app.utils.store import SqlStore, StoreError
from conftest import ts

SESSION_ID = str(uuid.uuid4())
ORDER_ID = str(uuid.uuid4())

LEGACY_ORDER_ITEMS_DDL = """
CREATE TABLE order_items (
    id CHAR(32) PRIMARY KEY,
    order_id CHAR(32) NOT NULL,
    drink_id VARCHAR NOT NULL,
    drink_name VARCHAR NOT NULL,
    unit_price NUMERIC(12, 2) NOT NULL,
    qty INTEGER NOT NULL,
    line_total NUMERIC(12, 2) NOT NULL,
    created_at DATETIME NOT NULL
)
"""


def item_values(name, minute, notes=None, legacy=False):
    values = {
        "id": str(uuid.uuid4()),
        "order_id": ORDER_ID,
        "drink_id": name.lower(),
        "drink_name": name,
        "unit_price": Decimal("8.50"),
        "qty": 2,
        "line_total": Decimal("17.00"),
        "created_at": ts(19, minute),
    }
    if not legacy:
        values["notes"] = notes
    return values


async def seed(conn, legacy=False):
    await conn.execute(
        insert(OrderSession.__table__).values(
            id=SESSION_ID, code="NOITE-01", opened_at=ts(18), created_at=ts(18)
        )
    )
    await conn.execute(
        insert(Order.__table__).values(
            id=ORDER_ID,
            session_id=SESSION_ID,
            code="P-100",
            status="em_progresso",
            source="mesa_qr",
            table_code="M03",
            subtotal=Decimal("34.00"),
            created_at=ts(19),
            updated_at=ts(19),
        )
    )
    await conn.execute(insert(OrderItem.__table__), [
        item_values("Negroni", 5, notes="sem laranja", legacy=legacy),
        item_values("Spritz", 1, legacy=legacy),
    ])


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bar.db'}")
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def current_db(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await seed(conn)
    async with async_sessionmaker(engine, expire_on_commit=False)() as db:
        yield SqlStore(db)


@pytest_asyncio.fixture
async def legacy_db(engine):
    async with engine.begin() as conn:
        await conn.run_sync(
            Base.metadata.create_all,
            tables=[OrderSession.__table__, Order.__table__],
        )
        await conn.execute(text(LEGACY_ORDER_ITEMS_DDL))
        await seed(conn, legacy=True)
    async with async_sessionmaker(engine, expire_on_commit=False)() as db:
        yield SqlStore(db)


async def test_find_one_and_missing(current_db):
    record = await current_db.find_one("order_sessions", ("id", "code", "closed_at"), {"id": SESSION_ID})

    assert record == {"id": SESSION_ID, "code": "NOITE-01", "closed_at": None}
    assert await current_db.find_one("order_sessions", ("id",), {"id": str(uuid.uuid4())}) is None


async def test_find_many_filters_and_orders(current_db):
    rows = await current_db.find_many(
        "order_items", ("drink_name",), {"order_id": [ORDER_ID]}, order_by="created_at"
    )
    assert [row["drink_name"] for row in rows] == ["Spritz", "Negroni"]

    rows = await current_db.find_many(
        "order_items", ("drink_name",), {"order_id": [ORDER_ID]}, order_by="created_at", descending=True, limit=1
    )
    assert rows == [{"drink_name": "Negroni"}]


async def test_unknown_collection_or_column(current_db):
    with pytest.raises(StoreError):
        await current_db.find_many("payments", ("id",), {})
    with pytest.raises(StoreError):
        await current_db.find_many("orders", ("discount",), {})


async def test_reconcile_keeps_notes_on_current_schema(current_db):
    items = await reconcile_items(current_db, [ORDER_ID])

    assert [(item.drink_name, item.notes) for item in items[ORDER_ID]] == [
        ("Spritz", None),
        ("Negroni", "sem laranja"),
    ]


async def test_missing_notes_column_is_a_store_error_and_session_recovers(legacy_db):
    with pytest.raises(StoreError):
        await legacy_db.find_many("order_items", ("order_id", "notes"), {"order_id": [ORDER_ID]})

    rows = await legacy_db.find_many("order_items", ("order_id",), {"order_id": [ORDER_ID]})
    assert len(rows) == 2


async def test_reconcile_on_legacy_schema_drops_notes(legacy_db):
    items = await reconcile_items(legacy_db, [ORDER_ID])

    assert [(item.drink_name, item.notes) for item in items[ORDER_ID]] == [
        ("Spritz", None),
        ("Negroni", None),
    ]
    assert items[ORDER_ID][0].unit_price == Decimal("8.50")


async def test_export_on_legacy_schema(legacy_db):
    response = await export_session(legacy_db, SESSION_ID, timeout=5.0)

    lines = response.body.decode("utf-8").lstrip("\ufeff").split("\n")
    assert len(lines) == 3
    assert lines[1].startswith('"NOITE-01";')
    assert '"mesa_qr";"M03"' in lines[1]
    assert lines[1].endswith('"Spritz";"2";"8,50";"17,00";"";"34,00"')
    assert response.headers["content-disposition"] == 'attachment; filename="NOITE-01.csv"'
