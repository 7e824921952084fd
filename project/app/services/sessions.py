# app/services/sessions.py

from collections.abc import Iterable
from decimal import Decimal

from pydantic import ValidationError

from app.schemas.order import Order, OrderSource, Session, SessionOrder, SessionSummary
from app.services.errors import InvalidIdentifier, NotFound, UpstreamFailure
from app.utils.log import Log
from app.utils.store import Store, StoreError

SESSION_COLUMNS = ("id", "code", "opened_at", "closed_at")
ORDER_COLUMNS = (
    "id",
    "code",
    "customer_name",
    "customer_phone",
    "notes",
    "status",
    "source",
    "table_code",
    "subtotal",
    "created_at",
)


def normalize_session_id(session_id) -> str:
    """Identificador aparado; vazio ou só espaços é rejeitado antes de consultar."""
    value = session_id.strip() if isinstance(session_id, str) else ""
    if not value:
        raise InvalidIdentifier()
    return value


def source_label(source) -> OrderSource:
    """Qualquer origem diferente de mesa_qr (inclusive nula) é balcão."""
    if source == OrderSource.TABLE_QR.value:
        return OrderSource.TABLE_QR
    return OrderSource.COUNTER


async def resolve_session(store: Store, session_id: str, log: Log | None = None) -> Session:
    """
    Busca exatamente uma sessão pelo id.

    - InvalidIdentifier: id vazio
    - NotFound: nenhuma sessão com esse id
    - UpstreamFailure("session"): erro de consulta (diferente de "não achou")
    """
    session_id = normalize_session_id(session_id)

    try:
        record = await store.find_one("order_sessions", SESSION_COLUMNS, {"id": session_id})
    except StoreError as e:
        if log:
            await log.log_error("export", "Falha ao carregar sessão", {"id": session_id, "error": str(e)})
        raise UpstreamFailure("session") from e

    if record is None:
        if log:
            await log.log_warning("export", "Sessão não encontrada", {"id": session_id})
        raise NotFound()

    try:
        return Session.model_validate(record)
    except ValidationError as e:
        raise UpstreamFailure("session") from e


async def collect_orders(store: Store, session_id: str, log: Log | None = None) -> list[Order]:
    """Pedidos da sessão, do mais recente para o mais antigo. Lista vazia é válida."""
    try:
        records = await store.find_many(
            "orders",
            ORDER_COLUMNS,
            {"session_id": session_id},
            order_by="created_at",
            descending=True,
        )
        orders = [Order.model_validate(record) for record in records]
    except (StoreError, ValidationError) as e:
        if log:
            await log.log_error("export", "Falha ao carregar pedidos", {"session_id": session_id, "error": str(e)})
        raise UpstreamFailure("orders") from e

    if log:
        await log.log_info("export", "Pedidos carregados", {"session_id": session_id, "count": len(orders)})
    return orders


# ────────────── Histórico (JSON) ──────────────

def summarize_sessions(sessions: list[Session], order_rows: Iterable[dict]) -> list[SessionSummary]:
    totals = {session.id: [0, Decimal("0")] for session in sessions}
    for row in order_rows:
        current = totals.get(row.get("session_id"))
        if current is None:
            continue
        current[0] += 1
        current[1] += Decimal(str(row.get("subtotal") or 0))

    return [
        SessionSummary(
            id=session.id,
            code=session.code,
            opened_at=session.opened_at,
            closed_at=session.closed_at,
            is_open=session.closed_at is None,
            orders_count=totals[session.id][0],
            subtotal=float(round(totals[session.id][1], 2)),
        )
        for session in sessions
    ]


async def list_sessions_service(store: Store, limit: int = 30, log: Log | None = None) -> list[SessionSummary]:
    """Últimas sessões abertas, com quantidade de pedidos e soma dos subtotais."""
    try:
        records = await store.find_many(
            "order_sessions", SESSION_COLUMNS, {}, order_by="opened_at", descending=True, limit=limit
        )
        sessions = [Session.model_validate(record) for record in records]
    except (StoreError, ValidationError) as e:
        if log:
            await log.log_error("sessions", "Falha ao carregar histórico", {"error": str(e)})
        raise UpstreamFailure("sessions") from e

    if not sessions:
        return []

    try:
        order_rows = await store.find_many(
            "orders", ("session_id", "subtotal"), {"session_id": [s.id for s in sessions]}
        )
    except StoreError as e:
        if log:
            await log.log_error("sessions", "Falha ao carregar pedidos do histórico", {"error": str(e)})
        raise UpstreamFailure("history_orders") from e

    summaries = summarize_sessions(sessions, order_rows)
    if log:
        await log.log_info("sessions", "Histórico carregado", {"count": len(summaries)})
    return summaries


async def read_session_orders_service(store: Store, session_id: str, log: Log | None = None) -> list[SessionOrder]:
    session_id = normalize_session_id(session_id)
    try:
        orders = await collect_orders(store, session_id, log)
    except UpstreamFailure as e:
        raise UpstreamFailure("session_orders") from e

    return [
        SessionOrder(
            id=order.id,
            code=order.code,
            status=order.status,
            source=source_label(order.source),
            table_code=order.table_code if source_label(order.source) is OrderSource.TABLE_QR else None,
            subtotal=float(order.subtotal),
            created_at=order.created_at,
        )
        for order in orders
    ]
