# app/services/export.py

"""
Exportação de uma sessão em CSV.

Etapas, sempre em sequência e com tudo em memória:
    resolve_session -> collect_orders -> reconcile_items
    -> denormalize -> serialize_csv -> assemble_response

Nenhum CSV é gerado antes de todas as consultas terminarem com sucesso.
"""

import asyncio
import csv
import io
import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import NamedTuple, Optional

from fastapi import Response

from app.schemas.order import Order, OrderItem, OrderSource, OrderStatus, Session
from app.services.errors import InternalExportError, UpstreamFailure
from app.services.items import reconcile_items
from app.services.sessions import collect_orders, resolve_session, source_label
from app.utils.log import Log
from app.utils.store import Store

BOM = "\ufeff"
CENTS = Decimal("0.01")


class ExportRow(NamedTuple):
    sessao_codigo: str
    sessao_aberta_em: datetime
    sessao_fechada_em: Optional[datetime]
    pedido_codigo: str
    pedido_criado_em: datetime
    pedido_status: OrderStatus
    origem: OrderSource
    mesa: Optional[str]
    cliente: Optional[str]
    telefone: Optional[str]
    obs_pedido: Optional[str]
    drink: str
    qtd: int | str
    preco_unitario: Decimal | str
    subtotal_item: Decimal | str
    obs_item: Optional[str]
    subtotal_pedido: Decimal


EXPORT_HEADER = ExportRow._fields
CURRENCY_COLUMNS = frozenset({"preco_unitario", "subtotal_item", "subtotal_pedido"})

# pedido sem itens: colunas de item em branco (não é "valor ausente")
NO_ITEM = ("", "", "", "", "")


# ────────────── Linhas ──────────────

def order_base_fields(session: Session, order: Order) -> tuple:
    source = source_label(order.source)
    return (
        session.code,
        session.opened_at,
        session.closed_at,
        order.code,
        order.created_at,
        order.status,
        source,
        order.table_code if source is OrderSource.TABLE_QR else None,
        order.customer_name,
        order.customer_phone,
        order.notes,
    )


def iter_export_rows(
    session: Session, orders: Iterable[Order], items_by_order: Mapping[str, Sequence[OrderItem]]
):
    for order in orders:
        base = order_base_fields(session, order)
        items = items_by_order.get(order.id, ())
        if not items:
            yield ExportRow(*base, *NO_ITEM, order.subtotal)
            continue
        for item in items:
            yield ExportRow(
                *base,
                item.drink_name,
                item.qty,
                item.unit_price,
                item.line_total,
                item.notes,
                order.subtotal,
            )


def denormalize(
    session: Session, orders: Sequence[Order], items_by_order: Mapping[str, Sequence[OrderItem]]
) -> list[ExportRow]:
    """
    Uma linha por (pedido, item), ou uma linha só para pedido sem itens.

    Os pedidos saem na ordem recebida (mais recente primeiro) e o subtotal do
    pedido se repete em todas as linhas dele.
    """
    orphans = set(items_by_order) - {order.id for order in orders}
    if orphans:
        raise InternalExportError() from LookupError(f"itens de pedidos fora da sessão: {sorted(orphans)}")
    return list(iter_export_rows(session, orders, items_by_order))


# ────────────── CSV ──────────────

def format_money(value) -> str:
    """12.5 -> '12,50'; None -> '0,00'."""
    amount = Decimal(str(value if value is not None else 0)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return format(amount, "f").replace(".", ",")


def display_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def project_row(row: Sequence, header: Sequence[str]) -> list[str]:
    fields = []
    for name, value in zip(header, row):
        if name in CURRENCY_COLUMNS and value != "":
            fields.append(format_money(value))
        else:
            fields.append(display_value(value))
    return fields


def serialize_csv(rows: Iterable[Sequence], header: Sequence[str] = EXPORT_HEADER) -> str:
    """
    CSV separado por ';' com todos os campos entre aspas, BOM no início e
    linhas unidas por '\\n' (sem quebra no final).
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow(project_row(row, header))
    return BOM + buffer.getvalue()[:-1]


# ────────────── Resposta ──────────────

def export_filename(code: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]", "_", code) + ".csv"


def assemble_response(session: Session, csv_text: str) -> Response:
    return Response(
        content=csv_text,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(session.code)}"',
            "Cache-Control": "no-store",
        },
    )


# ────────────── Pipeline ──────────────

async def run_stage(stage: str, coro, timeout: Optional[float], log: Log | None = None):
    if timeout is None:
        return await coro
    try:
        return await asyncio.wait_for(coro, timeout)
    except asyncio.TimeoutError as e:
        if log:
            await log.log_error("export", "Tempo esgotado na etapa", {"stage": stage, "timeout": timeout})
        raise UpstreamFailure(stage) from e


async def export_session(
    store: Store, session_id: str, timeout: Optional[float] = None, log: Log | None = None
) -> Response:
    session = await run_stage("session", resolve_session(store, session_id, log), timeout, log)
    orders = await run_stage("orders", collect_orders(store, session.id, log), timeout, log)
    items_by_order = await run_stage(
        "items", reconcile_items(store, [order.id for order in orders], log), timeout, log
    )

    rows = denormalize(session, orders, items_by_order)
    csv_text = serialize_csv(rows)

    if log:
        await log.log_info("export", "Sessão exportada", {"session": session.code, "rows": len(rows)})
    return assemble_response(session, csv_text)
