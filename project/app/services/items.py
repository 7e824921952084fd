# app/services/items.py

from collections.abc import Collection

from pydantic import ValidationError

from app.schemas.order import OrderItem
from app.services.errors import UpstreamFailure
from app.utils.log import Log
from app.utils.store import Store, StoreError

ITEM_COLUMNS = ("order_id", "drink_name", "qty", "unit_price", "line_total", "notes")
# bancos sem a coluna order_items.notes
ITEM_COLUMNS_REDUCED = ("order_id", "drink_name", "qty", "unit_price", "line_total")

ITEM_FETCH_STRATEGIES = (ITEM_COLUMNS, ITEM_COLUMNS_REDUCED)


async def fetch_items(store: Store, order_ids: list[str], columns: tuple[str, ...]) -> list[dict]:
    """Itens dos pedidos na ordem do ticket (created_at crescente)."""
    records = await store.find_many(
        "order_items",
        columns,
        {"order_id": order_ids},
        order_by="created_at",
        descending=False,
    )
    # colunas que a estratégia não trouxe ficam nulas
    return [{**{name: None for name in ITEM_COLUMNS}, **record} for record in records]


async def fetch_items_with_fallback(store: Store, order_ids: list[str], log: Log | None = None) -> list[dict]:
    """
    Tenta cada conjunto de colunas em ITEM_FETCH_STRATEGIES, em sequência.

    Uma falha na consulta completa (ex.: coluna notes inexistente) faz cair
    para a consulta reduzida; o resultado é normalizado com notes=None e a
    requisição segue normalmente. Se todas falharem, nada é devolvido.
    """
    last_error = None
    for attempt, columns in enumerate(ITEM_FETCH_STRATEGIES):
        try:
            return await fetch_items(store, order_ids, columns)
        except StoreError as e:
            last_error = e
            if log:
                await log.log_warning(
                    "export",
                    "Consulta de itens falhou",
                    {"attempt": attempt + 1, "columns": list(columns), "error": str(e)},
                )

    raise UpstreamFailure("items") from last_error


async def reconcile_items(
    store: Store, order_ids: Collection[str], log: Log | None = None
) -> dict[str, list[OrderItem]]:
    """Itens agrupados por order_id, preservando a ordem de busca dentro de cada pedido."""
    if not order_ids:
        return {}

    records = await fetch_items_with_fallback(store, list(order_ids), log)

    items_by_order: dict[str, list[OrderItem]] = {}
    try:
        for record in records:
            item = OrderItem.model_validate(record)
            items_by_order.setdefault(item.order_id, []).append(item)
    except ValidationError as e:
        raise UpstreamFailure("items") from e

    if log:
        await log.log_info("export", "Itens carregados", {"count": len(records), "orders": len(items_by_order)})
    return items_by_order
