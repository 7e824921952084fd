# app/utils/store.py

"""
Acesso de leitura ao banco no formato "coleção + filtro + ordenação".

As rotas só enxergam o protocolo Store: find_one / find_many devolvem dicts
e qualquer falha de consulta vira StoreError, seja coluna inexistente,
tabela inexistente, conexão caída ou registro duplicado em find_one.
"""

from typing import Any, Mapping, Optional, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.utils.database import Base
import app.models.order  # noqa: F401  registra as tabelas em Base.metadata


class StoreError(Exception):
    def __init__(self, collection: str, message: str):
        self.collection = collection
        super().__init__(f"{collection}: {message}")


class Store(Protocol):
    async def find_one(
        self, collection: str, columns: Sequence[str], filters: Mapping[str, Any]
    ) -> Optional[dict]:
        ...

    async def find_many(
        self,
        collection: str,
        columns: Sequence[str],
        filters: Mapping[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        ...


class SqlStore:
    """Store sobre uma AsyncSession do SQLAlchemy (uma por requisição)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _build_select(self, collection: str, columns: Sequence[str], filters: Mapping[str, Any]):
        table = Base.metadata.tables.get(collection)
        if table is None:
            raise StoreError(collection, "coleção desconhecida")

        try:
            stmt = select(*[table.c[name] for name in columns])
            for name, value in filters.items():
                column = table.c[name]
                # coleção = IN, valor simples = igualdade
                if isinstance(value, (list, tuple, set, frozenset)):
                    stmt = stmt.where(column.in_(list(value)))
                else:
                    stmt = stmt.where(column == value)
        except KeyError as e:
            raise StoreError(collection, f"coluna desconhecida {e}") from e

        return table, stmt

    async def _fetch(self, collection: str, stmt) -> list[dict]:
        try:
            result = await self.db.execute(stmt)
            return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            # no Postgres a transação fica abortada após um erro;
            # sem rollback a próxima consulta da mesma sessão também falharia
            await self.db.rollback()
            raise StoreError(collection, str(e)) from e

    async def find_one(self, collection, columns, filters):
        _, stmt = self._build_select(collection, columns, filters)
        rows = await self._fetch(collection, stmt.limit(2))
        if len(rows) > 1:
            raise StoreError(collection, "mais de um registro para o filtro")
        return rows[0] if rows else None

    async def find_many(self, collection, columns, filters, order_by=None, descending=False, limit=None):
        table, stmt = self._build_select(collection, columns, filters)
        if order_by is not None:
            if order_by not in table.c:
                raise StoreError(collection, f"coluna de ordenação desconhecida '{order_by}'")
            column = table.c[order_by]
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._fetch(collection, stmt)
