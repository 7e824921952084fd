# app/utils/database.py

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

# ────────────── Base para os modelos ──────────────
Base = declarative_base()  # classe base de todas as tabelas SQLAlchemy

# ────────────── Engines por URL ──────────────
# O engine só é criado na primeira requisição: sem DATABASE_URL a aplicação
# sobe normalmente e responde 500 nas rotas que precisam do banco.
_engines: dict[str, AsyncEngine] = {}
_sessionmakers: dict[str, async_sessionmaker[AsyncSession]] = {}


def get_sessionmaker(database_url: str) -> async_sessionmaker[AsyncSession]:
    """Devolve (criando se preciso) a fábrica de sessões assíncronas para a URL."""
    if database_url not in _sessionmakers:
        engine = create_async_engine(
            database_url,
            echo=False,  # True para depurar o SQL
        )
        _engines[database_url] = engine
        _sessionmakers[database_url] = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _sessionmakers[database_url]


async def dispose_engines():
    """Fecha os pools de conexão (chamado no shutdown)."""
    for engine in list(_engines.values()):
        await engine.dispose()
    _engines.clear()
    _sessionmakers.clear()
