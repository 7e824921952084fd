# app/routes/sessions.py

import asyncio

from fastapi import APIRouter, Depends, Request, Response, status

from app.config import Settings, get_settings
from app.routes.auth import AdminDecision, require_admin
from app.schemas.order import SessionHistory, SessionOrderList
from app.services.errors import ConfigError, ExportError
from app.services.export import export_session
from app.services.sessions import list_sessions_service, normalize_session_id, read_session_orders_service
from app.utils.database import get_sessionmaker
from app.utils.store import SqlStore, Store

router = APIRouter()

CLIENT_CLOSED_REQUEST = 499
DISCONNECT_POLL_SECONDS = 0.5


async def get_store(settings: Settings = Depends(get_settings)):
    """Uma AsyncSession por requisição, fechada ao final."""
    if not settings.DATABASE_URL:
        raise ConfigError()
    async with get_sessionmaker(settings.DATABASE_URL)() as db:
        yield SqlStore(db)


async def wait_for_disconnect(request: Request):
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def run_until_disconnect(request: Request, coro):
    """
    Executa coro enquanto o cliente estiver conectado.
    Se o cliente cair antes, a tarefa é cancelada e devolve None.
    """
    task = asyncio.ensure_future(coro)
    watcher = asyncio.ensure_future(wait_for_disconnect(request))
    try:
        await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for pending in (watcher, task):
            if not pending.done():
                pending.cancel()
        # espera o cancelamento liberar a sessão do banco
        await asyncio.wait({task, watcher})

    if task.cancelled():
        return None
    return task.result()


# ────────────── LISTA DE SESSÕES ──────────────
@router.get(
    "/sessions",
    response_model=SessionHistory,
    status_code=status.HTTP_200_OK,
    summary="Histórico de sessões",
    responses={
        401: {"description": "Não autenticado"},
        500: {"description": "Ambiente incompleto ou falha no banco"},
    },
)
async def list_sessions(
    request: Request,
    _: AdminDecision = Depends(require_admin),
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    sessions = await list_sessions_service(store, settings.SESSIONS_HISTORY_LIMIT, request.app.state.log)
    return SessionHistory(sessions=sessions)


# ────────────── PEDIDOS DA SESSÃO ──────────────
@router.get(
    "/sessions/{id}/orders",
    response_model=SessionOrderList,
    status_code=status.HTTP_200_OK,
    summary="Pedidos de uma sessão",
    responses={
        400: {"description": "Sessão inválida"},
        401: {"description": "Não autenticado"},
        500: {"description": "Ambiente incompleto ou falha no banco"},
    },
)
async def read_session_orders(
    id: str,
    request: Request,
    _: AdminDecision = Depends(require_admin),
    store: Store = Depends(get_store),
):
    orders = await read_session_orders_service(store, id, request.app.state.log)
    return SessionOrderList(orders=orders)


# ────────────── EXPORTAÇÃO CSV ──────────────
@router.get(
    "/sessions/{id}/export",
    status_code=status.HTTP_200_OK,
    summary="Exportar sessão em CSV",
    response_description="CSV (;) com BOM, uma linha por item de pedido",
    responses={
        200: {"content": {"text/csv": {}}, "description": "Arquivo CSV da sessão"},
        400: {"description": "Sessão inválida"},
        401: {"description": "Não autenticado"},
        404: {"description": "Sessão não encontrada"},
        500: {"description": "Ambiente incompleto ou falha em uma etapa (session, orders, items)"},
    },
)
async def export_session_csv(
    id: str,
    request: Request,
    _: AdminDecision = Depends(require_admin),
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    log = request.app.state.log
    session_id = normalize_session_id(id)
    try:
        response = await run_until_disconnect(
            request,
            export_session(store, session_id, settings.EXPORT_STAGE_TIMEOUT_SECONDS, log),
        )
    except ExportError as e:
        await log.log_error("export", f"Exportação falhou: {e.message}", {"id": session_id})
        raise

    if response is None:
        await log.log_warning("export", "Cliente desconectou durante a exportação", {"id": session_id})
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    return response
