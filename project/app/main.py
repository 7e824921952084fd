# app/main.py

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
from dotenv import load_dotenv
from contextlib import asynccontextmanager

from app.config import settings
from app.services.errors import ExportError
from app.utils.database import dispose_engines
from app.utils.log import Log

import os
import multiprocessing

# --- variáveis de ambiente ---
load_dotenv()

# --- logger síncrono para o boot ---
boot_log = Log(settings.LOG_DIR, settings.LOG_PRINT)
if os.environ.get("RUN_MAIN") == "true" or multiprocessing.current_process().name == "MainProcess":
    boot_log.log_info_sync(target="startup", message="Imports do main.py concluídos")

# ────────────── Lifespan ──────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    boot_log.log_info_sync(target="startup", message="lifespan: startup")
    if not settings.DATABASE_URL:
        boot_log.log_warning_sync(target="startup", message="DATABASE_URL ausente; rotas de sessão responderão 500")

    app.state.log = Log(settings.LOG_DIR, settings.LOG_PRINT)
    await app.state.log.log_info(target="startup", message="Log assíncrono inicializado")

    yield

    # shutdown
    await app.state.log.log_info(target="shutdown", message="Encerrando aplicação")
    await dispose_engines()
    await app.state.log.shutdown()
    boot_log.log_info_sync(target="shutdown", message="Log encerrado")

# ────────────── Aplicação FastAPI ──────────────
app = FastAPI(title="Bar Orders Back-office API", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ExportError)
async def export_error_handler(request: Request, exc: ExportError):
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


@app.get("/")
def read_root():
    return {"message": "ok"}

# ────────────── Rotas ──────────────
from app.routes import auth, sessions

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(sessions.router, prefix="/orders", tags=["sessions"])

# ────────────── uvicorn ──────────────
if __name__ == "__main__":
    boot_log.log_info_sync(target="startup", message="Iniciando uvicorn.run")
    uvicorn.run(
        "app.main:app",
        host="127.0.0.1",
        port=8000,
        log_level="info",
        reload=True
    )
