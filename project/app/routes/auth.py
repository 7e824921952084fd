# app/routes/auth.py

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jwt import encode, decode, ExpiredSignatureError, InvalidTokenError

from app.config import Settings, get_settings
from app.services.errors import AuthError, ConfigError
from app.utils.security import verify_password

router = APIRouter()

# ────────────── JWT ──────────────
ALGORITHM = "HS256"
AUTH_COOKIE = "admin_token"
AUTH_CONFIG_MESSAGE = "Ambiente incompleto para autenticação do admin."
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


def create_access_token(data: dict, secret_key: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Gera o JWT do admin.
    Entrada: dict (ex.: {"sub": "admin"})
    Saída: string JWT
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return encode(to_encode, secret_key, algorithm=ALGORITHM)


# ────────────── Portão de autenticação ──────────────

@dataclass(frozen=True)
class AdminDecision:
    authenticated: bool
    login: Optional[str] = None


class AuthGate(Protocol):
    async def check_admin(self, request: Request) -> AdminDecision:
        ...


class JwtAuthGate:
    """Aceita o token no header Authorization: Bearer ou no cookie admin_token."""

    def __init__(self, settings: Settings, bearer: Optional[str] = None):
        self.settings = settings
        self.bearer = bearer

    async def check_admin(self, request: Request) -> AdminDecision:
        if not self.settings.AUTH_SECRET_KEY:
            raise ConfigError(AUTH_CONFIG_MESSAGE)

        token = self.bearer or request.cookies.get(AUTH_COOKIE)
        if not token:
            return AdminDecision(authenticated=False)

        log = getattr(request.app.state, "log", None)
        try:
            payload = decode(token, self.settings.AUTH_SECRET_KEY, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            if log:
                await log.log_warning("auth", "Token expirado")
            return AdminDecision(authenticated=False)
        except InvalidTokenError:
            if log:
                await log.log_warning("auth", "Token inválido")
            return AdminDecision(authenticated=False)

        login = payload.get("sub")
        if login != self.settings.AUTH_LOGIN:
            return AdminDecision(authenticated=False)
        return AdminDecision(authenticated=True, login=login)


def get_auth_gate(
    token: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings),
) -> AuthGate:
    return JwtAuthGate(settings, token)


async def require_admin(request: Request, gate: AuthGate = Depends(get_auth_gate)) -> AdminDecision:
    """
    Dependência das rotas do admin.

    **Status:**
    - 401 – sem token, token expirado ou inválido
    - 500 – AUTH_SECRET_KEY não configurada
    """
    decision = await gate.check_admin(request)
    if not decision.authenticated:
        raise AuthError()
    return decision


# ────────────── TOKEN ──────────────
@router.post(
    "/token",
    summary="Login do admin (JWT)",
    responses={
        200: {"description": "Token emitido: access_token e token_type"},
        401: {"description": "Login ou senha inválidos"},
        500: {"description": "Ambiente de autenticação incompleto"},
    },
)
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    settings: Settings = Depends(get_settings),
):
    """
    Confere login e senha do admin contra AUTH_LOGIN / AUTH_PASSWORD_HASH
    e devolve um JWT válido por AUTH_TOKEN_EXPIRE_MINUTES.
    """
    log = getattr(request.app.state, "log", None)
    if not settings.AUTH_SECRET_KEY or not settings.AUTH_PASSWORD_HASH:
        raise ConfigError(AUTH_CONFIG_MESSAGE)

    if form_data.username != settings.AUTH_LOGIN or not verify_password(
        form_data.password, settings.AUTH_PASSWORD_HASH
    ):
        if log:
            await log.log_warning("auth", "Tentativa de login falhou", {"username": form_data.username})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciais inválidas",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(
        data={"sub": settings.AUTH_LOGIN},
        secret_key=settings.AUTH_SECRET_KEY,
        expires_delta=timedelta(minutes=settings.AUTH_TOKEN_EXPIRE_MINUTES),
    )
    if log:
        await log.log_info("auth", "Admin autenticado", {"login": settings.AUTH_LOGIN})

    return {"access_token": access_token, "token_type": "bearer"}
