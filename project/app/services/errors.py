# app/services/errors.py

"""
Erros das rotas de sessões e da exportação.

Cada erro carrega o status HTTP e a mensagem exibida ao admin; o handler
registrado em app.main transforma qualquer ExportError em {"error": ...}.
"""

from typing import Optional


class ExportError(Exception):
    status_code = 500
    message = "Erro interno."

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def payload(self) -> dict:
        return {"error": self.message}


class ConfigError(ExportError):
    status_code = 500
    message = "Ambiente incompleto: configure DATABASE_URL."


class AuthError(ExportError):
    status_code = 401
    message = "Não autenticado."


class InvalidIdentifier(ExportError):
    status_code = 400
    message = "Sessão inválida."


class NotFound(ExportError):
    status_code = 404
    message = "Sessão não encontrada."


class UpstreamFailure(ExportError):
    """Falha de consulta ao banco em uma etapa (session, orders, items e as consultas do histórico)."""

    status_code = 500
    messages = {
        "session": "Falha ao carregar sessão para exportação.",
        "orders": "Falha ao carregar pedidos da sessão para exportação.",
        "items": "Falha ao carregar itens para exportação.",
        "sessions": "Falha ao carregar histórico de sessões.",
        "history_orders": "Falha ao carregar histórico de pedidos por sessão.",
        "session_orders": "Falha ao carregar pedidos da sessão.",
    }

    def __init__(self, stage: str, message: Optional[str] = None):
        self.stage = stage
        super().__init__(message or self.messages.get(stage, "Falha ao consultar o banco."))

    def payload(self) -> dict:
        return {"error": self.message, "stage": self.stage}


class InternalExportError(ExportError):
    """Invariante quebrada dentro do pipeline (erro de programação)."""

    status_code = 500
    message = "Erro interno ao montar a exportação."
