# app/schemas/order.py

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    PENDING = "pendente"
    IN_PROGRESS = "em_progresso"
    DONE = "concluido"


class OrderSource(str, Enum):
    TABLE_QR = "mesa_qr"
    COUNTER = "balcao"


def money_or_zero(value):
    # valor monetário ausente conta como zero
    return Decimal("0") if value is None else value


class Session(BaseModel):
    """Sessão de atendimento (um turno), somente leitura durante a exportação."""
    model_config = ConfigDict(frozen=True)

    id: str
    code: str
    opened_at: datetime
    closed_at: Optional[datetime] = None


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    code: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    status: OrderStatus
    # valores desconhecidos chegam como estão e viram "balcao" na exportação
    source: Optional[str] = None
    table_code: Optional[str] = None
    subtotal: Decimal = Decimal("0")
    created_at: datetime

    @field_validator("subtotal", mode="before")
    @classmethod
    def _subtotal_or_zero(cls, v):
        return money_or_zero(v)


class OrderItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    drink_name: str
    qty: int = Field(..., gt=0)
    unit_price: Decimal = Decimal("0")
    line_total: Decimal = Decimal("0")
    notes: Optional[str] = None

    @field_validator("unit_price", "line_total", mode="before")
    @classmethod
    def _money_or_zero(cls, v):
        return money_or_zero(v)


# ────────────── Respostas JSON do histórico ──────────────
# Chaves em camelCase, como a tela de histórico do admin lê.

class SessionSummary(BaseModel):
    id: str
    code: str
    opened_at: datetime = Field(..., serialization_alias="openedAt")
    closed_at: Optional[datetime] = Field(None, serialization_alias="closedAt")
    is_open: bool = Field(..., serialization_alias="isOpen")
    orders_count: int = Field(..., serialization_alias="ordersCount")
    subtotal: float


class SessionHistory(BaseModel):
    sessions: list[SessionSummary]


class SessionOrder(BaseModel):
    id: str
    code: str
    status: OrderStatus
    source: OrderSource
    table_code: Optional[str] = Field(None, serialization_alias="tableCode")
    subtotal: float
    created_at: datetime = Field(..., serialization_alias="createdAt")


class SessionOrderList(BaseModel):
    orders: list[SessionOrder]
