# app/models/order.py

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.sql import func
from app.utils.database import Base


class OrderSession(Base):
    __tablename__ = "order_sessions"

    id = Column(Uuid(as_uuid=False), primary_key=True)
    code = Column(String, unique=True, nullable=False)                 # ex.: BAR-2026-10-17
    opened_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    closed_at = Column(DateTime(timezone=True), nullable=True)         # null = sessão aberta
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Uuid(as_uuid=False), primary_key=True)
    session_id = Column(Uuid(as_uuid=False), ForeignKey("order_sessions.id", ondelete="SET NULL"), nullable=True)

    code           = Column(String, unique=True, nullable=False)
    customer_name  = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)
    notes          = Column(Text, nullable=True)
    status         = Column(String, nullable=False, default="pendente")  # pendente | em_progresso | concluido
    source         = Column(String, nullable=False, default="balcao")    # mesa_qr | balcao
    table_code     = Column(String, nullable=True)                       # só vale para mesa_qr
    subtotal       = Column(Numeric(12, 2), nullable=False, default=0)
    created_at     = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at     = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Uuid(as_uuid=False), primary_key=True)
    order_id = Column(Uuid(as_uuid=False), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    drink_id   = Column(String, nullable=False)
    drink_name = Column(String, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    qty        = Column(Integer, nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)
    notes      = Column(Text, nullable=True)   # coluna ausente em bancos mais antigos
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
