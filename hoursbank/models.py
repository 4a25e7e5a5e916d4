import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Numeric, Text, DateTime, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship

from .db import Base, engine


class Kind(str, enum.Enum):
    TOPUP = "topup"
    USAGE = "usage"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


class Customer(Base):
    __tablename__ = "customers"
    id = Column(Integer, primary_key=True)
    name = Column(String(128), nullable=False, index=True)
    contact = Column(String(255))

    transactions = relationship(
        "Transaction", back_populates="customer",
        cascade="all, delete-orphan", passive_deletes=True,
    )


class Transaction(Base):
    __tablename__ = "tx"
    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(String(32), nullable=False, index=True)          # ISO 字串："2026-02-11" 或 "2026-02-11T10:30"
    hours = Column(Numeric(12, 2), nullable=False)                 # 例如 1.5
    kind = Column(Enum(Kind, values_callable=lambda e: [k.value for k in e], native_enum=False, length=8),
                  nullable=False, default=Kind.USAGE)
    note = Column(Text)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    customer = relationship("Customer", back_populates="transactions")

    __table_args__ = (Index("ix_tx_customer_date", "customer_id", "date"),)


# 啟動時確保表存在
def ensure_tables(_engine=engine):
    Base.metadata.create_all(bind=_engine)
