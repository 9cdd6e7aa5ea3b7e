"""
資料模型

帳本上的所有狀態：抽獎、名額、Registry、帳戶、區塊高度、事件紀錄

金額一律以最小單位（wei）的整數表示。wei 很容易超過 64-bit，
所以用 Wei 型別以十進位字串存放，讀出來仍然是 Python int。
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    DDL,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    JSON,
    event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Wei(TypeDecorator):
    """任意精度的非負整數金額（存成字串）"""
    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class RafflePhase(str, enum.Enum):
    SELLING = "SELLING"
    FULL = "FULL"
    WINNER_SELECTED = "WINNER_SELECTED"


class Raffle(Base):
    __tablename__ = "raffles"

    address = Column(String(42), primary_key=True)
    slot_count = Column(Integer, nullable=False)
    slot_price = Column(Wei, nullable=False)
    provenance_hash = Column(String(66), nullable=False)
    administrator = Column(String(42), nullable=False)

    # 揭曉後才寫入，之後不再變更
    winning_indices = Column(JSON, nullable=True)
    winning_salt = Column(String, nullable=True)
    winning_slot = Column(Integer, nullable=True)
    winner = Column(String(42), nullable=True)
    entropy_value = Column(String(80), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    revealed_at = Column(DateTime(timezone=True), nullable=True)

    slots = relationship(
        "Slot",
        back_populates="raffle",
        order_by="Slot.slot_index",
    )


class Slot(Base):
    __tablename__ = "slots"
    __table_args__ = (
        UniqueConstraint("raffle_address", "slot_index", name="uq_slot_position"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    raffle_address = Column(String(42), ForeignKey("raffles.address"), nullable=False, index=True)
    slot_index = Column(Integer, nullable=False)
    buyer = Column(String(42), nullable=False)
    paid_amount = Column(Wei, nullable=False, default=0)
    block_height = Column(Integer, nullable=False)

    raffle = relationship("Raffle", back_populates="slots")


class RaffleRegistry(Base):
    __tablename__ = "raffle_registries"

    address = Column(String(42), primary_key=True)
    administrator = Column(String(42), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    entries = relationship(
        "RegistryEntry",
        back_populates="raffle_registry",
        order_by="RegistryEntry.position",
    )


class RegistryEntry(Base):
    __tablename__ = "registry_entries"
    __table_args__ = (
        UniqueConstraint("registry_address", "position", name="uq_registry_position"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    registry_address = Column(
        String(42), ForeignKey("raffle_registries.address"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    raffle_address = Column(String(42), ForeignKey("raffles.address"), nullable=False)

    raffle_registry = relationship("RaffleRegistry", back_populates="entries")


class Account(Base):
    __tablename__ = "accounts"

    address = Column(String(42), primary_key=True)
    balance = Column(Wei, nullable=False, default=0)
    # 建立合約時遞增，用來推導新合約的地址
    nonce = Column(Integer, nullable=False, default=0)


class ChainState(Base):
    __tablename__ = "chain_state"

    id = Column(Integer, primary_key=True)
    block_height = Column(Integer, nullable=False, default=0)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    emitter = Column(String(42), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    block_height = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


# 區塊高度只有一列，建表時就放好，之後只用 UPDATE 遞增
event.listen(
    ChainState.__table__,
    "after_create",
    DDL("INSERT INTO chain_state (id, block_height) VALUES (1, 0)"),
)
