"""
並發控制工具

提供 Database-level 的鎖定機制，讓同一個抽獎的所有呼叫串行化

主要使用 PostgreSQL 的 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）
SQLite 沒有 row lock，整個資料庫本身就是一次只有一個 writer
區塊高度不用鎖，由 ledger.begin_call 直接在 SQL 裡遞增
"""
from sqlalchemy.orm import Session, Query

from models import Account, Raffle, RaffleRegistry


def with_raffle_lock(address: str, db: Session) -> Query:
    """
    鎖定一個 Raffle（行級鎖）

    使用場景：
    - 購買名額、揭曉、提款、轉移管理員
    - 需要確保 Raffle 在整個 transaction 期間不被其他請求修改

    範例：
        raffle = with_raffle_lock(address, db).first()
        if not raffle:
            raise RaffleNotFound(address)

    參數：
        address: Raffle 地址
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(Raffle).filter(
        Raffle.address == address
    ).with_for_update(nowait=False)


def with_registry_lock(address: str, db: Session) -> Query:
    """
    鎖定一個 RaffleRegistry（行級鎖）

    使用場景：
    - 建立新抽獎（append 到清單時，position 不能重複）
    - 轉移 Registry 管理員
    """
    return db.query(RaffleRegistry).filter(
        RaffleRegistry.address == address
    ).with_for_update(nowait=False)


def with_account_lock(address: str, db: Session) -> Query:
    """鎖定一個帳戶（餘額移轉前使用）"""
    return db.query(Account).filter(
        Account.address == address
    ).with_for_update(nowait=False)

