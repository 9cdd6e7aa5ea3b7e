"""
帳本（Ledger）操作

職責：
1. 區塊高度：每一筆會改變狀態的呼叫都開一個新區塊（高度 +1）
2. 原生幣帳戶：餘額查詢、移轉、入帳、清空
3. 事件紀錄：append-only、全域有序
4. 合約地址：依建立者與其 nonce 推導

所有函式都假設呼叫者已經在一個 transaction 內（由 @transactional 負責 commit/rollback），
這裡只做 flush，不 commit。
"""
from sqlalchemy import update
from sqlalchemy.orm import Session
import logging

from models import Account, ChainState, EventLog
from core.locks import with_account_lock
from core.exceptions import InsufficientFunds
from services.naming_service import derive_contract_address

logger = logging.getLogger(__name__)


CHAIN_STATE_ID = 1


def begin_call(db: Session) -> int:
    """
    開始一筆新的呼叫：推進區塊高度

    遞增在資料庫裡完成（UPDATE ... SET block_height = block_height + 1），
    不是讀出來在 Python 加一再寫回。這個 UPDATE 是每筆呼叫的第一個寫入，
    拿到寫鎖之後其他呼叫要等這筆 commit 或 rollback 才能繼續，
    SQLite（FOR UPDATE 無效）與 PostgreSQL 都一樣。

    返回：
        這筆呼叫所在的區塊高度

    注意：
        - 如果呼叫失敗被 rollback，高度也會一起回到原值
    """
    result = db.execute(
        update(ChainState)
        .where(ChainState.id == CHAIN_STATE_ID)
        .values(block_height=ChainState.block_height + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # 建表時沒有寫入初始列（例如舊資料庫）
        db.add(ChainState(id=CHAIN_STATE_ID, block_height=1))
        db.flush()
    return get_block_height(db)


def get_block_height(db: Session) -> int:
    # 只查欄位，不經過 identity map，讀到的一定是資料庫裡的值
    height = db.query(ChainState.block_height).filter(
        ChainState.id == CHAIN_STATE_ID
    ).scalar()
    return height or 0


def get_or_create_account(db: Session, address: str) -> Account:
    """取得並鎖定帳戶，不存在就建立一個零餘額的帳戶"""
    account = with_account_lock(address, db).first()
    if account is None:
        account = Account(address=address, balance=0, nonce=0)
        db.add(account)
        db.flush()
    return account


def get_balance(db: Session, address: str) -> int:
    account = db.query(Account).filter(Account.address == address).first()
    return account.balance if account else 0


def credit(db: Session, address: str, amount: int) -> int:
    """
    入帳（不從任何帳戶扣款）

    用途：
        水龍頭、提款的最後一步

    返回：
        入帳後的餘額
    """
    if amount < 0:
        raise ValueError(f"Cannot credit a negative amount: {amount}")
    account = get_or_create_account(db, address)
    account.balance = account.balance + amount
    db.flush()
    return account.balance


def transfer(db: Session, sender: str, recipient: str, amount: int) -> None:
    """
    從 sender 移轉 amount 到 recipient

    異常：
        InsufficientFunds: sender 餘額不足
    """
    if amount < 0:
        raise ValueError(f"Cannot transfer a negative amount: {amount}")
    if amount == 0:
        return

    source = get_or_create_account(db, sender)
    if source.balance < amount:
        raise InsufficientFunds(sender, source.balance, amount)
    source.balance = source.balance - amount
    db.flush()
    credit(db, recipient, amount)


def drain(db: Session, address: str) -> int:
    """
    清空帳戶餘額並返回原本的金額

    先把餘額歸零再由呼叫者把錢送出去（checks-effects-interactions），
    送出的那一步不可能再讀到舊餘額。
    """
    account = get_or_create_account(db, address)
    amount = account.balance
    account.balance = 0
    db.flush()
    return amount


def next_contract_address(db: Session, creator: str) -> str:
    """
    為 creator 建立的下一個合約推導地址，並遞增 creator 的 nonce

    同一個 creator 每次建立都會拿到不同地址，而且可以重算
    """
    account = get_or_create_account(db, creator)
    address = derive_contract_address(creator, account.nonce)
    account.nonce += 1
    db.flush()
    return address


def emit_event(db: Session, emitter: str, event_type: str, data: dict, block_height: int) -> EventLog:
    event = EventLog(
        emitter=emitter,
        event_type=event_type,
        data=data,
        block_height=block_height,
    )
    db.add(event)
    db.flush()
    logger.debug(f"Event {event_type} from {emitter} at block {block_height}: {data}")
    return event


def list_events(db: Session, emitter: str):
    return db.query(EventLog).filter(
        EventLog.emitter == emitter
    ).order_by(EventLog.id).all()
