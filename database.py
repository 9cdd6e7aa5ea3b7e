from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

from core.exceptions import RaffleException

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./raffle.db"

    # ledger: 使用本地帳本的區塊高度；rpc: 讀取外部鏈的最新區塊號
    entropy_source: str = "ledger"
    entropy_rpc_url: str = ""
    entropy_rpc_timeout: float = 10.0

    # 開發用水龍頭（直接幫帳戶加餘額），正式環境請關閉
    enable_faucet: bool = True

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()


def _engine_kwargs(url: str) -> dict:
    # SQLite 需要特殊設定：connect_args={"check_same_thread": False}
    # in-memory SQLite 需要 StaticPool，否則每條連線都是新的空資料庫
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    # timeout：等待其他 writer 釋放寫鎖的秒數
    kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator：確保帳本操作的原子性

    每一次呼叫就是一筆交易：狀態變更、餘額移轉、事件紀錄、區塊高度
    要嘛全部 commit，要嘛全部 rollback。

    使用方式：
        @transactional
        def some_operation(db: Session, ...):
            raffle = Raffle(...)
            db.add(raffle)
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback
        - 業務驗證失敗（RaffleException）記 warning，其他異常記完整 traceback
        - 異常會被重新拋出（讓上層處理）

    注意：
        - 第一個參數必須是 db: Session
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except RaffleException as e:
            logger.warning(f"Transaction rejected in {func.__name__}: {e.code}: {e}")
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
