"""
外部熵來源（Entropy Source）

揭曉時用來決定「承諾序列中的哪一個位置」成為得主的數值。
這個數值必須：
- 單調遞增（像區塊高度）
- 在呼叫執行前無法得知
- 每次揭曉呼叫時重新讀取，不能快取

已知限制：管理員可以選擇「什麼時候」呼叫揭曉，因此可以影響取到的數值。
這裡照原樣實作，不做修補。
"""
from abc import ABC, abstractmethod
import logging

import httpx
from sqlalchemy.orm import Session

from database import settings
from core.ledger import get_block_height

logger = logging.getLogger(__name__)


class EntropySource(ABC):
    """熵來源的抽象介面"""

    @abstractmethod
    def current_value(self, db: Session) -> int:
        """
        讀取當下的熵值

        參數：
            db: 目前這筆呼叫所在的 Session（帳本型來源需要）

        返回：
            非負整數
        """
        ...

    def describe(self) -> str:
        return type(self).__name__

    def close(self) -> None:
        """釋放來源持有的資源（連線等），預設沒有東西要釋放"""


class LedgerBlockHeightEntropySource(EntropySource):
    """
    使用本地帳本的區塊高度

    每一筆會改變狀態的呼叫都會推進高度，所以揭曉時讀到的是揭曉那筆呼叫本身的區塊
    """

    def current_value(self, db: Session) -> int:
        return get_block_height(db)

    def describe(self) -> str:
        return "ledger:block_height"


class RpcBlockHeightEntropySource(EntropySource):
    """
    使用外部 EVM 相容鏈的最新區塊號（JSON-RPC eth_blockNumber）
    """

    def __init__(self, rpc_url: str, timeout_s: float = 10.0, client: httpx.Client = None) -> None:
        if not rpc_url:
            raise RuntimeError("entropy_rpc_url is required for the rpc entropy source")
        self.rpc_url = rpc_url
        self.client = client or httpx.Client(timeout=timeout_s)

    def close(self) -> None:
        self.client.close()

    def current_value(self, db: Session) -> int:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_blockNumber",
            "params": [],
        }
        resp = self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise RuntimeError(f"RPC error: {data['error']}")
        result = data.get("result")
        if not isinstance(result, str):
            raise RuntimeError(f"eth_blockNumber returned no block number: {data}")
        height = int(result, 16)
        logger.info(f"Entropy from {self.rpc_url}: block {height}")
        return height

    def describe(self) -> str:
        return f"rpc:{self.rpc_url}"


_entropy_source = None


def get_entropy_source() -> EntropySource:
    """
    依設定取得熵來源（FastAPI dependency）

    設定：
        entropy_source = "ledger"（預設）或 "rpc"
    """
    global _entropy_source
    if _entropy_source is None:
        if settings.entropy_source == "rpc":
            _entropy_source = RpcBlockHeightEntropySource(
                settings.entropy_rpc_url,
                timeout_s=settings.entropy_rpc_timeout,
            )
        elif settings.entropy_source == "ledger":
            _entropy_source = LedgerBlockHeightEntropySource()
        else:
            raise RuntimeError(f"Unknown entropy_source: {settings.entropy_source}")
        logger.info(f"Using entropy source {_entropy_source.describe()}")
    return _entropy_source


def close_entropy_source() -> None:
    """關閉目前快取的熵來源（應用程式關閉時呼叫），下次取用會重新建立"""
    global _entropy_source
    if _entropy_source is not None:
        _entropy_source.close()
        _entropy_source = None
