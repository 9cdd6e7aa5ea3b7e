"""
Account Manager：帳戶餘額查詢與開發用水龍頭
"""
from sqlalchemy.orm import Session
import logging

from core import ledger
from core.exceptions import FaucetDisabled
from services.naming_service import normalize_address
from database import transactional, settings

logger = logging.getLogger(__name__)


class AccountManager:

    @staticmethod
    @transactional
    def fund(db: Session, address: str, amount: int) -> int:
        """
        水龍頭：直接幫帳戶入帳

        異常：
            FaucetDisabled: 設定 enable_faucet = False

        返回：
            入帳後的餘額
        """
        if not settings.enable_faucet:
            raise FaucetDisabled("Account funding is disabled")
        if amount < 0:
            raise ValueError(f"Cannot fund a negative amount: {amount}")

        ledger.begin_call(db)
        address = normalize_address(address)
        balance = ledger.credit(db, address, amount)
        logger.info(f"Funded {address} with {amount} wei (balance {balance})")
        return balance

    @staticmethod
    def get_balance(db: Session, address: str) -> int:
        return ledger.get_balance(db, normalize_address(address))
