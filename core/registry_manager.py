"""
Registry Manager：建立並登記抽獎

職責：
1. 部署 Registry（指定管理員）
2. 由 Registry 管理員建立新抽獎，並把抽獎的管理權交給自己
3. 查詢已建立的抽獎清單（append-only，只增不減）
"""
from sqlalchemy.orm import Session
from typing import List
import logging

from models import Raffle, RaffleRegistry, RegistryEntry
from core.locks import with_registry_lock
from core.raffle_manager import RaffleManager
from core import ledger
from core.exceptions import (
    RegistryNotFound,
    RaffleNotFound,
    Unauthorized,
    InvalidAdministrator,
)
from services.naming_service import normalize_address, is_zero_address
from database import transactional

logger = logging.getLogger(__name__)


class RegistryManager:
    """Registry 管理器"""

    @staticmethod
    @transactional
    def deploy_registry(db: Session, administrator: str) -> RaffleRegistry:
        """
        部署新的 Registry

        參數：
            db: SQLAlchemy Session
            administrator: Registry 管理員（同時是部署者）

        返回：
            新建立的 RaffleRegistry
        """
        if not administrator or is_zero_address(administrator):
            raise InvalidAdministrator("Registry administrator must not be empty or the zero address")

        block_height = ledger.begin_call(db)
        administrator = normalize_address(administrator)

        address = ledger.next_contract_address(db, administrator)
        registry = RaffleRegistry(address=address, administrator=administrator)
        db.add(registry)
        db.flush()
        ledger.get_or_create_account(db, address)

        ledger.emit_event(
            db, address, "OWNERSHIP_TRANSFERRED",
            {"previous": None, "new": administrator},
            block_height,
        )

        logger.info(f"Deployed registry {address} for {administrator}")
        return registry

    @staticmethod
    @transactional
    def create_raffle(
        db: Session,
        registry_address: str,
        caller: str,
        slot_count: int,
        slot_price: int,
        provenance_hash: str,
    ) -> Raffle:
        """
        透過 Registry 建立新抽獎

        前置條件：
        1. 呼叫者是 Registry 管理員，否則 Unauthorized
        2. 抽獎參數合法（InvalidCommitment / TooFewSlots）

        流程：
        1. 以 Registry 為建立者與初始管理員建立抽獎
        2. 立刻把抽獎管理權轉給 Registry 管理員
        3. 把抽獎地址加到清單尾端
        4. 記錄 RAFFLE_CREATED 事件

        注意：
            - 任何一步失敗都不會留下抽獎或清單項目（同一筆交易）
        """
        block_height = ledger.begin_call(db)
        registry = RegistryManager._get_locked(db, registry_address)
        caller = normalize_address(caller)

        if registry.administrator != caller:
            raise Unauthorized(caller)

        raffle = RaffleManager.create_raffle_in_block(
            db, block_height, registry.address, slot_count, slot_price, provenance_hash
        )
        RaffleManager.transfer_administration_in_block(
            db, block_height, raffle, registry.address, registry.administrator
        )

        position = db.query(RegistryEntry).filter(
            RegistryEntry.registry_address == registry.address
        ).count()
        db.add(RegistryEntry(
            registry_address=registry.address,
            position=position,
            raffle_address=raffle.address,
        ))
        db.flush()

        ledger.emit_event(
            db, registry.address, "RAFFLE_CREATED",
            {"address": raffle.address},
            block_height,
        )

        logger.info(f"Registry {registry.address} created raffle #{position} at {raffle.address}")
        return raffle

    @staticmethod
    @transactional
    def transfer_administration(db: Session, registry_address: str, caller: str, new_administrator: str) -> RaffleRegistry:
        """
        轉移 Registry 管理員

        注意：
            - 只影響之後建立的抽獎；已建立抽獎的管理員不變
        """
        block_height = ledger.begin_call(db)
        registry = RegistryManager._get_locked(db, registry_address)
        caller = normalize_address(caller)

        if registry.administrator != caller:
            raise Unauthorized(caller)
        if not new_administrator or is_zero_address(new_administrator):
            raise InvalidAdministrator("New administrator must not be empty or the zero address")

        previous = registry.administrator
        registry.administrator = normalize_address(new_administrator)
        db.flush()

        ledger.emit_event(
            db, registry.address, "OWNERSHIP_TRANSFERRED",
            {"previous": previous, "new": registry.administrator},
            block_height,
        )
        logger.info(f"Registry {registry.address} administrator {previous} -> {registry.administrator}")
        return registry

    @staticmethod
    def _get_locked(db: Session, address: str) -> RaffleRegistry:
        registry = with_registry_lock(normalize_address(address), db).first()
        if not registry:
            raise RegistryNotFound(address)
        return registry

    @staticmethod
    def get_registry(db: Session, address: str) -> RaffleRegistry:
        registry = db.query(RaffleRegistry).filter(
            RaffleRegistry.address == normalize_address(address)
        ).first()
        if not registry:
            raise RegistryNotFound(address)
        return registry

    @staticmethod
    def count(db: Session, address: str) -> int:
        """已建立的抽獎數量"""
        registry = RegistryManager.get_registry(db, address)
        return db.query(RegistryEntry).filter(
            RegistryEntry.registry_address == registry.address
        ).count()

    @staticmethod
    def raffle_at(db: Session, address: str, position: int) -> str:
        """
        取得清單中第 position 個抽獎的地址

        異常：
            RaffleNotFound: position 超出範圍
        """
        registry = RegistryManager.get_registry(db, address)
        entry = db.query(RegistryEntry).filter(
            RegistryEntry.registry_address == registry.address,
            RegistryEntry.position == position,
        ).first()
        if not entry:
            raise RaffleNotFound(f"#{position} in registry {registry.address}")
        return entry.raffle_address

    @staticmethod
    def list_raffles(db: Session, address: str) -> List[str]:
        registry = RegistryManager.get_registry(db, address)
        entries = db.query(RegistryEntry).filter(
            RegistryEntry.registry_address == registry.address
        ).order_by(RegistryEntry.position).all()
        return [entry.raffle_address for entry in entries]
