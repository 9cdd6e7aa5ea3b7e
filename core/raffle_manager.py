"""
Raffle Manager：管理單一抽獎的完整生命週期

職責：
1. 建立抽獎（驗證名額數量與 provenance hash）
2. 販售名額（一般購買 / 管理員特權購買）
3. 揭曉得主（commit-reveal + 外部熵）
4. 提款、轉移管理員
5. 查詢抽獎資訊

原則：
- 每個操作的前置條件都在最前面、依固定順序檢查，任何一項失敗整筆 rollback
- 階段不存欄位，由已售數量與得主推導（services.phase_service）
- 揭曉只能成功一次
- 金流一律先改狀態再送錢（checks-effects-interactions）
"""
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime, timezone
import logging

from models import Raffle, Slot, RafflePhase
from core.locks import with_raffle_lock
from core.entropy import EntropySource
from core import ledger
from core.exceptions import (
    RaffleNotFound,
    SlotNotFound,
    TooFewSlots,
    InvalidCommitment,
    InvalidAdministrator,
    PrivilegedOnlyPurchase,
    OwnerCannotBuyUnprivileged,
    InsufficientPayment,
    NoSlotsAvailable,
    Unauthorized,
    SaleOngoing,
    WinnerAlreadyPicked,
    ArrayLengthMismatch,
    IndexOutOfBounds,
)
from services.naming_service import normalize_address, is_zero_address
from services.phase_service import get_raffle_phase, has_available_slots
from services.provenance_service import (
    compute_provenance_hash,
    is_zero_hash,
    normalize_hash,
)
from database import transactional

logger = logging.getLogger(__name__)

MIN_SLOTS = 2


def _is_administrator(raffle: Raffle, caller: str) -> bool:
    return raffle.administrator == caller


def _sold(db: Session, raffle: Raffle) -> int:
    return db.query(Slot).filter(Slot.raffle_address == raffle.address).count()


class RaffleManager:
    """抽獎生命週期管理器"""

    # ============ 建立 ============

    @staticmethod
    def create_raffle_in_block(
        db: Session,
        block_height: int,
        creator: str,
        slot_count: int,
        slot_price: int,
        provenance_hash: str,
        administrator: Optional[str] = None,
    ) -> Raffle:
        """
        在已經開始的呼叫內建立抽獎（不 commit）

        RaffleManager.create_raffle 與 RegistryManager.create_raffle 共用這段邏輯，
        後者要把建立與登記放在同一筆交易裡。

        異常：
            InvalidCommitment: provenance hash 為零
            TooFewSlots: 名額數量 < 2
        """
        try:
            commitment = normalize_hash(provenance_hash)
        except ValueError as e:
            raise InvalidCommitment(str(e))
        if is_zero_hash(commitment):
            raise InvalidCommitment("Provenance hash must not be zero")
        if slot_count < MIN_SLOTS:
            raise TooFewSlots(slot_count)
        if slot_price < 0:
            raise ValueError(f"Slot price must not be negative, got {slot_price}")

        creator = normalize_address(creator)
        administrator = normalize_address(administrator) if administrator else creator
        if is_zero_address(administrator):
            raise InvalidAdministrator("Administrator must not be the zero address")

        address = ledger.next_contract_address(db, creator)
        raffle = Raffle(
            address=address,
            slot_count=slot_count,
            slot_price=slot_price,
            provenance_hash=commitment,
            administrator=administrator,
        )
        db.add(raffle)
        db.flush()

        # 抽獎本身也是一個帳戶，收到的款項都放在這裡
        ledger.get_or_create_account(db, address)

        ledger.emit_event(
            db, address, "OWNERSHIP_TRANSFERRED",
            {"previous": None, "new": administrator},
            block_height,
        )

        logger.info(
            f"Created raffle {address}: {slot_count} slots at {slot_price} wei, "
            f"commitment {commitment}, administrator {administrator}"
        )
        return raffle

    @staticmethod
    @transactional
    def create_raffle(
        db: Session,
        creator: str,
        slot_count: int,
        slot_price: int,
        provenance_hash: str,
        administrator: Optional[str] = None,
    ) -> Raffle:
        """
        直接建立抽獎（不經過 Registry）

        前置條件：
        1. provenance hash 不能為零
        2. 名額數量 >= 2

        參數：
            db: SQLAlchemy Session
            creator: 建立者身分
            slot_count: 名額數量
            slot_price: 單價（wei），0 表示只能特權購買
            provenance_hash: keccak256(salt ++ indices)
            administrator: 管理員，預設為建立者

        返回：
            新建立的 Raffle

        異常：
            InvalidCommitment: provenance hash 為零或格式錯誤
            TooFewSlots: 名額數量 < 2
        """
        block_height = ledger.begin_call(db)
        return RaffleManager.create_raffle_in_block(
            db, block_height, creator, slot_count, slot_price, provenance_hash, administrator
        )

    # ============ 購買 ============

    @staticmethod
    def _append_slot(db: Session, raffle: Raffle, buyer: str, paid_amount: int, block_height: int) -> int:
        sold = _sold(db, raffle)
        if sold >= raffle.slot_count:
            raise NoSlotsAvailable(f"Raffle {raffle.address} has no slots left")

        # 先收款：餘額不足會在這裡中止，整筆 rollback
        ledger.transfer(db, buyer, raffle.address, paid_amount)

        slot = Slot(
            raffle_address=raffle.address,
            slot_index=sold,
            buyer=buyer,
            paid_amount=paid_amount,
            block_height=block_height,
        )
        db.add(slot)
        db.flush()

        ledger.emit_event(
            db, raffle.address, "SLOT_PURCHASED",
            {"buyer": buyer, "slot_index": sold},
            block_height,
        )

        logger.info(f"Slot {sold}/{raffle.slot_count} of raffle {raffle.address} sold to {buyer}")
        return sold

    @staticmethod
    @transactional
    def purchase(db: Session, address: str, caller: str, paid_amount: int) -> int:
        """
        一般購買

        前置條件（依序檢查）：
        1. 單價 > 0，否則 PrivilegedOnlyPurchase
        2. 呼叫者不是管理員，否則 OwnerCannotBuyUnprivileged
        3. 付款 >= 單價，否則 InsufficientPayment
        4. 還有名額，否則 NoSlotsAvailable

        注意：
            - 多付的金額不退還，留在抽獎餘額內
            - 呼叫者帳戶必須真的有這麼多錢（InsufficientFunds）

        返回：
            取得的名額編號（從 0 開始，依購買順序）
        """
        block_height = ledger.begin_call(db)
        raffle = RaffleManager._get_locked(db, address)
        caller = normalize_address(caller)

        if raffle.slot_price == 0:
            raise PrivilegedOnlyPurchase(
                f"Raffle {raffle.address} only sells slots through privileged purchase"
            )
        if _is_administrator(raffle, caller):
            raise OwnerCannotBuyUnprivileged(
                f"Administrator {caller} must use privileged purchase"
            )
        if paid_amount < raffle.slot_price:
            raise InsufficientPayment(paid_amount, raffle.slot_price)

        return RaffleManager._append_slot(db, raffle, caller, paid_amount, block_height)

    @staticmethod
    @transactional
    def purchase_privileged(db: Session, address: str, caller: str, paid_amount: int = 0) -> int:
        """
        管理員特權購買

        前置條件：
        1. 呼叫者是管理員，否則 Unauthorized
        2. 還有名額，否則 NoSlotsAvailable

        注意：
            - 不檢查單價；有附帶金額的話照樣收進抽獎餘額
        """
        block_height = ledger.begin_call(db)
        raffle = RaffleManager._get_locked(db, address)
        caller = normalize_address(caller)

        if not _is_administrator(raffle, caller):
            raise Unauthorized(caller)

        return RaffleManager._append_slot(db, raffle, caller, paid_amount, block_height)

    # ============ 揭曉 ============

    @staticmethod
    @transactional
    def reveal(
        db: Session,
        address: str,
        caller: str,
        indices: List[int],
        salt: str,
        entropy: EntropySource,
    ) -> Raffle:
        """
        揭曉得主（一次性、不可逆）

        前置條件（依序檢查，任一失敗整筆中止）：
        1. 呼叫者是管理員 → Unauthorized
        2. 名額已售完 → SaleOngoing
        3. 尚未選出得主 → WinnerAlreadyPicked
        4. len(indices) == 名額數量 → ArrayLengthMismatch
        5. keccak256(salt ++ indices) == provenance hash → InvalidCommitment

        計算：
            r = 熵來源當下的數值（只讀一次）
            winning_slot = indices[r mod 名額數量]
            winning_slot >= 名額數量 → IndexOutOfBounds

        說明：
            承諾在任何名額售出前就公開，管理員無法依買家調整序列；
            最後的位置由揭曉當下才知道的熵決定，序列也無法事後挑選。
            管理員仍可選擇揭曉的時機，這是已知限制。

        返回：
            更新後的 Raffle
        """
        block_height = ledger.begin_call(db)
        raffle = RaffleManager._get_locked(db, address)
        caller = normalize_address(caller)

        if not _is_administrator(raffle, caller):
            raise Unauthorized(caller)

        sold = _sold(db, raffle)
        phase = get_raffle_phase(raffle.slot_count, sold, raffle.winner)
        if phase == RafflePhase.SELLING:
            raise SaleOngoing(f"Raffle {raffle.address} sold {sold}/{raffle.slot_count} slots")
        if phase == RafflePhase.WINNER_SELECTED:
            raise WinnerAlreadyPicked(f"Raffle {raffle.address} already has a winner")

        if len(indices) != raffle.slot_count:
            raise ArrayLengthMismatch(raffle.slot_count, len(indices))

        try:
            computed = compute_provenance_hash(indices, salt)
        except ValueError as e:
            raise InvalidCommitment(str(e))
        if computed != raffle.provenance_hash:
            raise InvalidCommitment(
                f"keccak256(salt ++ indices) = {computed}, committed {raffle.provenance_hash}"
            )

        r = entropy.current_value(db)
        winning_slot = indices[r % raffle.slot_count]
        # r % slot_count 一定在範圍內，但承諾的序列本身可能含有超出範圍的值
        if winning_slot >= raffle.slot_count:
            raise IndexOutOfBounds(winning_slot, raffle.slot_count)

        winner = db.query(Slot).filter(
            Slot.raffle_address == raffle.address,
            Slot.slot_index == winning_slot,
        ).one()

        raffle.winning_indices = list(indices)
        raffle.winning_salt = "0x" + salt[2:].lower()
        raffle.winning_slot = winning_slot
        raffle.winner = winner.buyer
        raffle.entropy_value = str(r)
        raffle.revealed_at = datetime.now(timezone.utc)
        db.flush()

        ledger.emit_event(
            db, raffle.address, "WINNER_SELECTED",
            {"winner": winner.buyer, "slot_index": winning_slot},
            block_height,
        )

        logger.info(
            f"Raffle {raffle.address} winner {winner.buyer} at slot {winning_slot} "
            f"(entropy {r} from {entropy.describe()})"
        )
        return raffle

    # ============ 管理 ============

    @staticmethod
    @transactional
    def withdraw(db: Session, address: str, caller: str) -> int:
        """
        提領抽獎的全部餘額給管理員（任何階段都可以）

        流程（checks-effects-interactions）：
        1. 檢查呼叫者是管理員
        2. 抽獎餘額歸零
        3. 最後一步才把原本的餘額送給管理員

        返回：
            提領的金額
        """
        block_height = ledger.begin_call(db)
        raffle = RaffleManager._get_locked(db, address)
        caller = normalize_address(caller)

        if not _is_administrator(raffle, caller):
            raise Unauthorized(caller)

        amount = ledger.drain(db, raffle.address)
        ledger.emit_event(
            db, raffle.address, "FUNDS_WITHDRAWN",
            {"recipient": raffle.administrator, "amount": str(amount)},
            block_height,
        )
        ledger.credit(db, raffle.administrator, amount)

        logger.info(f"Withdrew {amount} wei from raffle {raffle.address} to {raffle.administrator}")
        return amount

    @staticmethod
    def transfer_administration_in_block(
        db: Session, block_height: int, raffle: Raffle, caller: str, new_administrator: str
    ) -> Raffle:
        caller = normalize_address(caller)
        if not _is_administrator(raffle, caller):
            raise Unauthorized(caller)
        if not new_administrator or is_zero_address(new_administrator):
            raise InvalidAdministrator("New administrator must not be empty or the zero address")

        previous = raffle.administrator
        raffle.administrator = normalize_address(new_administrator)
        db.flush()

        ledger.emit_event(
            db, raffle.address, "OWNERSHIP_TRANSFERRED",
            {"previous": previous, "new": raffle.administrator},
            block_height,
        )
        logger.info(f"Raffle {raffle.address} administrator {previous} -> {raffle.administrator}")
        return raffle

    @staticmethod
    @transactional
    def transfer_administration(db: Session, address: str, caller: str, new_administrator: str) -> Raffle:
        """
        轉移管理員

        異常：
            Unauthorized: 呼叫者不是目前的管理員
            InvalidAdministrator: 新管理員為空或零地址
        """
        block_height = ledger.begin_call(db)
        raffle = RaffleManager._get_locked(db, address)
        return RaffleManager.transfer_administration_in_block(
            db, block_height, raffle, caller, new_administrator
        )

    # ============ 查詢 ============

    @staticmethod
    def _get_locked(db: Session, address: str) -> Raffle:
        raffle = with_raffle_lock(normalize_address(address), db).first()
        if not raffle:
            raise RaffleNotFound(address)
        return raffle

    @staticmethod
    def get_raffle(db: Session, address: str) -> Raffle:
        """
        透過地址取得 Raffle

        異常：
            RaffleNotFound: Raffle 不存在
        """
        raffle = db.query(Raffle).filter(Raffle.address == normalize_address(address)).first()
        if not raffle:
            raise RaffleNotFound(address)
        return raffle

    @staticmethod
    def get_sold_count(db: Session, address: str) -> int:
        return _sold(db, RaffleManager.get_raffle(db, address))

    @staticmethod
    def get_phase(db: Session, address: str) -> RafflePhase:
        raffle = RaffleManager.get_raffle(db, address)
        return get_raffle_phase(raffle.slot_count, _sold(db, raffle), raffle.winner)

    @staticmethod
    def has_available_slots(db: Session, address: str) -> bool:
        raffle = RaffleManager.get_raffle(db, address)
        return has_available_slots(raffle.slot_count, _sold(db, raffle))

    @staticmethod
    def get_slot(db: Session, address: str, slot_index: int) -> Slot:
        """
        取得某個名額的買家

        異常：
            SlotNotFound: 名額尚未售出或編號超出範圍
        """
        raffle = RaffleManager.get_raffle(db, address)
        slot = db.query(Slot).filter(
            Slot.raffle_address == raffle.address,
            Slot.slot_index == slot_index,
        ).first()
        if not slot:
            raise SlotNotFound(raffle.address, slot_index)
        return slot

    @staticmethod
    def get_slots(db: Session, address: str) -> List[Slot]:
        raffle = RaffleManager.get_raffle(db, address)
        return db.query(Slot).filter(
            Slot.raffle_address == raffle.address
        ).order_by(Slot.slot_index).all()

    @staticmethod
    def get_balance(db: Session, address: str) -> int:
        raffle = RaffleManager.get_raffle(db, address)
        return ledger.get_balance(db, raffle.address)

    @staticmethod
    def get_events(db: Session, address: str):
        raffle = RaffleManager.get_raffle(db, address)
        return ledger.list_events(db, raffle.address)
