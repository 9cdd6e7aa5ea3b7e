"""
Raffle API Endpoints

職責：
1. 直接建立抽獎
2. 購買名額（一般 / 特權）
3. 揭曉得主
4. 提款、轉移管理員
5. 查詢抽獎、名額、事件
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from models import Raffle
from schemas import (
    RaffleCreate,
    RaffleResponse,
    PurchaseRequest,
    PurchaseResponse,
    RevealRequest,
    CallerRequest,
    WithdrawResponse,
    AdministratorTransfer,
    SlotResponse,
    EventResponse,
)
from core.raffle_manager import RaffleManager
from core.entropy import EntropySource, get_entropy_source
from core.exceptions import RaffleException
from api.errors import to_http_exception

router = APIRouter(prefix="/api/raffles", tags=["raffles"])
logger = logging.getLogger(__name__)


def build_raffle_response(db: Session, raffle: Raffle) -> RaffleResponse:
    slots = RaffleManager.get_slots(db, raffle.address)
    sold = len(slots)
    return RaffleResponse(
        address=raffle.address,
        slot_count=raffle.slot_count,
        slot_price=raffle.slot_price,
        provenance_hash=raffle.provenance_hash,
        administrator=raffle.administrator,
        phase=RaffleManager.get_phase(db, raffle.address),
        slots_sold=sold,
        slots=[slot.buyer for slot in slots],
        has_available_slots=sold < raffle.slot_count,
        balance=RaffleManager.get_balance(db, raffle.address),
        winning_indices=raffle.winning_indices,
        winning_salt=raffle.winning_salt,
        winning_slot=raffle.winning_slot,
        winner=raffle.winner,
        entropy_value=raffle.entropy_value,
        created_at=raffle.created_at,
        revealed_at=raffle.revealed_at,
    )


@router.post("", response_model=RaffleResponse)
def create_raffle(data: RaffleCreate, db: Session = Depends(get_db)):
    """
    直接建立抽獎（不經過 Registry），呼叫者成為管理員

    異常：
        400 InvalidCommitment: provenance hash 為零
        400 TooFewSlots: 名額數量 < 2
    """
    try:
        raffle = RaffleManager.create_raffle(
            db, data.caller, data.slot_count, data.slot_price, data.provenance_hash
        )
        return build_raffle_response(db, raffle)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create raffle: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{address}", response_model=RaffleResponse)
def get_raffle(address: str, db: Session = Depends(get_db)):
    """取得抽獎的完整狀態（含推導出的階段與餘額）"""
    try:
        raffle = RaffleManager.get_raffle(db, address)
        return build_raffle_response(db, raffle)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get raffle: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{address}/slots/{slot_index}", response_model=SlotResponse)
def get_slot(address: str, slot_index: int, db: Session = Depends(get_db)):
    try:
        slot = RaffleManager.get_slot(db, address, slot_index)
        return SlotResponse(slot_index=slot.slot_index, buyer=slot.buyer)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get slot: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{address}/purchase", response_model=PurchaseResponse)
def purchase(address: str, data: PurchaseRequest, db: Session = Depends(get_db)):
    """
    一般購買

    參數：
        caller: 買家（不能是管理員）
        paid_amount: 付款金額（wei），多付不退

    返回：
        - slot_index: 取得的名額編號
    """
    try:
        slot_index = RaffleManager.purchase(db, address, data.caller, data.paid_amount)
        return PurchaseResponse(slot_index=slot_index)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to purchase slot: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{address}/purchase-privileged", response_model=PurchaseResponse)
def purchase_privileged(address: str, data: PurchaseRequest, db: Session = Depends(get_db)):
    """管理員特權購買（不檢查單價）"""
    try:
        slot_index = RaffleManager.purchase_privileged(db, address, data.caller, data.paid_amount)
        return PurchaseResponse(slot_index=slot_index)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to purchase privileged slot: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{address}/reveal", response_model=RaffleResponse)
def reveal(
    address: str,
    data: RevealRequest,
    db: Session = Depends(get_db),
    entropy: EntropySource = Depends(get_entropy_source),
):
    """
    揭曉得主

    流程：
    1. 驗證呼叫者、階段、indices 長度、provenance hash
    2. 讀取外部熵，決定得主
    3. 返回揭曉後的抽獎狀態
    """
    try:
        raffle = RaffleManager.reveal(db, address, data.caller, data.indices, data.salt, entropy)
        return build_raffle_response(db, raffle)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to reveal winner: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{address}/withdraw", response_model=WithdrawResponse)
def withdraw(address: str, data: CallerRequest, db: Session = Depends(get_db)):
    try:
        amount = RaffleManager.withdraw(db, address, data.caller)
        return WithdrawResponse(amount=amount)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to withdraw: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{address}/administrator", response_model=RaffleResponse)
def transfer_administration(address: str, data: AdministratorTransfer, db: Session = Depends(get_db)):
    try:
        raffle = RaffleManager.transfer_administration(
            db, address, data.caller, data.new_administrator
        )
        return build_raffle_response(db, raffle)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to transfer administration: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{address}/events", response_model=List[EventResponse])
def get_events(address: str, db: Session = Depends(get_db)):
    """抽獎的事件紀錄（依發生順序）"""
    try:
        events = RaffleManager.get_events(db, address)
        return [
            EventResponse(
                id=event.id,
                event_type=event.event_type,
                data=event.data,
                block_height=event.block_height,
            )
            for event in events
        ]

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get events: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
