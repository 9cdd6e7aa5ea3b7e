"""
API Schemas（Pydantic）

身分一律是 0x 開頭的 40 位 hex 地址；金額一律是 wei 整數。
"""
from datetime import datetime
from typing import List, Optional, Any, Dict

from pydantic import BaseModel, Field

from models import RafflePhase

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"
HASH_PATTERN = r"^0x[0-9a-fA-F]{64}$"
HEX_PATTERN = r"^0x([0-9a-fA-F]{2})*$"


# ============ Registry ============

class RegistryDeploy(BaseModel):
    administrator: str = Field(..., pattern=ADDRESS_PATTERN)


class RegistryResponse(BaseModel):
    address: str
    administrator: str
    count: int


class RegistryRaffleList(BaseModel):
    address: str
    raffles: List[str]


# ============ Raffle ============

class RaffleCreate(BaseModel):
    caller: str = Field(..., pattern=ADDRESS_PATTERN)
    slot_count: int
    slot_price: int = Field(..., ge=0)
    provenance_hash: str = Field(..., pattern=HASH_PATTERN)


class RaffleResponse(BaseModel):
    address: str
    slot_count: int
    slot_price: int
    provenance_hash: str
    administrator: str
    phase: RafflePhase
    slots_sold: int
    # 依名額順序的買家地址，slots[i] 是第 i 個名額的擁有者
    slots: List[str] = []
    has_available_slots: bool
    balance: int
    winning_indices: Optional[List[int]] = None
    winning_salt: Optional[str] = None
    winning_slot: Optional[int] = None
    winner: Optional[str] = None
    entropy_value: Optional[str] = None
    created_at: Optional[datetime] = None
    revealed_at: Optional[datetime] = None


class PurchaseRequest(BaseModel):
    caller: str = Field(..., pattern=ADDRESS_PATTERN)
    paid_amount: int = Field(0, ge=0)


class PurchaseResponse(BaseModel):
    slot_index: int


class RevealRequest(BaseModel):
    caller: str = Field(..., pattern=ADDRESS_PATTERN)
    indices: List[int]
    salt: str = Field(..., pattern=HEX_PATTERN)


class CallerRequest(BaseModel):
    caller: str = Field(..., pattern=ADDRESS_PATTERN)


class WithdrawResponse(BaseModel):
    amount: int


class AdministratorTransfer(BaseModel):
    caller: str = Field(..., pattern=ADDRESS_PATTERN)
    new_administrator: str = Field(..., pattern=ADDRESS_PATTERN)


class SlotResponse(BaseModel):
    slot_index: int
    buyer: str


class EventResponse(BaseModel):
    id: int
    event_type: str
    data: Dict[str, Any]
    block_height: int


# ============ Account ============

class FundRequest(BaseModel):
    amount: int = Field(..., ge=0)


class AccountResponse(BaseModel):
    address: str
    balance: int
