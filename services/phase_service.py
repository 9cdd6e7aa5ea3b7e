"""
階段服務：由名額售出數量與得主推導抽獎階段

抽獎不存階段欄位，只存事實（已售名額、得主），階段永遠由事實推導：
- SELLING: 已售 < 名額數量
- FULL: 已售 == 名額數量，且尚未選出得主
- WINNER_SELECTED: 已選出得主（終止狀態）
"""
from models import RafflePhase


def get_raffle_phase(slot_count: int, sold: int, winner) -> RafflePhase:
    """
    推導抽獎階段

    參數：
        slot_count: 名額數量
        sold: 已售出名額數
        winner: 得主身分（尚未揭曉為 None）

    返回：
        RafflePhase enum

    範例：
        get_raffle_phase(10, 3, None) -> RafflePhase.SELLING
        get_raffle_phase(10, 10, None) -> RafflePhase.FULL
        get_raffle_phase(10, 10, "0xabc...") -> RafflePhase.WINNER_SELECTED
    """
    if winner is not None:
        return RafflePhase.WINNER_SELECTED
    if sold < slot_count:
        return RafflePhase.SELLING
    return RafflePhase.FULL


def has_available_slots(slot_count: int, sold: int) -> bool:
    return sold < slot_count
