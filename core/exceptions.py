"""
自定義異常類別

集中管理所有抽獎業務邏輯異常，方便 API 層統一處理

每個異常都是不可重試的驗證失敗：整筆交易會 rollback，
呼叫者必須修正輸入後重新送出。`code` 是穩定的錯誤名稱，API 會原樣回傳。
"""


class RaffleException(Exception):
    """所有抽獎異常的基類"""

    @property
    def code(self) -> str:
        return type(self).__name__


# ============ 建立相關異常 ============

class TooFewSlots(RaffleException):
    """名額數量不足（至少 2 個）"""
    def __init__(self, slot_count):
        self.slot_count = slot_count
        super().__init__(f"A raffle needs at least 2 slots, got {slot_count}")


class InvalidCommitment(RaffleException):
    """Provenance hash 為零，或揭曉的 indices/salt 與承諾不符"""
    pass


# ============ 購買相關異常 ============

class NoSlotsAvailable(RaffleException):
    """名額已售完"""
    pass


class OwnerCannotBuyUnprivileged(RaffleException):
    """管理員只能走特權購買，不能用一般購買灌水"""
    pass


class InsufficientPayment(RaffleException):
    """付款金額低於單價"""
    def __init__(self, paid_amount, slot_price):
        self.paid_amount = paid_amount
        self.slot_price = slot_price
        super().__init__(f"Paid {paid_amount}, slot price is {slot_price}")


class PrivilegedOnlyPurchase(RaffleException):
    """單價為 0：只允許管理員特權購買"""
    pass


# ============ 揭曉相關異常 ============

class SaleOngoing(RaffleException):
    """名額尚未售完，不能揭曉"""
    pass


class WinnerAlreadyPicked(RaffleException):
    """得主已經選出，揭曉只能成功一次"""
    pass


class ArrayLengthMismatch(RaffleException):
    """揭曉的 indices 長度與名額數量不一致"""
    def __init__(self, expected, got):
        self.expected = expected
        self.got = got
        super().__init__(f"Expected {expected} indices, got {got}")


class IndexOutOfBounds(RaffleException):
    """選中的名額編號超出範圍"""
    def __init__(self, slot_index, slot_count):
        self.slot_index = slot_index
        self.slot_count = slot_count
        super().__init__(f"Winning slot {slot_index} is outside [0, {slot_count})")


# ============ 權限相關異常 ============

class Unauthorized(RaffleException):
    """呼叫者不是管理員"""
    def __init__(self, caller):
        self.caller = caller
        super().__init__(f"Account {caller} is not the administrator")


class InvalidAdministrator(RaffleException):
    """新的管理員身分無效（空字串或零地址）"""
    pass


# ============ 帳本相關異常 ============

class InsufficientFunds(RaffleException):
    """帳戶餘額不足以支付"""
    def __init__(self, address, balance, amount):
        self.address = address
        self.balance = balance
        self.amount = amount
        super().__init__(f"Account {address} holds {balance}, cannot send {amount}")


class FaucetDisabled(RaffleException):
    """水龍頭已關閉"""
    pass


# ============ 查詢相關異常 ============

class RaffleNotFound(RaffleException):
    """抽獎不存在"""
    def __init__(self, address):
        self.address = address
        super().__init__(f"Raffle {address} not found")


class RegistryNotFound(RaffleException):
    """Registry 不存在"""
    def __init__(self, address):
        self.address = address
        super().__init__(f"Registry {address} not found")


class SlotNotFound(RaffleException):
    """名額尚未售出或編號超出範圍"""
    def __init__(self, address, slot_index):
        self.address = address
        self.slot_index = slot_index
        super().__init__(f"Raffle {address} has no slot {slot_index}")
