"""
Domain error → HTTP mapping

每個 RaffleException 都帶穩定的 code，回傳格式：
    {"detail": {"error": "<code>", "message": "<說明>"}}
"""
from fastapi import HTTPException

from core.exceptions import (
    RaffleException,
    RaffleNotFound,
    RegistryNotFound,
    SlotNotFound,
    Unauthorized,
    OwnerCannotBuyUnprivileged,
    FaucetDisabled,
    NoSlotsAvailable,
    SaleOngoing,
    WinnerAlreadyPicked,
)

_STATUS_BY_ERROR = (
    ((RaffleNotFound, RegistryNotFound, SlotNotFound), 404),
    ((Unauthorized, OwnerCannotBuyUnprivileged, FaucetDisabled), 403),
    ((NoSlotsAvailable, SaleOngoing, WinnerAlreadyPicked), 409),
)


def to_http_exception(error: RaffleException) -> HTTPException:
    status_code = 400
    for error_types, status in _STATUS_BY_ERROR:
        if isinstance(error, error_types):
            status_code = status
            break
    return HTTPException(
        status_code=status_code,
        detail={"error": error.code, "message": str(error)},
    )
