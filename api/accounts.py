"""
Account API Endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import FundRequest, AccountResponse
from core.account_manager import AccountManager
from core.exceptions import RaffleException
from api.errors import to_http_exception

router = APIRouter(prefix="/api/accounts", tags=["accounts"])
logger = logging.getLogger(__name__)


@router.get("/{address}", response_model=AccountResponse)
def get_account(address: str, db: Session = Depends(get_db)):
    return AccountResponse(
        address=address.lower(),
        balance=AccountManager.get_balance(db, address),
    )


@router.post("/{address}/fund", response_model=AccountResponse)
def fund_account(address: str, data: FundRequest, db: Session = Depends(get_db)):
    """
    水龍頭（開發用）

    異常：
        403 FaucetDisabled: 設定關閉了水龍頭
    """
    try:
        balance = AccountManager.fund(db, address, data.amount)
        return AccountResponse(address=address.lower(), balance=balance)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to fund account: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
