"""
Registry API Endpoints

職責：
1. 部署 Registry
2. 透過 Registry 建立抽獎
3. 查詢 Registry 與已建立的抽獎
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import (
    RegistryDeploy,
    RegistryResponse,
    RegistryRaffleList,
    RaffleCreate,
    RaffleResponse,
    AdministratorTransfer,
)
from core.registry_manager import RegistryManager
from core.exceptions import RaffleException
from api.errors import to_http_exception
from api.raffles import build_raffle_response

router = APIRouter(prefix="/api/registries", tags=["registries"])
logger = logging.getLogger(__name__)


def build_registry_response(db: Session, address: str) -> RegistryResponse:
    registry = RegistryManager.get_registry(db, address)
    return RegistryResponse(
        address=registry.address,
        administrator=registry.administrator,
        count=RegistryManager.count(db, registry.address),
    )


@router.post("", response_model=RegistryResponse)
def deploy_registry(data: RegistryDeploy, db: Session = Depends(get_db)):
    try:
        registry = RegistryManager.deploy_registry(db, data.administrator)
        return build_registry_response(db, registry.address)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to deploy registry: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{address}", response_model=RegistryResponse)
def get_registry(address: str, db: Session = Depends(get_db)):
    """
    取得 Registry 資訊

    返回：
        - administrator: Registry 管理員
        - count: 已建立的抽獎數量
    """
    try:
        return build_registry_response(db, address)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get registry: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{address}/raffles", response_model=RegistryRaffleList)
def list_raffles(address: str, db: Session = Depends(get_db)):
    try:
        raffles = RegistryManager.list_raffles(db, address)
        return RegistryRaffleList(address=address.lower(), raffles=raffles)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to list raffles: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{address}/raffles", response_model=RaffleResponse)
def create_raffle(address: str, data: RaffleCreate, db: Session = Depends(get_db)):
    """
    透過 Registry 建立抽獎（只有 Registry 管理員可以）

    新抽獎的管理員會是 Registry 管理員
    """
    try:
        raffle = RegistryManager.create_raffle(
            db, address, data.caller, data.slot_count, data.slot_price, data.provenance_hash
        )
        return build_raffle_response(db, raffle)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create raffle via registry: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{address}/administrator", response_model=RegistryResponse)
def transfer_administration(address: str, data: AdministratorTransfer, db: Session = Depends(get_db)):
    try:
        registry = RegistryManager.transfer_administration(
            db, address, data.caller, data.new_administrator
        )
        return build_registry_response(db, registry.address)

    except RaffleException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to transfer registry administration: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
