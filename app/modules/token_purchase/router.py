import logging
from typing import Any, List
from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.modules.token_purchase import schemas, service

logger = logging.getLogger(__name__)

router = APIRouter()

WALLET_ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"

def to_http_exception(error: Exception) -> HTTPException:
    """Keeps the status an error already carries, otherwise 500."""
    if isinstance(error, HTTPException):
        return error
    status_code = getattr(error, "status_code", status.HTTP_500_INTERNAL_SERVER_ERROR)
    detail = getattr(error, "detail", None) or "Internal server error"
    return HTTPException(status_code=status_code, detail=detail)

def log_failure(message: str, error: Exception) -> HTTPException:
    """Logs a handler failure and returns the HTTPException to raise. Unexpected (5xx) errors keep their traceback."""
    http_error = to_http_exception(error)
    unexpected = http_error.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR
    logger.error(f"{message}: {error}", exc_info=unexpected)
    return http_error

@router.post("", response_model=schemas.TokenPurchaseRead, status_code=status.HTTP_201_CREATED)
async def create_token_purchase(
    purchase_in: schemas.PurchaseTokenCreate,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Create a token purchase request paid with ETH, USDT or USDC.
    """
    logger.info(f"Processing token purchase request for wallet {purchase_in.wallet_address}")
    try:
        return await service.create_token_purchase(db, purchase_in)
    except Exception as e:
        raise log_failure("Failed to create token purchase", e) from e

@router.get("", response_model=List[schemas.TokenPurchaseRead])
async def list_token_purchases(db: AsyncSession = Depends(get_db)) -> Any:
    try:
        return await service.get_all_token_purchases(db)
    except Exception as e:
        raise log_failure("Failed to retrieve token purchases", e) from e

@router.get("/wallet/{wallet_address}", response_model=List[schemas.TokenPurchaseRead])
async def list_token_purchases_by_wallet(
    wallet_address: str,
    db: AsyncSession = Depends(get_db)
) -> Any:
    try:
        return await service.get_token_purchases_by_wallet(db, wallet_address)
    except Exception as e:
        raise log_failure(f"Failed to retrieve token purchases for wallet {wallet_address}", e) from e

@router.get("/fulfilled", response_model=List[schemas.TokenPurchaseRead])
async def list_fulfilled_token_purchases(db: AsyncSession = Depends(get_db)) -> Any:
    try:
        return await service.get_fulfilled_token_purchases(db)
    except Exception as e:
        raise log_failure("Failed to retrieve fulfilled token purchases", e) from e

@router.get("/pending", response_model=List[schemas.TokenPurchaseRead])
async def list_pending_token_purchases(db: AsyncSession = Depends(get_db)) -> Any:
    try:
        return await service.get_pending_token_purchases(db)
    except Exception as e:
        raise log_failure("Failed to retrieve pending token purchases", e) from e

@router.get("/{id}", response_model=schemas.TokenPurchaseRead)
async def get_token_purchase(
    id: str,
    db: AsyncSession = Depends(get_db)
) -> Any:
    try:
        return await service.get_token_purchase_by_id(db, id)
    except Exception as e:
        raise log_failure(f"Failed to retrieve token purchase {id}", e) from e

# Admin fulfillment. Access control is left to the deployment.

@router.put("/fulfill/wallet/{wallet_address}", response_model=List[schemas.TokenPurchaseRead])
async def fulfill_by_wallet(
    payload: schemas.FulfillTokenPurchase,
    wallet_address: str = Path(pattern=WALLET_ADDRESS_PATTERN),
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Fulfill every pending purchase of one wallet with the same transaction hash.
    """
    try:
        return await service.fulfill_by_wallet(db, wallet_address, payload.tx_hash)
    except Exception as e:
        raise log_failure(f"Failed to fulfill token purchases for wallet {wallet_address}", e) from e

@router.put("/fulfill/batch/ids", response_model=List[schemas.TokenPurchaseRead])
async def fulfill_by_ids(
    payload: schemas.FulfillByIds,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Fulfill purchases by id. Any unknown id fails the whole request with 404.
    """
    try:
        return await service.fulfill_by_ids(db, payload.ids, payload.tx_hash)
    except Exception as e:
        raise log_failure("Failed to fulfill token purchases by ids", e) from e

@router.put("/fulfill/batch/wallets", response_model=List[schemas.TokenPurchaseRead])
async def fulfill_by_wallets(
    payload: schemas.FulfillByWalletAddresses,
    db: AsyncSession = Depends(get_db)
) -> Any:
    try:
        return await service.fulfill_by_wallets(db, payload.wallet_addresses, payload.tx_hash)
    except Exception as e:
        raise log_failure("Failed to fulfill token purchases by wallet addresses", e) from e

@router.put("/fulfill/all-pending", response_model=List[schemas.TokenPurchaseRead])
async def fulfill_all_pending(
    payload: schemas.FulfillTokenPurchase,
    db: AsyncSession = Depends(get_db)
) -> Any:
    try:
        return await service.fulfill_all_pending(db, payload.tx_hash)
    except Exception as e:
        raise log_failure("Failed to fulfill all pending token purchases", e) from e

@router.put("/{id}/fulfill", response_model=schemas.TokenPurchaseRead)
async def fulfill_token_purchase(
    id: str,
    payload: schemas.FulfillTokenPurchase,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    Mark a purchase fulfilled. Repeated calls return the record unchanged;
    the first transaction hash is kept.
    """
    try:
        return await service.fulfill_token_purchase(db, id, payload.tx_hash)
    except Exception as e:
        raise log_failure(f"Failed to fulfill token purchase {id}", e) from e
