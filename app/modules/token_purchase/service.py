"""
Token purchase records: creation, lookup and fulfillment.

Token amounts are decimal strings in wei. Fulfillment is first-write-wins:
once a purchase is fulfilled its tx_hash is never overwritten, and repeated
fulfillment calls return the stored record unchanged.
"""
import logging
from collections import Counter
from typing import List, Sequence
from uuid import UUID
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.exceptions import TokenPurchaseNotFound
from app.modules.token_purchase import models, schemas

logger = logging.getLogger(__name__)

TokenPurchase = models.TokenPurchase

# Ids bound per IN (...) clause; asyncpg caps a statement at 32767 parameters.
ID_CHUNK_SIZE = 5000

def _chunks(items: Sequence, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]

async def create_token_purchase(db: AsyncSession, purchase_in: schemas.PurchaseTokenCreate) -> TokenPurchase:
    logger.info(f"Creating token purchase for wallet {purchase_in.wallet_address}")
    purchase = TokenPurchase(
        wallet_address=purchase_in.wallet_address,
        amount=purchase_in.amount,
        selected_payment_token=purchase_in.selected_payment_token,
        payment_amount=purchase_in.payment_amount,
        payment_tx_hash=purchase_in.payment_tx_hash,
        fulfilled=False,
    )
    db.add(purchase)
    await db.commit()
    await db.refresh(purchase)
    return purchase

async def _find(db: AsyncSession, *criteria) -> List[TokenPurchase]:
    stmt = select(TokenPurchase).execution_options(populate_existing=True)
    if criteria:
        stmt = stmt.where(*criteria)
    result = await db.execute(stmt)
    return list(result.scalars().all())

async def get_all_token_purchases(db: AsyncSession) -> List[TokenPurchase]:
    logger.info("Retrieving all token purchases")
    return await _find(db)

async def get_token_purchase_by_id(db: AsyncSession, purchase_id: str) -> TokenPurchase:
    logger.info(f"Retrieving token purchase with ID: {purchase_id}")
    try:
        uuid_id = UUID(str(purchase_id))
    except ValueError:
        # Malformed ids can never match a record
        raise TokenPurchaseNotFound(str(purchase_id))

    purchase = await db.get(TokenPurchase, uuid_id, populate_existing=True)
    if not purchase:
        raise TokenPurchaseNotFound(str(purchase_id))
    return purchase

async def get_token_purchases_by_wallet(db: AsyncSession, wallet_address: str) -> List[TokenPurchase]:
    logger.info(f"Retrieving token purchases for wallet address: {wallet_address}")
    purchases = await _find(db, TokenPurchase.wallet_address == wallet_address)
    if not purchases:
        logger.warning(f"No token purchases found for wallet: {wallet_address}")
    return purchases

async def get_fulfilled_token_purchases(db: AsyncSession) -> List[TokenPurchase]:
    logger.info("Retrieving all fulfilled token purchases")
    return await _find(db, TokenPurchase.fulfilled == True)

async def get_pending_token_purchases(db: AsyncSession) -> List[TokenPurchase]:
    logger.info("Retrieving all pending token purchases")
    return await _find(db, TokenPurchase.fulfilled == False)

async def _mark_fulfilled(db: AsyncSession, purchases: Sequence[TokenPurchase], tx_hash: str) -> List[TokenPurchase]:
    """
    Sets fulfilled/tx_hash on every purchase that is still pending and returns
    the reloaded records in the order given.
    The UPDATE is guarded by `fulfilled = false`, so a record fulfilled
    concurrently keeps its first hash.
    """
    if not purchases:
        return []

    ids = [p.id for p in purchases]
    pending_ids = [p.id for p in purchases if not p.fulfilled]
    if pending_ids:
        for chunk in _chunks(pending_ids, ID_CHUNK_SIZE):
            await db.execute(
                update(TokenPurchase)
                .where(TokenPurchase.id.in_(chunk), TokenPurchase.fulfilled == False)
                .values(fulfilled=True, tx_hash=tx_hash)
                .execution_options(synchronize_session=False)
            )
        await db.commit()

    by_id = {}
    for chunk in _chunks(ids, ID_CHUNK_SIZE):
        result = await db.execute(
            select(TokenPurchase)
            .where(TokenPurchase.id.in_(chunk))
            .execution_options(populate_existing=True)
        )
        by_id.update((p.id, p) for p in result.scalars().all())
    return [by_id[i] for i in ids]

def _log_wallet_summary(purchases: Sequence[TokenPurchase]) -> None:
    wallet_counts = Counter(p.wallet_address for p in purchases)
    for wallet, count in wallet_counts.items():
        logger.info(f"Fulfilled {count} purchases for wallet: {wallet}")
    logger.info(
        f"Successfully fulfilled {len(purchases)} token purchases across {len(wallet_counts)} wallets"
    )

async def fulfill_token_purchase(db: AsyncSession, purchase_id: str, tx_hash: str) -> TokenPurchase:
    logger.info(f"Fulfilling token purchase with ID: {purchase_id}")
    purchase = await get_token_purchase_by_id(db, purchase_id)

    if purchase.fulfilled:
        logger.warning(f"Token purchase {purchase_id} is already fulfilled")
        return purchase

    [updated] = await _mark_fulfilled(db, [purchase], tx_hash)
    return updated

async def fulfill_by_wallet(db: AsyncSession, wallet_address: str, tx_hash: str) -> List[TokenPurchase]:
    logger.info(f"Fulfilling all pending token purchases for wallet: {wallet_address}")
    pending = await _find(
        db,
        TokenPurchase.wallet_address == wallet_address,
        TokenPurchase.fulfilled == False,
    )
    if not pending:
        logger.warning(f"No pending token purchases found for wallet: {wallet_address}")
        return []

    updated = await _mark_fulfilled(db, pending, tx_hash)
    logger.info(f"Successfully fulfilled {len(updated)} token purchases for wallet: {wallet_address}")
    return updated

async def fulfill_by_ids(db: AsyncSession, ids: Sequence[str], tx_hash: str) -> List[TokenPurchase]:
    """
    Fulfills the given purchases. A missing id aborts the whole call with
    TokenPurchaseNotFound before anything is written.
    Already fulfilled purchases are returned as stored.
    """
    logger.info(f"Fulfilling token purchases with IDs: {', '.join(ids)}")

    purchases = []
    for purchase_id in ids:
        try:
            purchases.append(await get_token_purchase_by_id(db, purchase_id))
        except TokenPurchaseNotFound as e:
            logger.error(f"Error retrieving token purchase with ID: {purchase_id}. {e.detail}")
            raise

    for purchase in purchases:
        if purchase.fulfilled:
            logger.warning(f"Token purchase {purchase.id} is already fulfilled. Skipping.")

    updated = await _mark_fulfilled(db, purchases, tx_hash)
    logger.info(f"Successfully fulfilled {len(updated)} token purchases")
    return updated

async def fulfill_by_wallets(db: AsyncSession, wallet_addresses: Sequence[str], tx_hash: str) -> List[TokenPurchase]:
    logger.info(f"Fulfilling token purchases for wallet addresses: {', '.join(wallet_addresses)}")
    pending = await _find(
        db,
        TokenPurchase.wallet_address.in_(list(wallet_addresses)),
        TokenPurchase.fulfilled == False,
    )
    if not pending:
        logger.warning("No pending token purchases found for the provided wallet addresses")
        return []

    updated = await _mark_fulfilled(db, pending, tx_hash)
    _log_wallet_summary(updated)
    return updated

async def fulfill_all_pending(db: AsyncSession, tx_hash: str) -> List[TokenPurchase]:
    logger.info(f"Fulfilling all pending token purchases with transaction hash: {tx_hash}")
    pending = await get_pending_token_purchases(db)
    if not pending:
        logger.warning("No pending token purchases found to fulfill")
        return []

    updated = await _mark_fulfilled(db, pending, tx_hash)
    _log_wallet_summary(updated)
    return updated
