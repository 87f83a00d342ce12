"""
Exports pending token purchases for batch minting.

Writes {"recipients": [...], "amounts": [...]} (matching index order) to
<output-dir>/mint-data-<UTC timestamp>.json. Read-only: purchases are not
marked fulfilled here.

    python -m app.scripts.generate_mint_data --output-dir output
"""
import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

import aiofiles
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db import SessionLocal, engine
from app.core.log import setup_logging
from app.modules.token_purchase import models, schemas, service

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = Path("output")

def build_mint_data(purchases: Iterable[models.TokenPurchase]) -> schemas.MintData:
    purchases = list(purchases)
    return schemas.MintData(
        recipients=[p.wallet_address for p in purchases],
        amounts=[p.amount for p in purchases],
    )

def total_amount(amounts: Iterable[str]) -> int:
    # Python ints are arbitrary precision, wei totals do not overflow
    return sum(int(amount) for amount in amounts)

def mint_data_filename(now: datetime) -> str:
    return f"mint-data-{now.strftime('%Y-%m-%dT%H-%M-%S')}.json"

async def write_mint_data(mint_data: schemas.MintData, output_dir: Path, now: Optional[datetime] = None) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / mint_data_filename(now or datetime.now(timezone.utc))
    async with aiofiles.open(output_path, "w") as out_file:
        await out_file.write(json.dumps(mint_data.model_dump(), indent=2))
    return output_path

async def generate_mint_data(db: AsyncSession, output_dir: Path = DEFAULT_OUTPUT_DIR) -> Optional[Path]:
    """
    Returns the written file, or None when there is nothing pending.
    """
    logger.info("Fetching pending token purchases from database...")
    pending = await service.get_pending_token_purchases(db)
    logger.info(f"Found {len(pending)} pending token purchases")

    if not pending:
        logger.info("No pending purchases found. Nothing to export.")
        return None

    mint_data = build_mint_data(pending)
    output_path = await write_mint_data(mint_data, output_dir)
    logger.info(f"Mint data successfully generated and saved to: {output_path}")
    logger.info(f"Total Recipients: {len(mint_data.recipients)}")
    logger.info(f"Total Token Amount: {total_amount(mint_data.amounts)}")
    return output_path

async def main(output_dir: Path) -> int:
    try:
        async with SessionLocal() as session:
            await generate_mint_data(session, output_dir)
    except Exception as e:
        logger.error(f"Error generating mint data: {e}", exc_info=True)
        return 1
    finally:
        await engine.dispose()
    return 0

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Export pending token purchases for minting")
    parser.add_argument("--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR)
    args = parser.parse_args()

    setup_logging(settings)
    sys.exit(asyncio.run(main(args.output_dir)))
