import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.db import Base, get_db
from app.main import app
from app.modules.token_purchase import models, schemas, service

WALLET_A = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
WALLET_B = "0xAb8483F64d9C6d1EcF9b849Ae677dD3315835cb2"
WALLET_C = "0x4B20993Bc481177ec7E8f571ceCaE8A9e22C02db"

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()

@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session

@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

@pytest.fixture
def make_purchase(db):
    async def _make(
        wallet_address: str = WALLET_A,
        amount: str = "1000000000000000000",
        token: models.PaymentToken = models.PaymentToken.ETH,
        payment_amount: str = "0.5",
        payment_tx_hash: str = None,
    ) -> models.TokenPurchase:
        purchase_in = schemas.PurchaseTokenCreate(
            wallet_address=wallet_address,
            amount=amount,
            selected_payment_token=token,
            payment_amount=payment_amount,
            payment_tx_hash=payment_tx_hash,
        )
        return await service.create_token_purchase(db, purchase_in)
    return _make
