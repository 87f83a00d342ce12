import uuid
from sqlalchemy import Column, String, Boolean, DateTime, func, Enum, Uuid
from app.core.db import Base
import enum

class PaymentToken(str, enum.Enum):
    ETH = "ETH"
    USDT = "USDT"
    USDC = "USDC"

class TokenPurchase(Base):
    __tablename__ = "token_purchases"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    wallet_address = Column(String, index=True, nullable=False) # Recipient, not unique

    # Stored as strings; amounts in wei overflow 64-bit integers
    amount = Column(String, nullable=False)
    selected_payment_token = Column(Enum(PaymentToken, name="payment_token"), nullable=False)
    payment_amount = Column(String, nullable=False)
    payment_tx_hash = Column(String, nullable=True)

    fulfilled = Column(Boolean, default=False, index=True, nullable=False)
    tx_hash = Column(String, nullable=True) # Mint/transfer TX, first fulfillment wins

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
