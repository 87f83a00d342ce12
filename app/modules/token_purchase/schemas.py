from typing import Annotated, List, Optional
from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel
from datetime import datetime
from uuid import UUID
from app.modules.token_purchase.models import PaymentToken

EthereumAddress = Annotated[str, StringConstraints(pattern=r"^0x[0-9a-fA-F]{40}$")]
NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
IntegerAmount = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^\d+$")]
DecimalAmount = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^\d+(\.\d+)?$")]

# camelCase over the wire, snake_case in Python
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class RequestModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

class PurchaseTokenCreate(RequestModel):
    wallet_address: EthereumAddress = Field(examples=["0x742d35Cc6634C0532925a3b844Bc454e4438f44e"])
    amount: IntegerAmount = Field(description="Token amount in wei", examples=["1000000000000000000"])
    selected_payment_token: PaymentToken = Field(examples=["ETH"])
    payment_amount: DecimalAmount = Field(examples=["0.5"])
    payment_tx_hash: Optional[NonEmptyStr] = None

class FulfillTokenPurchase(RequestModel):
    tx_hash: NonEmptyStr = Field(
        description="Transaction hash of the mint/transfer",
        examples=["0x4f9cdc85efc39d3ffcf9b659a1cb2c4c5605dde0dbc97a8e02dfc69558cad94b"],
    )

class FulfillByIds(FulfillTokenPurchase):
    ids: List[NonEmptyStr] = Field(min_length=1)

class FulfillByWalletAddresses(FulfillTokenPurchase):
    wallet_addresses: List[EthereumAddress] = Field(min_length=1)

class TokenPurchaseRead(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    wallet_address: str
    amount: str
    selected_payment_token: PaymentToken
    payment_amount: str
    payment_tx_hash: Optional[str] = None
    fulfilled: bool
    tx_hash: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class MintData(BaseModel):
    recipients: List[str]
    amounts: List[str]
