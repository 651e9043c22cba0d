from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer
from typing import Annotated, Optional
from datetime import datetime

from aidchain.models.donation import DonationStatus

LABEL_PATTERN = r"^[A-Za-z0-9_-]{1,32}$"

Label = Annotated[str, Field(pattern=LABEL_PATTERN)]

# Amounts go out as strings; JSON numbers lose precision past 2**53.
Amount = Annotated[int, PlainSerializer(str, return_type=str)]

def _reject_bool(value):
    if isinstance(value, bool):
        raise ValueError("amount must be an integer or a decimal string, not a boolean")
    return value

class CreateDonationRequest(BaseModel):
    donor: str = Field(min_length=1)
    amount: Annotated[int, BeforeValidator(_reject_bool)]
    category: Label
    region: Label
    organization: Label

class ConfirmDeliveryRequest(BaseModel):
    delivery_nft_id: Label

class DonationResponse(BaseModel):
    donor: str
    amount: Amount
    category: str
    region: str
    organization: str
    timestamp: datetime
    status: DonationStatus
    delivery_nft_id: Optional[str] = None

class DonationStatsResponse(BaseModel):
    total_donations: int
    total_amount: Amount
    category_stats: dict[str, int]
    region_stats: dict[str, int]

class TotalAmountResponse(BaseModel):
    total_amount: Amount

class DonationCountResponse(BaseModel):
    total_donations: int
