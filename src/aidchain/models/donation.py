from datetime import datetime, timezone
from pydantic import BaseModel, Field
from typing import Literal


DonationStatus = Literal["pending", "delivered"]

class Donation(BaseModel):
    donor: str
    amount: int
    category: str
    region: str
    organization: str

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: DonationStatus = "pending"

    delivery_nft_id: str | None = None

class DonationStats(BaseModel):
    total_donations: int = 0
    total_amount: int = 0
    category_stats: dict[str, int] = Field(default_factory=dict)
    region_stats: dict[str, int] = Field(default_factory=dict)

    def record(self, donation: Donation) -> None:
        self.total_donations += 1
        self.total_amount += donation.amount
        self.category_stats[donation.category] = self.category_stats.get(donation.category, 0) + 1
        self.region_stats[donation.region] = self.region_stats.get(donation.region, 0) + 1

class LedgerState(BaseModel):
    """
    The two persisted cells, plus the version used for optimistic writes.
    """
    donations: list[Donation] = Field(default_factory=list)
    stats: DonationStats = Field(default_factory=DonationStats)
    version: int = 0
