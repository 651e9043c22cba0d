from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    status
)
from typing import Optional
import logging

from aidchain.core.dependencies import get_ledger_service
from aidchain.core.exceptions import IndexOutOfBounds, InvalidAmount, StaleLedgerState, StoreThrottled
from aidchain.services.ledger_service import LedgerService
from aidchain.api.schemas import (
    ConfirmDeliveryRequest,
    CreateDonationRequest,
    DonationCountResponse,
    DonationResponse,
    DonationStatsResponse,
    TotalAmountResponse
)

router = APIRouter()
logger = logging.getLogger(__name__)

def _ledger_busy(e: Exception) -> HTTPException:
    logger.error(f"Ledger unavailable after retries: {e}")
    return HTTPException(status_code=503, detail="Ledger is busy, retry later")

@router.post(
    "/donations",
    response_model=DonationResponse,
    status_code=status.HTTP_201_CREATED
)
def create_donation(
    body: CreateDonationRequest,
    ledger: LedgerService = Depends(get_ledger_service)
):
    try:
        donation = ledger.create(
            donor=body.donor,
            amount=body.amount,
            category=body.category,
            region=body.region,
            organization=body.organization
        )
    except InvalidAmount as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (StaleLedgerState, StoreThrottled) as e:
        raise _ledger_busy(e)

    return DonationResponse(**donation.model_dump())

@router.get(
    "/donations",
    response_model=list[DonationResponse]
)
def list_donations(
    donor: Optional[str] = None,
    category: Optional[str] = None,
    region: Optional[str] = None,
    ledger: LedgerService = Depends(get_ledger_service)
):
    filters = [f for f in (donor, category, region) if f is not None]
    if len(filters) > 1:
        raise HTTPException(status_code=400, detail="Filter by at most one of donor, category or region")

    if donor is not None:
        donations = ledger.list_by_donor(donor)
    elif category is not None:
        donations = ledger.list_by_category(category)
    elif region is not None:
        donations = ledger.list_by_region(region)
    else:
        donations = ledger.list_donations()

    return [DonationResponse(**d.model_dump()) for d in donations]

@router.post(
    "/donations/{index}/confirm-delivery",
    response_model=DonationResponse
)
def confirm_delivery(
    index: int,
    body: ConfirmDeliveryRequest,
    ledger: LedgerService = Depends(get_ledger_service)
):
    try:
        donation = ledger.confirm_delivery(index, body.delivery_nft_id)
    except IndexOutOfBounds as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (StaleLedgerState, StoreThrottled) as e:
        raise _ledger_busy(e)

    return DonationResponse(**donation.model_dump())

@router.get(
    "/stats",
    response_model=DonationStatsResponse
)
def get_stats(ledger: LedgerService = Depends(get_ledger_service)):
    return DonationStatsResponse(**ledger.get_stats().model_dump())

@router.get(
    "/stats/total-amount",
    response_model=TotalAmountResponse
)
def get_total_amount(ledger: LedgerService = Depends(get_ledger_service)):
    return TotalAmountResponse(total_amount=ledger.get_total_amount())

@router.get(
    "/stats/count",
    response_model=DonationCountResponse
)
def get_donation_count(ledger: LedgerService = Depends(get_ledger_service)):
    return DonationCountResponse(total_donations=ledger.get_donation_count())
