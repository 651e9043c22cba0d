import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Protocol, TypeVar
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from aidchain.core.exceptions import IndexOutOfBounds, InvalidAmount, StaleLedgerState, StoreThrottled
from aidchain.models.donation import Donation, DonationStats, LedgerState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerStore(Protocol):
    def load(self) -> LedgerState: ...

    def load_stats(self) -> tuple[DonationStats, int]: ...

    def get_donation(self, index: int) -> Donation | None: ...

    def append(self, index: int, donation: Donation, stats: DonationStats, expected_version: int) -> int: ...

    def replace(self, index: int, donation: Donation, expected_version: int) -> int: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LedgerService:
    """
    Donation ledger and aggregation engine.

    Each operation runs as one unit of work against the store while holding
    the engine lock. Writes are conditioned on the ledger version read at the
    start of the unit; a store shared between processes reports a lost race
    with StaleLedgerState and a throttled call with StoreThrottled. Both are
    retried here with back-off, and the lock is released between attempts.
    """
    def __init__(
        self,
        store: LedgerStore,
        clock: Callable[[], datetime] = utc_now,
        retry_attempts: int = 5
    ):
        self.store = store
        self.clock = clock
        self.retry_attempts = retry_attempts
        self._lock = threading.Lock()

    def _run(self, unit: Callable[[], T]) -> T:
        retrying = Retrying(
            wait=wait_exponential(multiplier=0.05, max=2),
            stop=stop_after_attempt(self.retry_attempts),
            retry=retry_if_exception_type((StaleLedgerState, StoreThrottled)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )
        for attempt in retrying:
            with attempt:
                with self._lock:
                    result = unit()
        return result

    def create(self, donor: str, amount: int, category: str, region: str, organization: str) -> Donation:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            logger.warning(
                f"Rejected donation from {donor}: invalid amount {amount!r}.",
                extra={"donor": donor}
            )
            raise InvalidAmount(amount)

        def append() -> tuple[int, int, Donation]:
            stats, version = self.store.load_stats()
            index = stats.total_donations
            donation = Donation(
                donor=donor,
                amount=amount,
                category=category,
                region=region,
                organization=organization,
                timestamp=self.clock(),
            )
            stats.record(donation)
            new_version = self.store.append(index, donation, stats, version)
            return index, new_version, donation

        index, version, donation = self._run(append)
        logger.info(
            f"Recorded donation of {amount} from {donor} for {category}/{region}.",
            extra={"donation_index": index, "donor": donor, "ledger_version": version}
        )
        return donation.model_copy()

    def list_donations(self) -> list[Donation]:
        return self._run(self.store.load).donations

    def list_by_donor(self, donor: str) -> list[Donation]:
        return [d for d in self.list_donations() if d.donor == donor]

    def list_by_category(self, category: str) -> list[Donation]:
        return [d for d in self.list_donations() if d.category == category]

    def list_by_region(self, region: str) -> list[Donation]:
        return [d for d in self.list_donations() if d.region == region]

    def confirm_delivery(self, index: int, delivery_token_id: str) -> Donation:
        def confirm() -> tuple[int, Donation]:
            stats, version = self.store.load_stats()
            donation = None
            if 0 <= index < stats.total_donations:
                donation = self.store.get_donation(index)
            if donation is None:
                logger.warning(
                    f"Rejected delivery confirmation for missing donation {index}.",
                    extra={"donation_index": index}
                )
                raise IndexOutOfBounds(index, stats.total_donations)

            # Re-confirming overwrites the previous token.
            donation.status = "delivered"
            donation.delivery_nft_id = delivery_token_id
            return self.store.replace(index, donation, version), donation

        version, donation = self._run(confirm)
        logger.info(
            f"Confirmed delivery of donation {index} with token {delivery_token_id}.",
            extra={"donation_index": index, "donor": donation.donor, "ledger_version": version}
        )
        return donation.model_copy()

    def get_stats(self) -> DonationStats:
        stats, _ = self._run(self.store.load_stats)
        return stats

    def get_total_amount(self) -> int:
        return self.get_stats().total_amount

    def get_donation_count(self) -> int:
        return self.get_stats().total_donations
