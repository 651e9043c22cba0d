from aidchain.core.exceptions import StaleLedgerState
from aidchain.models.donation import Donation, DonationStats, LedgerState

class InMemoryLedgerStore:
    """
    Process-local ledger store. Hands out copies so nothing outside the
    store can reach the stored records.
    """
    def __init__(self, state: LedgerState | None = None):
        self._state = state if state is not None else LedgerState()

    def load(self) -> LedgerState:
        return self._state.model_copy(deep=True)

    def load_stats(self) -> tuple[DonationStats, int]:
        return self._state.stats.model_copy(deep=True), self._state.version

    def get_donation(self, index: int) -> Donation | None:
        if not 0 <= index < len(self._state.donations):
            return None
        return self._state.donations[index].model_copy()

    def _check_version(self, expected_version: int) -> None:
        if expected_version != self._state.version:
            raise StaleLedgerState(expected_version)

    def append(self, index: int, donation: Donation, stats: DonationStats, expected_version: int) -> int:
        self._check_version(expected_version)
        if index != len(self._state.donations):
            raise StaleLedgerState(expected_version)

        self._state.donations.append(donation.model_copy())
        self._state.stats = stats.model_copy(deep=True)
        self._state.version += 1
        return self._state.version

    def replace(self, index: int, donation: Donation, expected_version: int) -> int:
        self._check_version(expected_version)

        self._state.donations[index] = donation.model_copy()
        self._state.version += 1
        return self._state.version
