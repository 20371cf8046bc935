"""Abstract base for chain-data source adapters."""

from abc import ABC, abstractmethod
from collections.abc import Callable

from walletfeed.domain.enums import Network, SyncStage
from walletfeed.domain.models.progress import SyncProgress
from walletfeed.domain.models.source_batch import SourceBatch

ProgressCallback = Callable[[SyncProgress], None]


class SourceAdapter(ABC):
    """Strategy interface for fetching one wallet's history from one provider."""

    name: str = "source"

    @abstractmethod
    def supports(self, network: Network) -> bool:
        """Whether this adapter can serve the network."""

    @abstractmethod
    async def fetch(
        self,
        network: Network,
        address: str,
        limit: int = 100,
        page: int = 0,
        on_progress: ProgressCallback | None = None,
    ) -> SourceBatch:
        """Fetch canonical records. Required calls raise; optional calls degrade to empty."""


def is_evm_address(address: str) -> bool:
    return address.startswith("0x") and len(address) == 42


def raw_int(value: object) -> str:
    """Normalize a provider amount ("15000000000", 15000000000, "0x3b9aca00", None) to a decimal string."""
    if value is None or value == "":
        return "0"
    if isinstance(value, int):
        return str(value)
    text = str(value).strip()
    if text.startswith("0x"):
        return str(int(text, 16))
    return str(int(text))


def report_fetching(on_progress: ProgressCallback | None, message: str, found: int, **fields: int) -> None:
    if on_progress is not None:
        on_progress(SyncProgress(stage=SyncStage.FETCHING, transactions_found=found, message=message, **fields))
