from datetime import UTC, datetime

import pytest

from walletfeed.domain.enums import Network, TxType
from walletfeed.domain.models.transaction import CanonicalTransaction


@pytest.fixture()
def make_tx():
    """Factory for canonical records with sensible defaults."""

    def _make(
        id: str,
        block_number: int,
        hash: str = "",
        network: Network = Network.POLKADOT,
        value: str = "10000000000",
        type: TxType = TxType.TRANSFER,
        timestamp: datetime | None = None,
        **kwargs,
    ) -> CanonicalTransaction:
        return CanonicalTransaction(
            id=id,
            hash=hash,
            block_number=block_number,
            timestamp=timestamp or datetime(2024, 3, 1, 12, 0, tzinfo=UTC),
            network=network,
            value=value,
            type=type,
            **kwargs,
        )

    return _make
