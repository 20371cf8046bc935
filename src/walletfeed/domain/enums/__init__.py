from walletfeed.domain.enums.address_type import AddressType
from walletfeed.domain.enums.network import Network
from walletfeed.domain.enums.source import DedupKey, SourceKind
from walletfeed.domain.enums.status import SyncStage, TxStatus
from walletfeed.domain.enums.tx_type import TxType

__all__ = [
    "AddressType",
    "DedupKey",
    "Network",
    "SourceKind",
    "SyncStage",
    "TxStatus",
    "TxType",
]
