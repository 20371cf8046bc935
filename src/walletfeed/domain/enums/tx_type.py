from enum import Enum


class TxType(str, Enum):
    """Semantic category of a canonical transaction."""

    TRANSFER = "transfer"
    STAKING = "staking"
    GOVERNANCE = "governance"
    XCM = "xcm"
    CONTRACT = "contract"
    TOKEN_TRANSFER = "token_transfer"
    OTHER = "other"
