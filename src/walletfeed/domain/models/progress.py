from pydantic import BaseModel

from walletfeed.domain.enums import SyncStage
from walletfeed.domain.models.transaction import CanonicalTransaction


class SyncProgress(BaseModel):
    """One progress event of an orchestrator run."""

    stage: SyncStage
    current_block: int = 0
    total_blocks: int = 0
    blocks_scanned: int = 0
    transactions_found: int = 0
    message: str = ""
    transactions: list[CanonicalTransaction] | None = None  # set on COMPLETE only
