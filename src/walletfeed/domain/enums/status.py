from enum import Enum


class TxStatus(str, Enum):
    """On-chain execution outcome."""

    SUCCESS = "success"
    FAILED = "failed"


class SyncStage(str, Enum):
    """Orchestrator progress stages, emitted in this order."""

    CONNECTING = "connecting"
    FETCHING = "fetching"
    PROCESSING = "processing"
    SAVING = "saving"
    COMPLETE = "complete"
