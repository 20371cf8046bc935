from pydantic import BaseModel

from walletfeed.domain.enums import DedupKey
from walletfeed.domain.models.transaction import CanonicalTransaction


class SourceBatch(BaseModel):
    """Records produced by one adapter run, in dedup iteration order."""

    primary: list[CanonicalTransaction] = []
    supplementary: list[list[CanonicalTransaction]] = []
    dedup_key: DedupKey = DedupKey.ID

    @property
    def total(self) -> int:
        return len(self.primary) + sum(len(group) for group in self.supplementary)
