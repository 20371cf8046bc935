"""Merge records from several adapter calls into one ordered, unique list."""

from collections.abc import Iterable

from walletfeed.domain.enums import DedupKey
from walletfeed.domain.models.source_batch import SourceBatch
from walletfeed.domain.models.transaction import CanonicalTransaction


def identity(tx: CanonicalTransaction, key: DedupKey) -> str:
    if key == DedupKey.HASH and tx.hash:
        return tx.hash.lower()
    # Hashless records (rewards) keep their own identity under either key
    return tx.id


def deduplicate(
    primary: Iterable[CanonicalTransaction],
    *supplementary: Iterable[CanonicalTransaction],
    key: DedupKey = DedupKey.ID,
    limit: int | None = None,
) -> list[CanonicalTransaction]:
    """Drop duplicates, sort by block number descending, then truncate to `limit`.

    Iteration order is primary first, then each supplementary group, and the first
    occurrence wins, so a supplementary record never replaces a primary one.
    """
    seen: set[str] = set()
    unique: list[CanonicalTransaction] = []

    for group in (primary, *supplementary):
        for tx in group:
            ident = identity(tx, key)
            if ident in seen:
                continue
            seen.add(ident)
            unique.append(tx)

    # sorted() is stable: ties keep primary-before-supplementary order
    unique = sorted(unique, key=lambda tx: tx.block_number, reverse=True)

    if limit is not None:
        unique = unique[:limit]
    return unique


def dedupe_batch(batch: SourceBatch, limit: int | None = None) -> list[CanonicalTransaction]:
    return deduplicate(batch.primary, *batch.supplementary, key=batch.dedup_key, limit=limit)
