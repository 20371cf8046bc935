from enum import Enum


class SourceKind(str, Enum):
    """Kinds of chain-data providers the registry can offer."""

    INDEXER = "indexer"
    EXPLORER = "explorer"
    RPC = "rpc"
    UTXO = "utxo"
    PRICE = "price"


class DedupKey(str, Enum):
    """Identity used when merging records from one adapter run."""

    ID = "id"
    HASH = "hash"
