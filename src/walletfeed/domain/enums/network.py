from enum import Enum


class Network(str, Enum):
    """Canonical network identifiers. Independent of any provider's naming."""

    POLKADOT = "polkadot"
    KUSAMA = "kusama"
    MOONBEAM = "moonbeam"
    MOONRIVER = "moonriver"
    ASTAR = "astar"
    ACALA = "acala"
    ETHEREUM = "ethereum"
    ARBITRUM = "arbitrum"
    OPTIMISM = "optimism"
    POLYGON = "polygon"
    BASE = "base"
    BSC = "bsc"
    AVALANCHE = "avalanche"
    BITCOIN = "bitcoin"
    BITCOIN_TESTNET = "testnet"


# Native asset symbol and decimals per network
NATIVE_ASSETS: dict[Network, tuple[str, int]] = {
    Network.POLKADOT: ("DOT", 10),
    Network.KUSAMA: ("KSM", 12),
    Network.MOONBEAM: ("GLMR", 18),
    Network.MOONRIVER: ("MOVR", 18),
    Network.ASTAR: ("ASTR", 18),
    Network.ACALA: ("ACA", 12),
    Network.ETHEREUM: ("ETH", 18),
    Network.ARBITRUM: ("ETH", 18),
    Network.OPTIMISM: ("ETH", 18),
    Network.POLYGON: ("MATIC", 18),
    Network.BASE: ("ETH", 18),
    Network.BSC: ("BNB", 18),
    Network.AVALANCHE: ("AVAX", 18),
    Network.BITCOIN: ("BTC", 8),
    Network.BITCOIN_TESTNET: ("BTC", 8),
}

UTXO_NETWORKS = frozenset({Network.BITCOIN, Network.BITCOIN_TESTNET})


def native_symbol(network: Network) -> str:
    return NATIVE_ASSETS[network][0]


def native_decimals(network: Network) -> int:
    return NATIVE_ASSETS[network][1]
