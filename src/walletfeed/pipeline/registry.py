"""AdapterRegistry: every provider client and source adapter, built once per process."""

import logging

from walletfeed.config import Settings
from walletfeed.domain.enums import Network, SourceKind
from walletfeed.infra.http.rate_limited_client import RateLimitedClient
from walletfeed.infra.price.coingecko import CoinGeckoProvider
from walletfeed.infra.price.service import PriceEnrichmentEngine
from walletfeed.infra.sources.etherscan.adapter import EtherscanAdapter
from walletfeed.infra.sources.etherscan.client import EtherscanClient
from walletfeed.infra.sources.rpc.adapter import RpcAdapter
from walletfeed.infra.sources.rpc.client import EvmRpcClient
from walletfeed.infra.sources.subscan.adapter import SubscanAdapter
from walletfeed.infra.sources.subscan.client import BASE_URLS, SubscanClient
from walletfeed.infra.sources.utxo.adapter import UtxoAdapter
from walletfeed.infra.sources.utxo.mempool_client import MempoolClient

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Holds one rate-limited HTTP client per provider and the adapters that share them.

    Safe to share across concurrent orchestrator runs: adapters keep no
    per-wallet state, and the only cache is the per-chain RPC client map.
    """

    def __init__(
        self,
        indexer: SubscanAdapter | None = None,
        explorer: EtherscanAdapter | None = None,
        rpc: RpcAdapter | None = None,
        utxo: UtxoAdapter | None = None,
        price_engine: PriceEnrichmentEngine | None = None,
        http_clients: list[RateLimitedClient] | None = None,
    ) -> None:
        self.indexer = indexer
        self.explorer = explorer
        self.rpc = rpc
        self.utxo = utxo
        self.price_engine = price_engine
        self._http_clients = http_clients or []

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdapterRegistry":
        timeout = settings.http_timeout
        subscan_http = RateLimitedClient(settings.subscan_rate_per_second, timeout, name="subscan")
        etherscan_http = RateLimitedClient(settings.etherscan_rate_per_second, timeout, name="etherscan")
        rpc_http = RateLimitedClient(settings.rpc_rate_per_second, timeout, name="rpc")
        mempool_http = RateLimitedClient(settings.mempool_rate_per_second, timeout, name="mempool.space")
        coingecko_http = RateLimitedClient(settings.coingecko_rate_per_second, timeout, name="coingecko")

        indexer = SubscanAdapter({
            Network(name): SubscanClient(name, subscan_http, api_key=settings.subscan_api_key)
            for name in BASE_URLS
        })
        explorer = EtherscanAdapter(
            settings.etherscan_api_key,
            lambda api_key, chain: EtherscanClient(api_key, chain, etherscan_http),
        )
        rpc = RpcAdapter(settings.rpc_urls, lambda url: EvmRpcClient(url, rpc_http))
        utxo = UtxoAdapter(
            {
                Network.BITCOIN: MempoolClient(settings.mempool_base_url, mempool_http, Network.BITCOIN),
                Network.BITCOIN_TESTNET: MempoolClient(
                    settings.mempool_testnet_base_url, mempool_http, Network.BITCOIN_TESTNET
                ),
            },
            receiving_count=settings.xpub_receiving_count,
            change_count=settings.xpub_change_count,
        )
        price_engine = PriceEnrichmentEngine(CoinGeckoProvider(coingecko_http, api_key=settings.coingecko_api_key))

        return cls(
            indexer=indexer,
            explorer=explorer,
            rpc=rpc,
            utxo=utxo,
            price_engine=price_engine,
            http_clients=[subscan_http, etherscan_http, rpc_http, mempool_http, coingecko_http],
        )

    def indexer_for(self, network: Network) -> SubscanAdapter | None:
        if self.indexer is not None and self.indexer.supports(network):
            return self.indexer
        return None

    def explorer_for(self, network: Network) -> EtherscanAdapter | None:
        if self.explorer is not None and self.explorer.supports(network):
            return self.explorer
        return None

    def rpc_for(self, network: Network) -> RpcAdapter | None:
        if self.rpc is not None and self.rpc.supports(network):
            return self.rpc
        return None

    def utxo_for(self, network: Network) -> UtxoAdapter | None:
        if self.utxo is not None and self.utxo.supports(network):
            return self.utxo
        return None

    def detect_capabilities(self) -> set[SourceKind]:
        """Which provider kinds this process can use; queried once at startup."""
        kinds: set[SourceKind] = set()
        if self.indexer is not None:
            kinds.add(SourceKind.INDEXER)
        if self.explorer is not None and self.explorer.has_api_key:
            kinds.add(SourceKind.EXPLORER)
        if self.rpc is not None and self.rpc.networks:
            kinds.add(SourceKind.RPC)
        if self.utxo is not None:
            kinds.add(SourceKind.UTXO)
        if self.price_engine is not None:
            kinds.add(SourceKind.PRICE)
        logger.info("Detected source capabilities: %s", ", ".join(sorted(k.value for k in kinds)))
        return kinds

    async def aclose(self) -> None:
        for client in self._http_clients:
            await client.close()
