from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    etherscan_api_key: str = ""
    subscan_api_key: str = ""
    coingecko_api_key: str = ""
    # Per-provider spacing between consecutive calls (4/s = 250ms, 5/s = 200ms)
    subscan_rate_per_second: float = 4.0
    etherscan_rate_per_second: float = 5.0
    rpc_rate_per_second: float = 5.0
    coingecko_rate_per_second: float = 4.0
    mempool_rate_per_second: float = 10.0
    http_timeout: float = 30.0
    rpc_urls: dict[str, str] = {
        "moonbeam": "https://rpc.api.moonbeam.network",
        "moonriver": "https://rpc.api.moonriver.moonbeam.network",
        "astar": "https://evm.astar.network",
        "acala": "https://eth-rpc-acala.aca-api.network",
        "ethereum": "https://eth.llamarpc.com",
    }
    mempool_base_url: str = "https://mempool.space/api"
    mempool_testnet_base_url: str = "https://mempool.space/testnet/api"
    xpub_receiving_count: int = 20
    xpub_change_count: int = 10
    default_limit: int = 100

    class Config:
        env_file = ".env"


settings = Settings()
