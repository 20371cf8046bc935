"""End-to-end sync against live providers.

Usage:
    PYTHONPATH=src python scripts/e2e_sync.py

Runs the full pipeline for a few well-known public wallets:
  1. Build the adapter registry from settings (.env)
  2. Fetch, classify and deduplicate each wallet's recent history
  3. Attach historical USD values (CoinGecko)
  4. Print a short summary per wallet
"""

import asyncio
import logging
import sys
import time

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)-5s %(name)s - %(message)s")
logger = logging.getLogger("e2e_sync")

# Suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# -- Test wallets (public, well-known) --
POLKADOT_TEST_ADDRESS = "13UVJyLnbVp9RBZYFwFGyDvVd1y27Tt8tkntv6Q7JVPhFsTB"
ETH_TEST_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
BTC_TEST_ADDRESS = "bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq"

LIMIT = 25


def separator(title: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"  {title}")
    print(f"{'=' * 60}\n")


def print_progress(event) -> None:
    print(f"    [{event.stage.value:<10}] {event.message}")


async def main() -> None:
    from walletfeed.config import settings
    from walletfeed.domain.enums import Network
    from walletfeed.pipeline.orchestrator import TransactionOrchestrator
    from walletfeed.pipeline.registry import AdapterRegistry

    separator("E2E Sync - walletfeed")
    print(f"Etherscan:    {'configured' if settings.etherscan_api_key else 'NOT SET'}")
    print(f"Subscan:      {'configured' if settings.subscan_api_key else 'public tier (no key)'}")
    print(f"CoinGecko:    {'configured' if settings.coingecko_api_key else 'free tier (no key)'}")

    registry = AdapterRegistry.from_settings(settings)
    orchestrator = TransactionOrchestrator(registry)
    print(f"Sources:      {', '.join(sorted(k.value for k in registry.detect_capabilities()))}")

    wallets = [(Network.POLKADOT, POLKADOT_TEST_ADDRESS), (Network.BITCOIN, BTC_TEST_ADDRESS)]
    if settings.etherscan_api_key:
        wallets.append((Network.ETHEREUM, ETH_TEST_ADDRESS))
    else:
        print("SKIP Ethereum - no ETHERSCAN_API_KEY set")

    failures = 0
    try:
        for network, address in wallets:
            separator(f"{network.value}: {address[:12]}...")
            t0 = time.time()
            try:
                records = await orchestrator.fetch_all_transactions(
                    network, address, limit=LIMIT, on_progress=print_progress, enrich=True,
                )
            except Exception:
                failures += 1
                logger.exception("Failed to sync %s wallet", network.value)
                continue

            elapsed = time.time() - t0
            priced = sum(1 for tx in records if tx.usd_value is not None)
            print(f"\n  {len(records)} transactions in {elapsed:.1f}s ({priced} priced)")
            for tx in records[:5]:
                usd = f"${tx.usd_value:,.2f}" if tx.usd_value is not None else "-"
                print(f"    #{tx.block_number:<10} {tx.section}.{tx.method:<20} {tx.amount} {tx.asset_symbol} {usd}")
    finally:
        await registry.aclose()

    separator("E2E Sync Complete")
    if failures:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
