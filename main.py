# /main.py
# Wires the block source, the gas oracle, its poller and the HTTP surface onto one event loop.
import asyncio
import signal
from aiohttp import web

from gas_oracle.core.config import settings
from gas_oracle.core.config_validator import validate as validate_config
from gas_oracle.core.logger import configure_logging, get_logger
from gas_oracle.core.oracle import GasOracle
from gas_oracle.core.poller import Poller
from gas_oracle.core.http_api import create_app
from gas_oracle.adapters.block_source import Web3BlockSource

async def main():
    configure_logging()
    log = get_logger("GasOracle.System")
    validate_config()
    log.info("GAS_ORACLE_STARTING")

    # --- Initialize Core Components ---
    block_source = Web3BlockSource(settings.ethereum_url, timeout=settings.RPC_TIMEOUT_SECONDS)
    oracle = GasOracle(
        block_source,
        window_capacity=settings.WINDOW_CAPACITY,
        retention_depth=settings.RETENTION_DEPTH,
    )
    poller = Poller(
        oracle,
        block_source,
        polling_frequency=settings.POLLING_FREQUENCY,
        age_offset=settings.BOOTSTRAP_AGE_OFFSET,
        resync_on_deep_reorg=settings.RESYNC_ON_DEEP_REORG,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, poller.stop)

    # --- Start HTTP Server & Poll Loop ---
    runner = web.AppRunner(create_app(oracle))
    await runner.setup()
    site = web.TCPSite(runner, settings.HTTP_HOST, settings.HTTP_PORT)
    await site.start()
    log.info("HTTP_SERVER_STARTED", host=settings.HTTP_HOST, port=settings.HTTP_PORT)

    try:
        await poller.run_loop()
    finally:
        await runner.cleanup()
        await block_source.close()
        log.warning("SYSTEM_SHUTDOWN_COMPLETE")

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
