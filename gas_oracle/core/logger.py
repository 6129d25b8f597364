# /gas_oracle/core/logger.py
import logging
import structlog
import sentry_sdk
from prometheus_client import Counter
from gas_oracle.core.config import settings

# --- Prometheus Metrics ---
BLOCKS_ADDED = Counter("gas_oracle_blocks_added_total", "Blocks recorded in the rolling window")
BLOCKS_REMOVED = Counter("gas_oracle_blocks_removed_total", "Blocks popped from the rolling window by a reorg")
BLOCKS_SKIPPED = Counter("gas_oracle_blocks_skipped_total", "Blocks that produced no gas price observation")
TICKS = Counter("gas_oracle_ticks_total", "Poll ticks by outcome", ["outcome"])
TICK_FAILURES = Counter("gas_oracle_tick_failures_total", "Failed poll ticks by error kind", ["kind"])
REORGS = Counter("gas_oracle_reorgs_total", "Chain reorganisations handled by the reconciler")
RESYNCS = Counter("gas_oracle_resyncs_total", "Full resyncs after a reorg deeper than retention")

def configure_logging():
    if settings.SENTRY_DSN:
        sentry_sdk.init(dsn=settings.SENTRY_DSN.get_secret_value(), traces_sample_rate=1.0)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(), # Production-ready JSON logs
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

def get_logger(name: str):
    return structlog.get_logger(name)

configure_logging()
log = get_logger("GasOracle.System")
