# /gas_oracle/core/decorators.py
# Reusable decorators for operational resilience.
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential, before_sleep_log
from gas_oracle.core.errors import BlockSourceError
from gas_oracle.core.logger import get_logger
import logging

log = get_logger(__name__)

# Block Source reads are idempotent, so a failed fetch is safe to repeat.
# Only transport-level failures are retried; the last one is re-raised to the poller.
retriable_network_call = retry(
    retry=retry_if_exception_type(BlockSourceError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.25, min=0.25, max=2),
    before_sleep=before_sleep_log(log, logging.WARNING),
    reraise=True # Re-raise the last exception after retries are exhausted
)
