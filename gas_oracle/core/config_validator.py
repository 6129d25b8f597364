# /gas_oracle/core/config_validator.py
# A script to be run at startup to validate all configs and secrets.
from gas_oracle.core.config import settings
from gas_oracle.core.logger import log

def validate(config=settings):
    log.info("--- CONFIG VALIDATION START ---")
    errors = []

    if not config.ethereum_url:
        errors.append("Missing required configuration: ETHEREUM_URL")
    if config.WINDOW_CAPACITY < 1:
        errors.append("WINDOW_CAPACITY must be at least 1")
    if config.RETENTION_DEPTH < config.WINDOW_CAPACITY:
        errors.append("RETENTION_DEPTH must be at least WINDOW_CAPACITY")
    if not 0 <= config.BOOTSTRAP_AGE_OFFSET < config.RETENTION_DEPTH:
        errors.append("BOOTSTRAP_AGE_OFFSET must be non-negative and below RETENTION_DEPTH")

    if errors:
        for error in errors:
            log.critical(error)
        raise ValueError("System configuration is incomplete. Halting.")

    log.info("--- CONFIG VALIDATION PASSED ---")

if __name__ == "__main__":
    validate()
