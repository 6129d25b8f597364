import pytest
from pydantic import ValidationError

from gas_oracle.core.config import Settings
from gas_oracle.core.config_validator import validate

def test_defaults():
    config = Settings(ETHEREUM_URL="http://localhost:8545")
    assert config.ethereum_url == "http://localhost:8545"
    assert config.POLLING_FREQUENCY == 1
    assert config.WINDOW_CAPACITY == 200
    assert config.BOOTSTRAP_AGE_OFFSET == 50
    assert config.RETENTION_DEPTH >= config.WINDOW_CAPACITY

@pytest.mark.parametrize("frequency", [0, 3601])
def test_polling_frequency_range(frequency):
    with pytest.raises(ValidationError):
        Settings(POLLING_FREQUENCY=frequency)

def test_polling_frequency_from_environment(monkeypatch):
    monkeypatch.setenv("POLLING_FREQUENCY", "15")
    assert Settings().POLLING_FREQUENCY == 15

def test_validate_passes_for_complete_config():
    validate(Settings(ETHEREUM_URL="http://localhost:8545"))

def test_validate_requires_endpoint():
    with pytest.raises(ValueError):
        validate(Settings(ETHEREUM_URL=None))

def test_validate_rejects_retention_below_capacity():
    with pytest.raises(ValueError):
        validate(Settings(ETHEREUM_URL="http://localhost:8545", WINDOW_CAPACITY=200, RETENTION_DEPTH=100))

def test_validate_rejects_age_offset_beyond_retention():
    with pytest.raises(ValueError):
        validate(Settings(ETHEREUM_URL="http://localhost:8545", BOOTSTRAP_AGE_OFFSET=300))
