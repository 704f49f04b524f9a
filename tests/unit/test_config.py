from utils.config import AppConfig


def test_defaults(monkeypatch):
    for name in ("CUSTOMERS_TABLE", "BOOTSTRAP_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)
    config = AppConfig.from_environment()
    assert config.customers_table == "cabletv-customers"
    assert config.bootstrap_attempts == 3


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("CUSTOMERS_TABLE", "prod-customers")
    monkeypatch.setenv("BOOTSTRAP_ATTEMPTS", "5")
    monkeypatch.setenv("BOOTSTRAP_BACKOFF_SECONDS", "0.5")
    config = AppConfig.from_environment()
    assert config.customers_table == "prod-customers"
    assert config.bootstrap_attempts == 5
    assert config.bootstrap_backoff_seconds == 0.5


def test_payment_and_area_tables(monkeypatch):
    monkeypatch.delenv("AREAS_TABLE", raising=False)
    monkeypatch.setenv("PAYMENTS_TABLE", "prod-payments")
    config = AppConfig.from_environment()
    assert config.payments_table == "prod-payments"
    assert config.areas_table == "cabletv-areas"
