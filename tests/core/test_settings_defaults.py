import importlib

import config.settings.base as base_settings


def test_base_settings_import_with_clean_environment(monkeypatch):
    for name in ("CURRENCY", "CURRENCY_SYMBOL", "COMMISSION_OTE_POLICY", "COMMISSION_DEFAULT_ENABLED"):
        monkeypatch.delenv(name, raising=False)

    module = importlib.reload(base_settings)

    assert module.CURRENCY == "USD"
    assert module.COMMISSION_OTE_POLICY == "committed"
    assert module.COMMISSION_DEFAULT_CONFIG["base_commission_rate"] == "0.10"


def test_business_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("CURRENCY", "EUR")
    monkeypatch.setenv("COMMISSION_DEFAULT_ENABLED", "False")

    module = importlib.reload(base_settings)

    assert module.CURRENCY == "EUR"
    assert module.COMMISSION_DEFAULT_CONFIG is None

    monkeypatch.undo()
    importlib.reload(base_settings)
