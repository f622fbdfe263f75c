import logging
from pathlib import Path

import pytest

from daybook import Settings, configure_logging


@pytest.mark.store
def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DAYBOOK_DATA_DIR", "/srv/books")
    monkeypatch.setenv("DAYBOOK_ACCOUNTING_MODEL", "simple")
    settings = Settings()
    assert settings.data_dir == Path("/srv/books")
    assert settings.accounting_model == "simple"
    assert settings.cash_account == "Cash in Hand"


@pytest.mark.store
def test_unknown_accounting_model_is_rejected(monkeypatch):
    monkeypatch.setenv("DAYBOOK_ACCOUNTING_MODEL", "triple")
    with pytest.raises(ValueError):
        Settings()


@pytest.mark.store
def test_configure_logging(settings):
    root = logging.getLogger()
    level = root.level
    configure_logging(settings.model_copy(update={"log_level": "debug"}))
    assert root.level == logging.DEBUG
    root.setLevel(level)
