from __future__ import annotations

import pytest
from pydantic import ValidationError

from recordplan.config import Settings, get_settings


def test_get_settings_defaults() -> None:
    settings = get_settings()

    assert settings.store_backend == "memory"
    assert settings.db_port == 5432
    assert settings.documents_table == "documents"
    assert settings.unspecified_label == "unspecified"
    assert settings.margin_cost_ratio == 0.7
    assert settings.store_timeout_seconds > 0
    assert settings.stream_batch_size > 0


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORE_BACKEND", "postgres")
    monkeypatch.setenv("UNSPECIFIED_LABEL", "sem cliente")
    monkeypatch.setenv("MARGIN_COST_RATIO", "0.65")

    settings = get_settings()

    assert settings.store_backend == "postgres"
    assert settings.unspecified_label == "sem cliente"
    assert settings.margin_cost_ratio == 0.65


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(store_backend="firestore")
    with pytest.raises(ValidationError):
        Settings(unspecified_label="")
    with pytest.raises(ValidationError):
        Settings(store_timeout_seconds=0)
