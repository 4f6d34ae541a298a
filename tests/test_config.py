"""Tests for guardr.config — environment-bound settings."""

from __future__ import annotations

import pathlib

import pydantic
import pytest

from guardr import config


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("GUARDR_AUTO_RUN", "GUARDR_DEADLINE_SECONDS", "ENVIRONMENT"):
            monkeypatch.delenv(name, raising=False)
        settings = config.Settings()
        assert settings.auto_run is False
        assert settings.deadline_seconds == 30.0
        assert settings.recency_window_seconds == 60.0
        assert not settings.is_production

    def test_environment_binding(self, monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path) -> None:
        monkeypatch.setenv("GUARDR_AUTO_RUN", "true")
        monkeypatch.setenv("GUARDR_DEADLINE_SECONDS", "12.5")
        monkeypatch.setenv("GUARDR_STORE_DIR", str(tmp_path))
        monkeypatch.setenv("ENVIRONMENT", "production")
        settings = config.Settings()
        assert settings.auto_run is True
        assert settings.deadline_seconds == 12.5
        assert settings.store_dir == tmp_path
        assert settings.is_production

    def test_field_names_accepted(self, tmp_path: pathlib.Path) -> None:
        settings = config.Settings(deadline_seconds=3.0, store_dir=tmp_path)
        assert settings.deadline_seconds == 3.0

    def test_rejects_non_positive_deadline(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            config.Settings(deadline_seconds=0)


class TestGetSettings:
    def test_cached(self) -> None:
        config.get_settings.cache_clear()
        try:
            assert config.get_settings() is config.get_settings()
        finally:
            config.get_settings.cache_clear()
