"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from app.config import Settings


def test_jwt_secret_is_required(monkeypatch):
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)

    with pytest.raises(ValidationError) as exc_info:
        Settings(_env_file=None)

    assert "JWT_SECRET_KEY" in str(exc_info.value)


def test_scheduling_defaults(monkeypatch):
    monkeypatch.setenv("JWT_SECRET_KEY", "configured")
    for name in ("SLOT_INTERVAL_MINUTES", "MAX_SLOT_CANDIDATES", "SCHEDULING_ISOLATION_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    configured = Settings(_env_file=None)

    assert configured.jwt_secret_key == "configured"
    assert configured.slot_interval_minutes == 15
    assert configured.max_slot_candidates == 200
    assert configured.scheduling_isolation_level == "SERIALIZABLE"
