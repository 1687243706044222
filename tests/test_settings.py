"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from otp_gate.core.settings import Settings
from otp_gate.services.challenge import ChallengePolicy


class TestSettings:
    """Defaults, overrides and required secrets."""

    def test_defaults(self, monkeypatch):
        for name in ("OTP_TTL_SECONDS", "OTP_ATTEMPT_LIMIT", "ALLOWED_ORIGINS"):
            monkeypatch.delenv(name, raising=False)
        config = Settings(HMAC_SECRET="x")

        assert config.otp_ttl_seconds == 300
        assert config.otp_resend_cooldown_seconds == 45
        assert config.otp_attempt_limit == 5
        assert config.otp_lock_seconds == 900
        assert config.verified_ttl_seconds == 1800
        assert config.cors_origins == []

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("OTP_TTL_SECONDS", "120")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://shop.example, https://www.shop.example")

        config = Settings(HMAC_SECRET="x")

        assert config.otp_ttl_seconds == 120
        assert config.cors_origins == ["https://shop.example", "https://www.shop.example"]

    def test_blank_secret_rejected(self):
        with pytest.raises(ValidationError):
            Settings(HMAC_SECRET="   ")

    def test_sync_database_url(self):
        config = Settings(HMAC_SECRET="x", DATABASE_URL="postgresql+asyncpg://u:p@db/otp")
        assert config.database_url_sync == "postgresql+psycopg://u:p@db/otp"

    def test_policy_from_settings(self):
        config = Settings(
            HMAC_SECRET="x",
            OTP_ATTEMPT_LIMIT=3,
            START_IP_MINUTE_LIMIT=7,
            VERIFY_IP_HOUR_LIMIT=50,
        )
        policy = ChallengePolicy.from_settings(config)

        assert policy.attempt_limit == 3
        assert policy.start_origin_rules[0].limit == 7
        assert policy.start_origin_rules[0].prefix == "rl:ip:1m"
        assert policy.verify_origin_rules[1].limit == 50
        assert policy.verify_origin_rules[1].window_seconds == 3600
