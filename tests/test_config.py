"""
GardenGuard - Configuration Tests
=================================

Tests for environment parsing and the protected-role rule.
"""

import pytest

from src.core.config import ConfigValidationError, has_protected_role, load_config


@pytest.fixture
def env(monkeypatch):
    """Required variables set, every optional one cleared."""
    for name in (
        "PROTECTED_ROLE_IDS",
        "EXCLUDED_CHANNEL_IDS",
        "EXCLUDED_CHANNEL_PATTERNS",
        "REPORT_INTERVAL_MINUTES",
        "WHITELIST_PATH",
        "LEDGER_RETENTION_DAYS",
        "IMPERSONATION_THRESHOLD",
        "ERROR_WEBHOOK_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DISCORD_TOKEN", "token")
    monkeypatch.setenv("SCAM_CHANNEL_ID", "5000")
    monkeypatch.setenv("BASE_ROLE_ID", "100")
    return monkeypatch


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self, env):
        """Optional settings fall back to their defaults."""
        config = load_config()

        assert config.scam_channel_id == 5000
        assert config.base_role_id == 100
        assert config.protected_role_ids == set()
        assert config.report_interval_minutes == 0
        assert config.ledger_retention_days == 7
        assert config.impersonation_threshold == 0.95
        assert config.error_webhook_url is None

    def test_all_missing_reported_together(self, env):
        """Every missing required variable is named in one error."""
        env.delenv("DISCORD_TOKEN")
        env.delenv("BASE_ROLE_ID")

        with pytest.raises(ConfigValidationError) as exc:
            load_config()
        assert "DISCORD_TOKEN" in str(exc.value)
        assert "BASE_ROLE_ID" in str(exc.value)

    def test_invalid_integer(self, env):
        """A non-numeric id fails validation."""
        env.setenv("SCAM_CHANNEL_ID", "general")
        with pytest.raises(ConfigValidationError):
            load_config()

    def test_lists_and_patterns(self, env):
        """Id lists skip junk; bad patterns are dropped."""
        env.setenv("PROTECTED_ROLE_IDS", "900, 901,abc,")
        env.setenv("EXCLUDED_CHANNEL_PATTERNS", "^ticket-,[broken")

        config = load_config()

        assert config.protected_role_ids == {900, 901}
        assert [p.pattern for p in config.excluded_channel_patterns] == ["^ticket-"]

    def test_clamping(self, env):
        """Out-of-range numbers are clamped, junk uses the default."""
        env.setenv("IMPERSONATION_THRESHOLD", "20")
        env.setenv("LEDGER_RETENTION_DAYS", "soon")
        env.setenv("REPORT_INTERVAL_MINUTES", "1440")

        config = load_config()

        assert config.impersonation_threshold == 0.5
        assert config.ledger_retention_days == 7
        assert config.report_interval_minutes == 1440

    def test_webhook_url_validated(self, env):
        """Non-http webhook values are ignored."""
        env.setenv("ERROR_WEBHOOK_URL", "not-a-url")
        assert load_config().error_webhook_url is None


class TestProtectedRole:
    """Tests for has_protected_role."""

    def test_holder(self):
        assert has_protected_role({100, 900}, {900})

    def test_non_holder(self):
        assert not has_protected_role({100}, {900})

    def test_unconfigured_means_everyone(self):
        """With no protected roles configured nobody is moderated."""
        assert has_protected_role({100}, set())
