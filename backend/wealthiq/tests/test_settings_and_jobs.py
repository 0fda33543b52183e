"""
Tests for environment settings and the backfill CLI.
"""

from contextlib import contextmanager
from unittest.mock import patch

import pytest

from wealthiq.config.settings import SyncSettings, get_settings
from wealthiq.integrations.hubspot.exceptions import HubSpotValidationError
from wealthiq.workers import hubspot_backfill_job


class TestSyncSettings:

    def test_defaults(self, monkeypatch):
        for name in ("CLERK_WEBHOOK_SECRET", "HUBSPOT_API_KEY", "HUBSPOT_MIN_REQUEST_INTERVAL_SECONDS"):
            monkeypatch.delenv(name, raising=False)

        settings = SyncSettings.from_env()

        assert settings.hubspot_min_request_interval_seconds == 0.1
        assert settings.backfill_default_limit == 50
        assert settings.backfill_max_limit == 100
        assert settings.webhook_configured is False
        assert settings.hubspot_configured is False

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("CLERK_WEBHOOK_SECRET", "whsec_abc")
        monkeypatch.setenv("HUBSPOT_API_KEY", "pat-123")
        monkeypatch.setenv("HUBSPOT_BASE_URL", "https://hs.test/")
        monkeypatch.setenv("HUBSPOT_BACKFILL_MAX_LIMIT", "250")

        settings = get_settings()

        assert settings.webhook_configured is True
        assert settings.hubspot_configured is True
        assert settings.hubspot_base_url == "https://hs.test"
        assert settings.backfill_max_limit == 250

    def test_unsigned_bypass_allowed_outside_production(self, monkeypatch):
        monkeypatch.setenv("ENV", "development")
        monkeypatch.setenv("CLERK_WEBHOOK_ALLOW_UNSIGNED", "true")

        assert SyncSettings.from_env().allow_unsigned_webhooks is True

    def test_unsigned_bypass_ignored_in_production(self, monkeypatch):
        monkeypatch.setenv("ENV", "production")
        monkeypatch.setenv("CLERK_WEBHOOK_ALLOW_UNSIGNED", "true")

        settings = SyncSettings.from_env()

        assert settings.is_production is True
        assert settings.allow_unsigned_webhooks is False

    @pytest.mark.parametrize("value", ["fast", "-1"])
    def test_invalid_number_raises(self, monkeypatch, value):
        monkeypatch.setenv("HUBSPOT_MIN_REQUEST_INTERVAL_SECONDS", value)

        with pytest.raises(ValueError, match="HUBSPOT_MIN_REQUEST_INTERVAL_SECONDS"):
            SyncSettings.from_env()

    def test_webhook_tolerance_above_svix_window_raises(self, monkeypatch):
        monkeypatch.setenv("CLERK_WEBHOOK_TOLERANCE_SECONDS", "600")

        with pytest.raises(ValueError, match="CLERK_WEBHOOK_TOLERANCE_SECONDS must be at most 300"):
            SyncSettings.from_env()

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()


class TestBackfillJob:

    @pytest.fixture
    def run_job(self, db_session, hubspot, monkeypatch):
        monkeypatch.setenv("HUBSPOT_MIN_REQUEST_INTERVAL_SECONDS", "0")

        @contextmanager
        def scope():
            yield db_session
            db_session.commit()

        def _run(argv):
            with patch.object(hubspot_backfill_job, "get_hubspot_client", return_value=hubspot), \
                    patch.object(hubspot_backfill_job, "session_scope", scope):
                return hubspot_backfill_job.main(argv)

        return _run

    def test_all_synced_exits_zero(self, run_job, hubspot, make_user, capsys):
        make_user(email="a@example.com")

        assert run_job(["--limit", "5"]) == 0
        assert "1 synced, 0 errors (100.00%)" in capsys.readouterr().out
        assert hubspot.closed is True

    def test_item_errors_exit_two(self, run_job, hubspot, make_user, capsys):
        make_user(email="bad@example.com")
        hubspot.fail("create", "bad@example.com", HubSpotValidationError("Invalid email"))

        assert run_job([]) == 2
        assert "bad@example.com" in capsys.readouterr().out

    def test_missing_client_exits_one(self, db_session, monkeypatch):
        monkeypatch.delenv("HUBSPOT_API_KEY", raising=False)

        @contextmanager
        def scope():
            yield db_session

        with patch.object(hubspot_backfill_job, "session_scope", scope):
            assert hubspot_backfill_job.main(["--limit", "1"]) == 1

    def test_limit_must_be_positive(self):
        with pytest.raises(SystemExit):
            hubspot_backfill_job.main(["--limit", "0"])
