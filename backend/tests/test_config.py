"""Settings sanity checks."""

import pytest

from gstledger.core.config import Settings

GOOD_KEY = "k" * 40


class TestSettingsProblems:

    def test_clean_settings(self):
        settings = Settings(SECRET_KEY=GOOD_KEY)
        assert settings.settings_problems() == []
        assert settings.validate_security_settings() is True

    def test_default_key_only_warns_in_development(self):
        settings = Settings()
        with pytest.warns(UserWarning, match="published default"):
            assert settings.validate_security_settings() is False

    def test_production_refuses_bad_settings(self):
        settings = Settings(ENVIRONMENT="production", DEBUG=True, SECRET_KEY=GOOD_KEY)
        with pytest.raises(ValueError, match="DEBUG must be off"):
            settings.validate_security_settings()

    def test_seller_state_must_be_a_state_code(self):
        settings = Settings(SECRET_KEY=GOOD_KEY, DEFAULT_SELLER_STATE="MH")
        assert "two-digit GST state code" in settings.settings_problems()[0]

    def test_heroku_style_postgres_url(self):
        settings = Settings(SECRET_KEY=GOOD_KEY, DATABASE_URL="postgres://u:p@db/ledger")
        assert settings.database_url == "postgresql://u:p@db/ledger"
