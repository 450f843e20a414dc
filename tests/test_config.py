from config import get_settings


def test_settings_read_budget_environment(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("BUDGET_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("BUDGET_DATABASE_URL", raising=False)
    monkeypatch.setenv("BUDGET_CURRENCY", "USD")
    monkeypatch.setenv("BUDGET_CACHE_TTL_SECS", "60")
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings.database_url == f"sqlite:///{tmp_path.resolve() / 'budget.db'}"
        assert settings.currency_code == "USD"
        assert settings.cache_ttl_secs == 60.0
        assert set(vars(settings)) == {
            "database_url",
            "timezone",
            "csrf_secret",
            "currency_code",
            "cache_ttl_secs",
            "cache_version",
        }
    finally:
        get_settings.cache_clear()
