from booktractor.core.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("API_BASE_URL", raising=False)
    monkeypatch.delenv("AUTH_BASE_URL", raising=False)
    settings = Settings(_env_file=None)
    assert settings.rpc_url == "http://localhost:3000/api/trpc"
    assert settings.auth_url == "http://localhost:3000/api/auth"
    assert settings.LOGIN_ROUTE == "/auth/login"
    assert settings.DEFAULT_LOGIN_REDIRECT == "/owner"


def test_auth_origin_can_differ(monkeypatch):
    monkeypatch.setenv("API_BASE_URL", "https://api.example.com/")
    monkeypatch.setenv("AUTH_BASE_URL", "https://auth.example.com")
    settings = Settings(_env_file=None)
    assert settings.rpc_url == "https://api.example.com/api/trpc"
    assert settings.auth_url == "https://auth.example.com/api/auth"


def test_cors_allow_all(monkeypatch):
    monkeypatch.setenv("CORS_ALLOW_ALL", "true")
    assert Settings(_env_file=None).CORS_ORIGINS == ["*"]


def test_cors_origins_json_list(monkeypatch):
    monkeypatch.delenv("CORS_ALLOW_ALL", raising=False)
    monkeypatch.setenv("CORS_ORIGINS", '["https://app.example.com", "https://m.example.com"]')
    assert Settings(_env_file=None).CORS_ORIGINS == ["https://app.example.com", "https://m.example.com"]
