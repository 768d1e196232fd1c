from app import create_app


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


def test_test_endpoint(client):
    response = client.get("/api/test")

    body = response.get_json()
    assert response.status_code == 200
    assert body["ok"] is True
    assert "time" in body


def test_recaptcha_config_exposes_site_keys_only(client):
    response = client.get("/api/recaptcha-config")

    assert response.get_json() == {
        "recaptchaV3": "site-v3",
        "recaptchaV2": "site-v2",
        "v2Only": False,
    }
    assert b"secret" not in response.data


def test_unknown_route_returns_json_404(client):
    response = client.get("/does-not-exist")

    assert response.status_code == 404
    assert response.get_json()["success"] is False


def test_wrong_method_returns_json_405(client):
    response = client.get("/api/verify-recaptcha")

    assert response.status_code == 405


def test_unexpected_error_is_hidden(app, client, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("database exploded")

    monkeypatch.setattr("application.api_routes.authenticate_user", boom)
    response = client.post("/api/login", json={"email": "a@example.com", "password": "x"})

    assert response.status_code == 500
    assert response.get_json() == {"success": False, "message": "Server error"}


def test_v2_only_flag_is_published():
    class V2OnlyConfig:
        TESTING = True
        SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
        RECAPTCHA_V2_ONLY = True
        RECAPTCHA_SITE_KEY_V2 = "site-v2"

    app = create_app(V2OnlyConfig)
    body = app.test_client().get("/api/recaptcha-config").get_json()

    assert body["v2Only"] is True
    assert body["recaptchaV3"] is None
