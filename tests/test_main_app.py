"""
Tests for campus/main.py - app factory, correlation ids and error rendering.
"""
from unittest.mock import MagicMock, patch

from fastapi import FastAPI
from fastapi.testclient import TestClient

from campus.main import create_app
from campus.schemas.api_responses import CheckInRequest
from campus.utils.errors import DuplicateCheckIn, TrialNotAllowed


def _make_mock_settings(**overrides):
    defaults = {
        "app_env": "test",
        "app_base_url": "http://localhost:8000",
        "app_timezone": "Europe/Berlin",
        "log_level": "WARNING",
        "sentry_dsn": "",
        "allowed_origins": "https://campus.example.com, ",
    }
    defaults.update(overrides)
    settings = MagicMock()
    for k, v in defaults.items():
        setattr(settings, k, v)
    return settings


def _app_with_test_routes() -> FastAPI:
    application = create_app()

    @application.get("/_test/trial")
    async def _trial():
        raise TrialNotAllowed("You already started a trial")

    @application.get("/_test/duplicate")
    async def _duplicate():
        raise DuplicateCheckIn({"id": "abc", "energyLevel": 5})

    @application.post("/_test/checkin")
    async def _checkin(payload: CheckInRequest):
        return {"ok": True}

    return application


class TestCreateApp:
    def test_app_metadata(self):
        with (
            patch("campus.main.get_settings", return_value=_make_mock_settings()),
            patch("campus.main.configure_structured_logging"),
        ):
            app = create_app()

        assert isinstance(app, FastAPI)
        assert app.title == "Campus Journey"
        assert app.version == "1.0.0"

    def test_configures_logging_level(self):
        with (
            patch("campus.main.get_settings", return_value=_make_mock_settings(log_level="DEBUG")),
            patch("campus.main.configure_structured_logging") as mock_log,
        ):
            create_app()
        mock_log.assert_called_once_with("DEBUG")

    def test_routes_registered(self):
        paths = set(create_app().openapi()["paths"])
        for path in (
            "/health", "/health/ready",
            "/webhooks/payments", "/webhooks/subscription", "/webhooks/crm", "/webhooks/messaging",
            "/checkin", "/checkin/today", "/checkin/history",
            "/journey", "/journey/trial/start", "/journey/badges",
        ):
            assert path in paths


class TestCorrelationId:
    def test_generated_when_absent(self):
        client = TestClient(create_app())
        response = client.get("/health")
        assert response.status_code == 200
        assert response.headers["X-Correlation-ID"]

    def test_echoed_when_sent(self):
        client = TestClient(create_app())
        response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"


class TestErrorRendering:
    def test_app_error_uses_its_status(self):
        client = TestClient(_app_with_test_routes())
        response = client.get("/_test/trial")
        assert response.status_code == 400
        assert response.json() == {"error": "You already started a trial"}

    def test_duplicate_check_in_carries_existing(self):
        client = TestClient(_app_with_test_routes())
        response = client.get("/_test/duplicate")
        assert response.status_code == 400
        assert response.json()["existingCheckIn"]["id"] == "abc"

    def test_request_validation_is_400_with_paths(self):
        client = TestClient(_app_with_test_routes())
        response = client.post("/_test/checkin", json={"energyLevel": 11, "sleepQuality": 5, "moodLevel": 5})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation Error"
        assert body["details"][0]["path"] == "energyLevel"

    def test_missing_bearer_token(self):
        client = TestClient(create_app())
        response = client.get("/journey")
        assert response.status_code in (401, 403)
