"""Test the browser error reporting route."""

import logging


def test_frontend_error_is_written_to_the_server_log(client, login_as, caplog):
    user = login_as("viewer")
    with caplog.at_level(logging.INFO, logger="timetracker.frontend"):
        response = client.post("/api/log/frontend-error", json={
            "timestamp": "2024-01-10T09:00:00Z",
            "level": "error",
            "category": "API",
            "message": "Failed to load projects",
            "data": {"status": 500},
            "url": "https://timetracker.example.com/projects",
            "userAgent": "Mozilla/5.0",
        })
    assert response.status_code == 200
    assert response.json() == {"success": True}

    record = next(r for r in caplog.records if r.name == "timetracker.frontend")
    assert record.levelno == logging.ERROR
    assert "[FRONTEND-API] Failed to load projects" in record.getMessage()
    assert user["id"] in record.getMessage()


def test_frontend_warning_keeps_its_level(client, login_as, caplog):
    login_as("employee")
    with caplog.at_level(logging.INFO, logger="timetracker.frontend"):
        client.post("/api/log/frontend-error", json={"level": "warn", "message": "Slow response"})
    record = next(r for r in caplog.records if r.name == "timetracker.frontend")
    assert record.levelno == logging.WARNING
    assert "[FRONTEND-GENERAL]" in record.getMessage()


def test_frontend_error_requires_a_message(client, login_as):
    login_as("employee")
    response = client.post("/api/log/frontend-error", json={"category": "UI"})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "message"


def test_frontend_error_requires_sign_in(client):
    response = client.post("/api/log/frontend-error", json={"message": "boom"})
    assert response.status_code == 401
