"""Tests for request log context and the unhandled-error responses."""

import sys

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from loguru import logger

from chatpress.gateway import create_app
from chatpress.gateway.logging_config import configure_logging
from tests.chatpress.gateway.conftest import CHANNEL_ID


@pytest.fixture
def records():
    captured = []
    handler_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(handler_id)


@pytest.fixture
def client(settings, history, resolver):
    app = create_app(settings, source=history, resolver=resolver)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


def test_unhandled_error_is_json_by_default(client):
    response = client.get("/boom")
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"detail": "Internal server error"}


def test_unhandled_error_is_html_for_browsers(client):
    response = client.get("/boom", headers={"Accept": "text/html"})
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.headers["content-type"].startswith("text/html")
    assert "<h1>500</h1><p>Internal server error</p>" in response.text
    assert "<title>Error - MGTV24 News</title>" in response.text


def test_unhandled_error_logged_with_index_context(client, records):
    client.get("/boom")
    errors = [r for r in records if r["message"].startswith("Unhandled exception on GET /boom")]
    assert len(errors) == 1
    extra = errors[0]["extra"]
    assert extra["channel_id"] == CHANNEL_ID
    assert extra["index_version"] == 1
    assert len(extra["request_id"]) == 8


def test_request_logs_carry_context_and_id_header(client, records):
    response = client.get("/health")
    request_id = response.headers["X-Request-ID"]
    request_records = [r for r in records if r["extra"].get("request_id") == request_id]
    assert request_records
    assert all(r["extra"]["index_version"] == 1 for r in request_records)
    assert any("GET /health -> 200" in r["message"] for r in request_records)


def test_configure_logging_writes_json_lines(settings):
    configure_logging(settings)
    logger.info("hello from the test")
    # Removing the sinks closes the file
    logger.remove()
    logger.configure(extra={})
    logger.add(sys.stderr)

    lines = (settings.log_dir / "chatpress.jsonl").read_text().splitlines()
    assert any("hello from the test" in line and CHANNEL_ID in line for line in lines)
