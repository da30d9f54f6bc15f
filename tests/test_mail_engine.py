import asyncio
import logging

import pytest
import requests

from vu_assistant.api.dependencies import get_mailer
from vu_assistant.config import Config
import vu_assistant.engines.mail_engine as mail_module
from vu_assistant.engines.mail_engine import MailEngine

VERIFY_HTML = '<a href="http://localhost:3000/auth/verify?token=abc">Verify</a>'


def make_response(status_code, body):
    response = requests.Response()
    response.status_code = status_code
    response._content = body
    response.url = mail_module.RESEND_API_URL
    return response


def send(mailer, to="sam@vu.edu.au"):
    return asyncio.run(mailer.send(to, "Hello", VERIFY_HTML))


@pytest.fixture
def production(monkeypatch):
    monkeypatch.setattr(Config, "RESEND_API_KEY", "re_test_key")
    return MailEngine(environment="production")


def test_development_mailer_does_not_send(monkeypatch):
    def fail_post(*args, **kwargs):
        raise AssertionError("development mail must not hit the network")

    monkeypatch.setattr(mail_module.requests, "post", fail_post)
    mailer = MailEngine(environment="development")
    assert not mailer.is_production

    result = send(mailer)
    assert result["success"]
    assert result["data"]["id"].startswith("dev-email-")


def test_development_log_masks_recipient(caplog):
    with caplog.at_level(logging.INFO, logger="VU_Assistant"):
        send(MailEngine(environment="development"), to="private.person@vu.edu.au")
    assert "private.person@vu.edu.au" not in caplog.text
    assert "[EMAIL]" in caplog.text
    assert "http://localhost:3000/auth/verify?token=abc" in caplog.text


def test_production_without_api_key_fails(monkeypatch):
    monkeypatch.setattr(Config, "RESEND_API_KEY", None)
    result = send(MailEngine(environment="production"))
    assert result == {"success": False, "error": "RESEND_API_KEY is not configured"}


def test_production_posts_to_resend(monkeypatch, production):
    calls = []

    def fake_post(url, headers, json, timeout):
        calls.append((url, headers, json))
        return make_response(200, b'{"id": "email-123"}')

    monkeypatch.setattr(mail_module.requests, "post", fake_post)
    result = send(production)

    assert result == {"success": True, "data": {"id": "email-123"}}
    url, headers, payload = calls[0]
    assert url == mail_module.RESEND_API_URL
    assert headers["Authorization"] == "Bearer re_test_key"
    assert payload["to"] == ["sam@vu.edu.au"]


@pytest.mark.parametrize(
    "outcome",
    [
        requests.ConnectionError("connection refused"),
        make_response(422, b'{"message": "invalid from address"}'),
        make_response(200, b"<html>not json</html>"),
    ],
    ids=["connection-error", "http-error", "non-json-body"],
)
def test_production_failures_return_failure(monkeypatch, production, outcome):
    def fake_post(*args, **kwargs):
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(mail_module.requests, "post", fake_post)
    result = send(production)
    assert result["success"] is False
    assert result["error"]


def test_registration_survives_unparseable_mail_reply(monkeypatch, client, production):
    monkeypatch.setattr(mail_module.requests, "post", lambda *a, **kw: make_response(200, b"OK"))
    client.app.dependency_overrides[get_mailer] = lambda: production

    response = client.post(
        "/api/auth/register",
        json={
            "email": "new.student@vu.edu.au",
            "fullName": "New Student",
            "password": "Secret123",
            "confirmPassword": "Secret123",
        },
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["emailSent"] is False
    assert "verificationUrl" not in data
