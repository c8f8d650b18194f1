"""Unit tests for the FastAPI application."""

import asyncio
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from fastapi.testclient import TestClient

from octobridge.config import BridgeSettings
from octobridge.github.http import GitHubTransport
from octobridge.github.oauth import TOKEN_URL
from octobridge.main import _redact_secret, build_notifier, create_app


def run_async(coro):
    return asyncio.run(coro)


ISSUE_PAYLOAD = {
    "action": "opened",
    "issue": {
        "number": 1,
        "title": "Widget is broken",
        "body": "",
        "url": "https://api.github.com/repos/acme/widgets/issues/1",
        "html_url": "https://github.com/acme/widgets/issues/1",
        "comments_url": "https://api.github.com/repos/acme/widgets/issues/1/comments",
    },
    "repository": {"full_name": "acme/widgets"},
    "sender": {"login": "octocat"},
}

NEW_TOKENS = {"access_token": "new-access", "refresh_token": "new-refresh"}


class RecordingSender:
    def __init__(self):
        self.sent = []

    async def broadcast(self, envelope, message):
        self.sent.append(message)
        return [f"msg-{len(self.sent)}"]


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def make_client(api, store, metrics, sender):
    def factory(**overrides):
        settings = BridgeSettings(app_id="app-id", app_secret="app-secret", **overrides)
        transport = GitHubTransport(
            client=httpx.AsyncClient(transport=httpx.MockTransport(api))
        )
        notifier = build_notifier(
            settings,
            credentials=store,
            sender=sender,
            transport=transport,
            metrics=metrics,
        )
        app = create_app(settings=settings, notifier=notifier, metrics=metrics)
        return TestClient(app)

    return factory


class TestHealthAndMetrics:
    def test_health(self, make_client):
        with make_client() as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_metrics_exposes_bridge_metrics(self, make_client):
        with make_client() as client:
            client.post(
                "/github/webhook",
                headers={"X-GitHub-Event": "issues"},
                json=ISSUE_PAYLOAD,
            )
            response = client.get("/metrics")

        assert response.status_code == 200
        assert "octobridge_webhook_events_total" in response.text


class TestWebhook:
    def test_handled_event_is_delivered(self, make_client, sender):
        with make_client() as client:
            response = client.post(
                "/github/webhook",
                headers={"X-GitHub-Event": "issues"},
                json=ISSUE_PAYLOAD,
            )

        assert response.status_code == 200
        assert response.json() == {"status": "handled", "event": "issues/opened"}
        assert sender.sent[0].startswith("[GitHub] octocat opened an issue")

    def test_unhandled_event_is_ignored(self, make_client, sender):
        with make_client() as client:
            response = client.post(
                "/github/webhook",
                headers={"X-GitHub-Event": "push"},
                json={"ref": "refs/heads/main"},
            )

        assert response.json() == {"status": "ignored", "event": "push"}
        assert sender.sent == []

    def test_missing_event_header_is_rejected(self, make_client):
        with make_client() as client:
            response = client.post("/github/webhook", json=ISSUE_PAYLOAD)

        assert response.status_code == 400

    def test_non_object_body_is_rejected(self, make_client):
        with make_client() as client:
            response = client.post(
                "/github/webhook",
                headers={"X-GitHub-Event": "issues"},
                content=b"[]",
            )

        assert response.status_code == 400

    def test_custom_mount_path(self, make_client):
        with make_client(path="/hooks/gh/") as client:
            response = client.post(
                "/hooks/gh/webhook",
                headers={"X-GitHub-Event": "push"},
                json={},
            )

        assert response.status_code == 200


def _login(client, account_id="carol"):
    response = client.get(
        "/github/login", params={"account_id": account_id}, follow_redirects=False
    )
    query = parse_qs(urlsplit(response.headers["location"]).query)
    return query["state"][0]


class TestOAuth:
    def test_login_redirects_to_github(self, make_client):
        with make_client() as client:
            response = client.get(
                "/github/login", params={"account_id": "carol"}, follow_redirects=False
            )

        assert response.status_code == 307
        location = response.headers["location"]
        assert location.startswith("https://github.com/login/oauth/authorize?")
        query = parse_qs(urlsplit(location).query)
        assert query["client_id"] == ["app-id"]
        assert query["redirect_uri"] == ["http://testserver/github/authorize"]

    def test_login_state_does_not_reveal_account(self, make_client):
        with make_client() as client:
            first = _login(client)
            second = _login(client)

        assert "carol" not in first
        assert first != second

    def test_callback_links_account_that_logged_in(self, make_client, api, store):
        api.add("POST", TOKEN_URL, json_body=NEW_TOKENS)

        with make_client() as client:
            state = _login(client)
            response = client.get(
                "/github/authorize", params={"code": "c0de", "state": state}
            )

        assert response.json() == {"status": "linked", "account_id": "carol"}
        assert api.token_calls()[0].url.params["code"] == "c0de"
        stored = run_async(store.get("carol"))
        assert stored.access_token == "new-access"

    def test_unissued_state_is_forbidden(self, make_client, api, store):
        api.add("POST", TOKEN_URL, json_body=NEW_TOKENS)

        with make_client() as client:
            response = client.get(
                "/github/authorize", params={"code": "c0de", "state": "alice"}
            )

        assert response.status_code == 403
        assert api.token_calls() == []
        stored = run_async(store.get("alice"))
        assert stored.access_token == "old-access"

    def test_state_is_accepted_only_once(self, make_client, api):
        api.add("POST", TOKEN_URL, json_body=NEW_TOKENS)

        with make_client() as client:
            state = _login(client)
            first = client.get(
                "/github/authorize", params={"code": "c0de", "state": state}
            )
            second = client.get(
                "/github/authorize", params={"code": "other", "state": state}
            )

        assert first.status_code == 200
        assert second.status_code == 403
        assert len(api.token_calls()) == 1

    def test_callback_redirects_when_configured(self, make_client, api):
        api.add("POST", TOKEN_URL, json_body=NEW_TOKENS)

        with make_client(redirect="https://chat.example/linked") as client:
            state = _login(client)
            response = client.get(
                "/github/authorize",
                params={"code": "c0de", "state": state},
                follow_redirects=False,
            )

        assert response.status_code == 307
        assert response.headers["location"] == "https://chat.example/linked"

    def test_refused_code_is_rejected(self, make_client, api):
        api.add("POST", TOKEN_URL, json_body={"error": "bad_verification_code"})

        with make_client() as client:
            state = _login(client)
            response = client.get(
                "/github/authorize", params={"code": "old", "state": state}
            )

        assert response.status_code == 400


class TestRedactSecret:
    @pytest.mark.parametrize(
        "value,expected",
        [(None, "<unset>"), ("", "<unset>"), ("abc", "***"), ("abcdefgh", "abcd****")],
    )
    def test_redaction(self, value, expected):
        assert _redact_secret(value) == expected
