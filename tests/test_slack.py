from unittest.mock import MagicMock, patch

import requests

from ezkiosk.integrations.slack import alert_job_failures, notify


def test_notify_disabled_without_webhook(monkeypatch):
    monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)
    with patch("ezkiosk.integrations.slack.requests.post") as post:
        assert notify("hello") is False
    post.assert_not_called()


def test_notify_posts_when_enabled(monkeypatch):
    monkeypatch.setenv("SLACK_ENABLED", "true")
    monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://hooks.example/abc")
    with patch("ezkiosk.integrations.slack.requests.post", return_value=MagicMock()) as post:
        assert notify("sync failed", severity="error") is True
    assert post.call_args.kwargs["json"]["text"].endswith("sync failed")


def test_notify_swallows_webhook_errors(monkeypatch):
    monkeypatch.setenv("SLACK_ENABLED", "true")
    monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://hooks.example/abc")
    with patch("ezkiosk.integrations.slack.requests.post", side_effect=requests.exceptions.Timeout("slow")):
        assert notify("hello") is False


def test_no_alert_without_failures():
    with patch("ezkiosk.integrations.slack.notify") as mock_notify:
        assert alert_job_failures("upload", 0, 5) is False
    mock_notify.assert_not_called()
