"""
Tests for the Slack client (HTTP session mocked)
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

# Add project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from support_rotation.slack_client import (
    SlackAPIError,
    SlackClient,
    build_assignment_message,
    format_mentions,
    log_support_assignment,
)


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def client():
    c = SlackClient("xoxb-test")
    c.session = MagicMock()
    return c


class TestSlackClient:
    def test_auth_header(self):
        c = SlackClient("xoxb-test")
        assert c.session.headers["Authorization"] == "Bearer xoxb-test"

    def test_usergroup_members_by_handle(self, client):
        client.session.get.side_effect = [
            _response({"ok": True, "usergroups": [
                {"id": "S1", "handle": "other"},
                {"id": "S2", "handle": "cas-engineers"},
            ]}),
            _response({"ok": True, "users": ["U1", "U2"]}),
        ]
        assert client.get_usergroup_members("cas-engineers") == ["U1", "U2"]
        _, kwargs = client.session.get.call_args
        assert kwargs["params"] == {"usergroup": "S2"}

    def test_usergroup_not_found(self, client):
        client.session.get.return_value = _response({"ok": True, "usergroups": []})
        with pytest.raises(SlackAPIError, match="not found"):
            client.get_usergroup_members("missing")

    def test_ok_false_raises(self, client):
        client.session.get.return_value = _response({"ok": False, "error": "invalid_auth"})
        with pytest.raises(SlackAPIError) as exc:
            client.get_usergroup_members("cas-engineers")
        assert exc.value.method == "usergroups.list"
        assert exc.value.error == "invalid_auth"

    def test_http_error_propagates(self, client):
        client.session.get.side_effect = requests.exceptions.ConnectionError("down")
        with pytest.raises(requests.exceptions.ConnectionError):
            client.get_usergroup_members("cas-engineers")

    def test_user_status(self, client):
        client.session.get.return_value = _response({"ok": True, "user": {
            "profile": {"status_text": "Vacation", "status_emoji": ":palm_tree:"},
        }})
        assert client.get_user_status("U1") == {
            "status_text": "Vacation",
            "status_emoji": ":palm_tree:",
            "status_expiration": 0,
        }

    def test_user_statuses_skips_failures(self, client):
        client.session.get.side_effect = [
            _response({"ok": True, "user": {"profile": {"status_text": "OOO"}}}),
            _response({"ok": False, "error": "user_not_found"}),
            _response({"ok": True, "user": {}}),
        ]
        statuses = client.get_user_statuses(["U1", "U2", "U3"])
        assert list(statuses) == ["U1"]
        assert statuses["U1"]["status_text"] == "OOO"

    def test_post_support_assignment(self, client):
        client.session.post.return_value = _response({"ok": True, "ts": "1.0"})
        client.post_support_assignment("cas-dev", ["U1", "U2"], days_per_rotation=3)
        _, kwargs = client.session.post.call_args
        payload = kwargs["json"]
        assert payload["channel"] == "cas-dev"
        assert "<@U1> and <@U2> are on application support for the next 3 working days." in payload["text"]
        assert payload["blocks"][-1] == {"type": "divider"}


class TestMessages:
    def test_format_mentions(self):
        assert format_mentions(["U1"]) == "<@U1>"
        assert format_mentions(["U1", "U2"]) == "<@U1> and <@U2>"

    def test_default_greeting(self):
        text, _ = build_assignment_message(["U1", "U2"])
        assert text == (
            "Good morning team! :sunny:\n\n"
            "<@U1> and <@U2> are on application support for the next 2 working days."
        )

    def test_custom_message(self):
        text, blocks = build_assignment_message(["U1"], "Support duty has been reassigned.")
        assert text.startswith("Support duty has been reassigned.")
        assert blocks[0]["text"]["text"] == "Support duty has been reassigned."

    def test_log_support_assignment(self, capsys):
        output = log_support_assignment(["U1"])
        assert "<@U1>" in output
        assert "<@U1>" in capsys.readouterr().out
