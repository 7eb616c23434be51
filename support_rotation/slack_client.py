"""
Slack Web API Client
Fetches user group membership and user statuses, and posts support
assignment announcements.

Documentation: https://api.slack.com/web
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

logger = logging.getLogger(__name__)

DEFAULT_GREETING = "Good morning team! :sunny:"


class SlackAPIError(Exception):
    """Slack answered with ok=false."""

    def __init__(self, method: str, error: str):
        self.method = method
        self.error = error
        super().__init__(f"Slack API {method} failed: {error}")


class SlackClient:
    """
    Client for the subset of the Slack Web API the rotation needs
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://slack.com/api",
        timeout: float = 30,
    ):
        """
        Initialize Slack client

        Args:
            token: Bot token (xoxb-...)
            base_url: Base URL for the Slack Web API
            timeout: Per-request timeout (seconds)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json; charset=utf-8'
        })

    def _call(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """GET (params) or POST (payload) a Web API method and check `ok`."""
        endpoint = f"{self.base_url}/{method}"
        try:
            if payload is not None:
                response = self.session.post(endpoint, json=payload, timeout=self.timeout)
            else:
                response = self.session.get(endpoint, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Error calling {method}: {e}")
            raise

        if not data.get('ok'):
            raise SlackAPIError(method, data.get('error', 'unknown_error'))
        return data

    def get_usergroup_members(self, usergroup: str) -> List[str]:
        """
        Get all members of a user group

        Args:
            usergroup: User group ID or handle (without the @)

        Returns:
            List of user IDs
        """
        logger.info(f"Fetching members of user group {usergroup}")

        groups = self._call('usergroups.list').get('usergroups', [])
        match = next(
            (g for g in groups if g.get('id') == usergroup or g.get('handle') == usergroup),
            None,
        )
        if match is None:
            raise SlackAPIError('usergroups.list', f'User group "{usergroup}" not found')

        users = self._call('usergroups.users.list', params={'usergroup': match['id']}).get('users', [])
        logger.info(f"Retrieved {len(users)} members of {usergroup}")
        return users

    def get_user_status(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get the profile status of one user

        Returns:
            {status_text, status_emoji, status_expiration} or None if no profile
        """
        user = self._call('users.info', params={'user': user_id}).get('user') or {}
        profile = user.get('profile')
        if not profile:
            return None
        return {
            'status_text': profile.get('status_text') or '',
            'status_emoji': profile.get('status_emoji') or '',
            'status_expiration': profile.get('status_expiration') or 0,
        }

    def get_user_statuses(self, user_ids: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        """
        Get statuses for a list of users

        A failure for one user is logged and that user is left out, so the
        rotation can still run on the others.

        Returns:
            Map of user ID to status dict
        """
        statuses: Dict[str, Dict[str, Any]] = {}
        for user_id in user_ids:
            try:
                status = self.get_user_status(user_id)
            except (SlackAPIError, requests.exceptions.RequestException) as e:
                logger.warning(f"Error getting status for user {user_id}: {e}")
                continue
            if status is not None:
                statuses[user_id] = status
        logger.info(f"Retrieved statuses for {len(statuses)}/{len(user_ids)} users")
        return statuses

    def post_message(
        self,
        channel: str,
        text: str,
        blocks: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Post a message to a channel

        Args:
            channel: Channel ID or name (without the #)
            text: Fallback text
            blocks: Optional Block Kit blocks

        Returns:
            Slack response
        """
        payload: Dict[str, Any] = {'channel': channel, 'text': text}
        if blocks:
            payload['blocks'] = blocks
        data = self._call('chat.postMessage', payload=payload)
        logger.info(f"Posted message to #{channel}")
        return data

    def post_support_assignment(
        self,
        channel: str,
        engineers: Sequence[str],
        custom_message: Optional[str] = None,
        days_per_rotation: int = 2,
    ) -> Dict[str, Any]:
        """Announce a support assignment in `channel`."""
        text, blocks = build_assignment_message(engineers, custom_message, days_per_rotation)
        return self.post_message(channel, text, blocks)


def format_mentions(engineers: Sequence[str]) -> str:
    return " and ".join(f"<@{e}>" for e in engineers)


def build_assignment_message(
    engineers: Sequence[str],
    custom_message: Optional[str] = None,
    days_per_rotation: int = 2,
) -> Tuple[str, List[Dict[str, Any]]]:
    """
    Build the announcement as (fallback text, Block Kit blocks)
    """
    greeting = custom_message or DEFAULT_GREETING
    support_message = (
        f"{format_mentions(engineers)} are on application support "
        f"for the next {days_per_rotation} working days."
    )
    text = f"{greeting}\n\n{support_message}"
    blocks = [
        {"type": "section", "text": {"type": "mrkdwn", "text": greeting}},
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f":rotating_light: *Support Assignment* :rotating_light:\n{support_message}",
            },
        },
        {"type": "divider"},
    ]
    return text, blocks


def log_support_assignment(
    engineers: Sequence[str],
    custom_message: Optional[str] = None,
    days_per_rotation: int = 2,
) -> str:
    """
    Print the announcement for manual posting when Slack is disabled.

    Returns the printed text.
    """
    text, _ = build_assignment_message(engineers, custom_message, days_per_rotation)
    sep = "=" * 70
    lines = [
        "",
        sep,
        "  SUPPORT ASSIGNMENT (Slack disabled)",
        sep,
        text,
        sep,
        "  Copy the message above to the Slack channel manually.",
        sep,
        "",
    ]
    output = "\n".join(lines)
    print(output)
    return output
