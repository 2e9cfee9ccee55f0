"""Chat room notifications through an incoming webhook."""

from __future__ import annotations

import logging

import httpx

STAR_MILESTONE = 100

logger = logging.getLogger(__name__)


class ChatNotificationError(RuntimeError):
    """Raised when the chat webhook rejects or cannot receive a message."""


def review_request_message(*, pull_request_url: str, contact_handle: str) -> str:
    """Render the message that pings the assigned reviewer."""
    return f"A new pull-request is created: {pull_request_url} @{contact_handle} please review 🙏"


def star_milestone_message(star_count: int) -> str:
    """Render the message celebrating a star milestone."""
    return f"@Present Congrat our repo has {star_count} stars now 🎊"


def is_star_milestone(star_count: int) -> bool:
    """Return whether a star count is a positive multiple of the milestone."""
    return star_count > 0 and star_count % STAR_MILESTONE == 0


def post_chat_message(*, client: httpx.Client, webhook_url: str, content: str) -> None:
    """Post one message to the chat webhook."""
    try:
        response = client.post(webhook_url, json={"Content": content})
    except httpx.HTTPError as error:
        raise ChatNotificationError(f"Unable to reach chat webhook: {error}") from error
    if response.status_code >= 400:
        raise ChatNotificationError(
            f"Chat webhook responded with status {response.status_code}."
        )
    logger.info("Sent chat message (%d characters)", len(content))
