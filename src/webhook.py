"""GitHub webhook verification and event handling."""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from src.balancer import ReviewerBalancer, assign_reviewer_for_pull_request
from src.board import place_pull_request_in_review
from src.chat import (
    is_star_milestone,
    post_chat_message,
    review_request_message,
    star_milestone_message,
)
from src.config import Settings
from src.github_client import (
    add_labels_to_issue,
    fetch_repository_star_count,
    request_reviewers,
)

SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"
BREAKING_CHANGE_MARKER = "!:"
BREAKING_CHANGE_LABEL = "type/breaking-change"

logger = logging.getLogger(__name__)


class WebhookPayloadError(ValueError):
    """Raised when a webhook payload lacks fields the handler needs."""


@dataclass(frozen=True, slots=True)
class WebhookOutcome:
    """HTTP status and short description of what the handler did."""

    status_code: int
    message: str


@dataclass(frozen=True, slots=True)
class PullRequestEvent:
    """Fields of a pull_request webhook used by the bot."""

    action: str
    number: int
    pull_request_id: int
    title: str
    html_url: str
    author_login: str | None
    additions: int | None
    deletions: int | None


def verify_signature(*, body: bytes, signature_header: str | None, secret: str) -> bool:
    """Check a `sha256=` HMAC signature against the shared secret."""
    if not secret or not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header)


def _optional_count(pull_request: dict[str, Any], key: str) -> int | None:
    """Read an optional non-negative count from the pull request object."""
    value = pull_request.get(key)
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise WebhookPayloadError(f"Expected '{key}' to be a non-negative integer or null.")
    return value


def parse_pull_request_event(payload: dict[str, Any]) -> PullRequestEvent:
    """Normalize a pull_request webhook payload."""
    pull_request = payload.get("pull_request")
    if not isinstance(pull_request, dict):
        raise WebhookPayloadError("Missing 'pull_request' object in payload.")

    number = pull_request.get("number", payload.get("number"))
    pull_request_id = pull_request.get("id")
    if not isinstance(number, int) or not isinstance(pull_request_id, int):
        raise WebhookPayloadError("Pull request payload must include integer 'number' and 'id'.")

    user = pull_request.get("user")
    author_login = user.get("login") if isinstance(user, dict) else None

    return PullRequestEvent(
        action=str(payload.get("action", "")),
        number=number,
        pull_request_id=pull_request_id,
        title=str(pull_request.get("title") or ""),
        html_url=str(pull_request.get("html_url") or ""),
        author_login=author_login if isinstance(author_login, str) else None,
        additions=_optional_count(pull_request, "additions"),
        deletions=_optional_count(pull_request, "deletions"),
    )


class WebhookHandler:
    """Dispatches verified webhook events to the bot's collaborators."""

    def __init__(
        self,
        *,
        settings: Settings,
        balancer: ReviewerBalancer,
        github_client: httpx.Client,
        chat_client: httpx.Client,
    ) -> None:
        self._settings = settings
        self._balancer = balancer
        self._github = github_client
        self._chat = chat_client

    def handle(self, event_type: str, payload: dict[str, Any]) -> WebhookOutcome:
        """Route one event by its GitHub event name."""
        if event_type == "star":
            return self._handle_star(payload)
        if event_type == "pull_request":
            return self._handle_pull_request(parse_pull_request_event(payload))
        logger.info("Ignoring event type %s", event_type or "<missing>")
        return WebhookOutcome(status_code=202, message=f"ignored event {event_type}")

    def _notify(self, content: str) -> bool:
        """Post to chat when a webhook URL is configured."""
        if not self._settings.chat_webhook_url:
            logger.warning("Chat webhook URL is not configured; skipping notification.")
            return False
        post_chat_message(
            client=self._chat,
            webhook_url=self._settings.chat_webhook_url,
            content=content,
        )
        return True

    def _handle_star(self, payload: dict[str, Any]) -> WebhookOutcome:
        if payload.get("action") != "created":
            return WebhookOutcome(status_code=202, message="star action ignored")

        star_count = fetch_repository_star_count(
            client=self._github,
            repo_full_name=self._settings.repo_full_name,
        )
        if not is_star_milestone(star_count):
            return WebhookOutcome(status_code=202, message=f"{star_count} stars")

        self._notify(star_milestone_message(star_count))
        logger.info("Celebrated %d stars", star_count)
        return WebhookOutcome(status_code=201, message=f"celebrated {star_count} stars")

    def _handle_pull_request(self, event: PullRequestEvent) -> WebhookOutcome:
        if event.action != "opened":
            return WebhookOutcome(status_code=202, message="pull_request action ignored")

        repo_full_name = self._settings.repo_full_name
        if BREAKING_CHANGE_MARKER in event.title:
            add_labels_to_issue(
                client=self._github,
                repo_full_name=repo_full_name,
                issue_number=event.number,
                labels=[BREAKING_CHANGE_LABEL],
            )
            logger.info("Labeled PR #%d as %s", event.number, BREAKING_CHANGE_LABEL)

        reviewer = assign_reviewer_for_pull_request(
            self._balancer,
            additions=event.additions,
            deletions=event.deletions,
            author=event.author_login,
        )

        team_reviewers = [self._settings.team_reviewer] if self._settings.team_reviewer else []
        request_reviewers(
            client=self._github,
            repo_full_name=repo_full_name,
            pr_number=event.number,
            reviewers=[reviewer.name],
            team_reviewers=team_reviewers,
        )
        logger.info("Requested review from %s on PR #%d", reviewer.name, event.number)

        self._notify(
            review_request_message(
                pull_request_url=event.html_url,
                contact_handle=reviewer.contact_handle,
            )
        )

        placement = place_pull_request_in_review(
            client=self._github,
            repo_full_name=repo_full_name,
            project_name=self._settings.project_name,
            pr_number=event.number,
            pull_request_id=event.pull_request_id,
        )
        verb = "created" if placement.created else "moved"
        return WebhookOutcome(
            status_code=201,
            message=f"assigned {reviewer.name}; {verb} card {placement.card_id}",
        )
