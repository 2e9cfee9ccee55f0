"""GitHub API wrapper and auth helpers."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
from dotenv import load_dotenv

GITHUB_API_BASE_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_JSON_ACCEPT = "application/vnd.github+json"
GITHUB_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5
DEFAULT_PAGE_SIZE = 100

logger = logging.getLogger(__name__)


class GitHubAuthError(RuntimeError):
    """Raised when required GitHub authentication is missing."""


class GitHubInputError(ValueError):
    """Raised when repository or PR input values are invalid."""


class GitHubApiError(RuntimeError):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, *, status_code: int, endpoint: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class GitHubRateLimitError(GitHubApiError):
    """Raised when GitHub API rate limiting prevents request completion."""


@dataclass(frozen=True, slots=True)
class Project:
    """Repository project board."""

    id: int
    name: str


@dataclass(frozen=True, slots=True)
class ProjectColumn:
    """Column on a project board."""

    id: int
    name: str


@dataclass(frozen=True, slots=True)
class ProjectCard:
    """Card on a project board; content_url is set for issue/PR cards."""

    id: int
    content_url: str | None


def _ensure_mapping(value: object, *, context: str) -> dict[str, Any]:
    """Ensure a response fragment is a JSON object."""
    if not isinstance(value, dict):
        raise GitHubApiError(
            f"Expected JSON object for {context}.",
            status_code=500,
            endpoint=context,
        )
    return value


def _require_str(payload: dict[str, Any], *, key: str, endpoint: str) -> str:
    """Read a required string field from payload."""
    value = payload.get(key)
    if not isinstance(value, str):
        raise GitHubApiError(
            f"Expected string field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def _require_int(payload: dict[str, Any], *, key: str, endpoint: str) -> int:
    """Read a required integer field from payload."""
    value = payload.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise GitHubApiError(
            f"Expected integer field '{key}' in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def _optional_str(payload: dict[str, Any], *, key: str, endpoint: str) -> str | None:
    """Read an optional string field from payload."""
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise GitHubApiError(
            f"Expected '{key}' to be a string or null in GitHub response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def _is_retryable_status(status_code: int) -> bool:
    """Return whether a status code is retryable under policy."""
    return status_code == 429 or 500 <= status_code < 600


def _parse_retry_after_seconds(response: httpx.Response) -> float | None:
    """Parse Retry-After header as seconds if present and valid."""
    retry_after = response.headers.get("Retry-After")
    if retry_after is None:
        return None
    try:
        parsed_value = float(retry_after)
    except ValueError:
        return None
    if parsed_value < 0:
        return None
    return parsed_value


def _compute_retry_delay_seconds(response: httpx.Response, *, attempt_number: int) -> float:
    """Compute retry delay from Retry-After header or exponential backoff."""
    retry_after_seconds = _parse_retry_after_seconds(response)
    if retry_after_seconds is not None:
        return retry_after_seconds
    return DEFAULT_RETRY_BACKOFF_SECONDS * (2 ** (attempt_number - 1))


def _sleep_for_retry(seconds: float) -> None:
    """Sleep helper for retry delays (wrapped for deterministic tests)."""
    time.sleep(seconds)


def _raise_http_error(response: httpx.Response, method: str, endpoint: str) -> None:
    """Raise a typed error for a non-success GitHub API response."""
    message = (
        f"GitHub API {method} request failed with status {response.status_code} "
        f"for '{endpoint}'."
    )
    if response.status_code == 429:
        raise GitHubRateLimitError(
            message,
            status_code=response.status_code,
            endpoint=endpoint,
        )
    raise GitHubApiError(
        message,
        status_code=response.status_code,
        endpoint=endpoint,
    )


def _request_with_retries(
    client: httpx.Client,
    method: str,
    endpoint: str,
    *,
    json_body: object | None = None,
    accept_header: str = GITHUB_JSON_ACCEPT,
    max_attempts: int | None = None,
) -> httpx.Response:
    """Send a request, retrying 429/5xx responses for reads only.

    Writes are sent once because GitHub does not make them idempotent.
    """
    if max_attempts is None:
        max_attempts = GITHUB_MAX_RETRIES if method == "GET" else 1
    headers = {"Accept": accept_header}
    for attempt_number in range(1, max_attempts + 1):
        response = client.request(method, endpoint, headers=headers, json=json_body)
        if response.status_code < 400:
            return response

        should_retry = _is_retryable_status(response.status_code) and attempt_number < max_attempts
        if not should_retry:
            _raise_http_error(response, method, endpoint)

        delay_seconds = _compute_retry_delay_seconds(response, attempt_number=attempt_number)
        logger.warning(
            "GitHub %s %s returned %d; retrying in %.1fs",
            method,
            endpoint,
            response.status_code,
            delay_seconds,
        )
        _sleep_for_retry(delay_seconds)

    raise RuntimeError("Unexpected retry loop exit without a response.")


def _request_json(client: httpx.Client, endpoint: str) -> dict[str, Any]:
    """Perform a JSON GET request against GitHub API."""
    response = _request_with_retries(client, "GET", endpoint)
    return _ensure_mapping(response.json(), context=endpoint)


def _request_json_pages(client: httpx.Client, base_endpoint: str) -> list[dict[str, Any]]:
    """Collect all objects from a paginated array endpoint."""
    rows: list[dict[str, Any]] = []
    page = 1
    while True:
        endpoint = f"{base_endpoint}?per_page={DEFAULT_PAGE_SIZE}&page={page}"
        payload = _request_with_retries(client, "GET", endpoint).json()
        if not isinstance(payload, list):
            raise GitHubApiError(
                "Expected JSON array in GitHub response.",
                status_code=500,
                endpoint=endpoint,
            )
        for item in payload:
            rows.append(_ensure_mapping(item, context=endpoint))
        if len(payload) < DEFAULT_PAGE_SIZE:
            break
        page += 1
    return rows


def parse_repo_full_name(repo_full_name: str) -> tuple[str, str]:
    """Parse and validate repository input in owner/repo format."""
    owner, separator, repo = repo_full_name.strip().partition("/")
    if not separator or not owner or not repo or "/" in repo:
        raise GitHubInputError(
            f"Invalid repo '{repo_full_name}'. Expected format is owner/repo."
        )
    return owner, repo


def validate_pr_number(pr_number: int) -> int:
    """Validate and normalize pull request number input."""
    if pr_number <= 0:
        raise GitHubInputError(f"Invalid PR number '{pr_number}'. Expected a positive integer.")
    return pr_number


def fetch_repository_star_count(*, client: httpx.Client, repo_full_name: str) -> int:
    """Return the current stargazer count for a repository."""
    owner, repo = parse_repo_full_name(repo_full_name)
    endpoint = f"/repos/{owner}/{repo}"
    payload = _request_json(client, endpoint)
    return _require_int(payload, key="stargazers_count", endpoint=endpoint)


def add_labels_to_issue(
    *,
    client: httpx.Client,
    repo_full_name: str,
    issue_number: int,
    labels: list[str],
) -> None:
    """Attach labels to an issue or pull request."""
    owner, repo = parse_repo_full_name(repo_full_name)
    number = validate_pr_number(issue_number)
    endpoint = f"/repos/{owner}/{repo}/issues/{number}/labels"
    _request_with_retries(client, "POST", endpoint, json_body={"labels": labels})


def request_reviewers(
    *,
    client: httpx.Client,
    repo_full_name: str,
    pr_number: int,
    reviewers: list[str],
    team_reviewers: list[str] | None = None,
) -> None:
    """Request reviews from users and optional teams on a pull request."""
    owner, repo = parse_repo_full_name(repo_full_name)
    number = validate_pr_number(pr_number)
    endpoint = f"/repos/{owner}/{repo}/pulls/{number}/requested_reviewers"
    body: dict[str, list[str]] = {"reviewers": reviewers}
    if team_reviewers:
        body["team_reviewers"] = team_reviewers
    _request_with_retries(client, "POST", endpoint, json_body=body)


def list_repository_projects(*, client: httpx.Client, repo_full_name: str) -> tuple[Project, ...]:
    """List project boards attached to a repository."""
    owner, repo = parse_repo_full_name(repo_full_name)
    endpoint = f"/repos/{owner}/{repo}/projects"
    return tuple(
        Project(
            id=_require_int(row, key="id", endpoint=endpoint),
            name=_require_str(row, key="name", endpoint=endpoint),
        )
        for row in _request_json_pages(client, endpoint)
    )


def list_project_columns(*, client: httpx.Client, project_id: int) -> tuple[ProjectColumn, ...]:
    """List the columns of a project board."""
    endpoint = f"/projects/{project_id}/columns"
    return tuple(
        ProjectColumn(
            id=_require_int(row, key="id", endpoint=endpoint),
            name=_require_str(row, key="name", endpoint=endpoint),
        )
        for row in _request_json_pages(client, endpoint)
    )


def list_column_cards(*, client: httpx.Client, column_id: int) -> tuple[ProjectCard, ...]:
    """List every card in one project column."""
    endpoint = f"/projects/columns/{column_id}/cards"
    return tuple(
        ProjectCard(
            id=_require_int(row, key="id", endpoint=endpoint),
            content_url=_optional_str(row, key="content_url", endpoint=endpoint),
        )
        for row in _request_json_pages(client, endpoint)
    )


def create_pull_request_card(
    *,
    client: httpx.Client,
    column_id: int,
    pull_request_id: int,
) -> ProjectCard:
    """Create a card linked to a pull request in the given column."""
    endpoint = f"/projects/columns/{column_id}/cards"
    response = _request_with_retries(
        client,
        "POST",
        endpoint,
        json_body={"content_id": pull_request_id, "content_type": "PullRequest"},
    )
    payload = _ensure_mapping(response.json(), context=endpoint)
    return ProjectCard(
        id=_require_int(payload, key="id", endpoint=endpoint),
        content_url=_optional_str(payload, key="content_url", endpoint=endpoint),
    )


def move_project_card(
    *,
    client: httpx.Client,
    card_id: int,
    column_id: int,
    position: str = "bottom",
) -> None:
    """Move a card to a position within a column."""
    endpoint = f"/projects/columns/cards/{card_id}/moves"
    _request_with_retries(
        client,
        "POST",
        endpoint,
        json_body={"position": position, "column_id": column_id},
    )


def get_github_token() -> str:
    """Read GitHub token from environment and fail fast if missing."""
    token, _source = get_github_token_with_source()
    return token


def get_github_token_with_source() -> tuple[str, str]:
    """Read GitHub token and return token value with environment source key."""
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    github_token = os.getenv("GITHUB_TOKEN")
    if github_token:
        return github_token, "GITHUB_TOKEN"

    gh_token = os.getenv("GH_TOKEN")
    if gh_token:
        return gh_token, "GH_TOKEN"

    message = "Missing GitHub token. Set GITHUB_TOKEN (preferred) or GH_TOKEN."
    raise GitHubAuthError(message)


def fetch_authenticated_user_login(*, client: httpx.Client) -> str:
    """Fetch authenticated GitHub user login for token validation."""
    endpoint = "/user"
    payload = _request_json(client, endpoint)
    return _require_str(payload, key="login", endpoint=endpoint)


def build_github_client(
    timeout_seconds: int = 20,
    *,
    trust_env: bool = True,
) -> httpx.Client:
    """Build an authenticated GitHub HTTP client."""
    token = get_github_token()
    headers = {
        "Accept": GITHUB_JSON_ACCEPT,
        "Authorization": f"Bearer {token}",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
    }
    return httpx.Client(
        base_url=GITHUB_API_BASE_URL,
        headers=headers,
        timeout=timeout_seconds,
        trust_env=trust_env,
    )
