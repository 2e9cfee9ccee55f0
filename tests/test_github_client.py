"""Unit tests for GitHub client behavior."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
from src.github_client import (
    GitHubApiError,
    GitHubAuthError,
    GitHubInputError,
    GitHubRateLimitError,
    ProjectCard,
    add_labels_to_issue,
    create_pull_request_card,
    fetch_authenticated_user_login,
    fetch_repository_star_count,
    get_github_token,
    get_github_token_with_source,
    list_column_cards,
    list_project_columns,
    list_repository_projects,
    move_project_card,
    parse_repo_full_name,
    request_reviewers,
    validate_pr_number,
)


def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    """Create an HTTP client backed by mock transport."""
    transport = httpx.MockTransport(handler)
    return httpx.Client(base_url="https://api.github.com", transport=transport)


@pytest.mark.unit
def test_parse_repo_full_name_accepts_owner_repo() -> None:
    owner, repo = parse_repo_full_name("acme/rocket")
    assert owner == "acme"
    assert repo == "rocket"


@pytest.mark.unit
def test_parse_repo_full_name_rejects_invalid_format() -> None:
    with pytest.raises(GitHubInputError):
        parse_repo_full_name("acme")


@pytest.mark.unit
def test_validate_pr_number_rejects_non_positive() -> None:
    with pytest.raises(GitHubInputError):
        validate_pr_number(0)


@pytest.mark.unit
def test_fetch_repository_star_count_reads_stargazers() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/repos/acme/rocket"
        return httpx.Response(status_code=200, json={"stargazers_count": 300})

    with make_client(handler) as client:
        assert fetch_repository_star_count(client=client, repo_full_name="acme/rocket") == 300


@pytest.mark.unit
def test_fetch_repository_star_count_rejects_invalid_shape() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=200, json={"stargazers_count": "many"})

    with make_client(handler) as client, pytest.raises(GitHubApiError):
        fetch_repository_star_count(client=client, repo_full_name="acme/rocket")


@pytest.mark.unit
def test_add_labels_posts_label_list() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(status_code=200, json=[{"name": "type/breaking-change"}])

    with make_client(handler) as client:
        add_labels_to_issue(
            client=client,
            repo_full_name="acme/rocket",
            issue_number=42,
            labels=["type/breaking-change"],
        )

    assert captured == {
        "method": "POST",
        "path": "/repos/acme/rocket/issues/42/labels",
        "body": {"labels": ["type/breaking-change"]},
    }


@pytest.mark.unit
def test_request_reviewers_includes_team_only_when_given() -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/acme/rocket/pulls/42/requested_reviewers"
        bodies.append(json.loads(request.content))
        return httpx.Response(status_code=201, json={})

    with make_client(handler) as client:
        request_reviewers(
            client=client, repo_full_name="acme/rocket", pr_number=42, reviewers=["bob"]
        )
        request_reviewers(
            client=client,
            repo_full_name="acme/rocket",
            pr_number=42,
            reviewers=["bob"],
            team_reviewers=["core"],
        )

    assert bodies == [
        {"reviewers": ["bob"]},
        {"reviewers": ["bob"], "team_reviewers": ["core"]},
    ]


@pytest.mark.unit
def test_write_requests_are_not_retried(monkeypatch: pytest.MonkeyPatch) -> None:
    sleep_durations: list[float] = []
    monkeypatch.setattr("src.github_client._sleep_for_retry", sleep_durations.append)
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        return httpx.Response(status_code=502)

    with make_client(handler) as client, pytest.raises(GitHubApiError) as exc_info:
        request_reviewers(
            client=client, repo_full_name="acme/rocket", pr_number=42, reviewers=["bob"]
        )

    assert exc_info.value.status_code == 502
    assert attempts["count"] == 1
    assert sleep_durations == []


@pytest.mark.unit
def test_retry_honors_retry_after_header(monkeypatch: pytest.MonkeyPatch) -> None:
    sleep_durations: list[float] = []
    monkeypatch.setattr("src.github_client._sleep_for_retry", sleep_durations.append)
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] == 1:
            return httpx.Response(status_code=429, headers={"Retry-After": "3"})
        return httpx.Response(status_code=200, json={"stargazers_count": 7})

    with make_client(handler) as client:
        stars = fetch_repository_star_count(client=client, repo_full_name="acme/rocket")

    assert stars == 7
    assert attempts["count"] == 2
    assert sleep_durations == [3.0]


@pytest.mark.unit
def test_retry_uses_exponential_backoff_for_server_errors(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    sleep_durations: list[float] = []
    monkeypatch.setattr("src.github_client._sleep_for_retry", sleep_durations.append)
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] in {1, 2}:
            return httpx.Response(status_code=502)
        return httpx.Response(status_code=200, json={"stargazers_count": 7})

    with make_client(handler) as client:
        stars = fetch_repository_star_count(client=client, repo_full_name="acme/rocket")

    assert stars == 7
    assert attempts["count"] == 3
    assert sleep_durations == [0.5, 1.0]


@pytest.mark.unit
def test_non_retryable_404_fails_fast(monkeypatch: pytest.MonkeyPatch) -> None:
    sleep_durations: list[float] = []
    monkeypatch.setattr("src.github_client._sleep_for_retry", sleep_durations.append)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=404)

    with make_client(handler) as client, pytest.raises(GitHubApiError) as exc_info:
        fetch_repository_star_count(client=client, repo_full_name="acme/rocket")

    assert exc_info.value.status_code == 404
    assert exc_info.value.endpoint == "/repos/acme/rocket"
    assert sleep_durations == []


@pytest.mark.unit
def test_rate_limit_error_after_retry_exhaustion(monkeypatch: pytest.MonkeyPatch) -> None:
    sleep_durations: list[float] = []
    monkeypatch.setattr("src.github_client._sleep_for_retry", sleep_durations.append)
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        return httpx.Response(status_code=429)

    with make_client(handler) as client, pytest.raises(GitHubRateLimitError):
        fetch_repository_star_count(client=client, repo_full_name="acme/rocket")

    assert attempts["count"] == 3
    assert sleep_durations == [0.5, 1.0]


@pytest.mark.unit
def test_list_repository_projects_paginates() -> None:
    requested_pages: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/acme/rocket/projects"
        page = request.url.params.get("page") or ""
        requested_pages.append(page)
        if page == "1":
            return httpx.Response(
                status_code=200,
                json=[{"id": i, "name": f"Board {i}"} for i in range(100)],
            )
        return httpx.Response(status_code=200, json=[{"id": 500, "name": "Sprint"}])

    with make_client(handler) as client:
        projects = list_repository_projects(client=client, repo_full_name="acme/rocket")

    assert requested_pages == ["1", "2"]
    assert len(projects) == 101
    assert projects[-1].name == "Sprint"


@pytest.mark.unit
def test_list_project_columns_and_cards() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/projects/9/columns":
            return httpx.Response(status_code=200, json=[{"id": 11, "name": "In review"}])
        if request.url.path == "/projects/columns/11/cards":
            return httpx.Response(
                status_code=200,
                json=[
                    {"id": 1, "content_url": "https://api.github.com/repos/acme/rocket/issues/4"},
                    {"id": 2, "note": "free-form note"},
                ],
            )
        raise AssertionError("Unexpected endpoint")

    with make_client(handler) as client:
        columns = list_project_columns(client=client, project_id=9)
        cards = list_column_cards(client=client, column_id=11)

    assert [(column.id, column.name) for column in columns] == [(11, "In review")]
    assert cards == (
        ProjectCard(id=1, content_url="https://api.github.com/repos/acme/rocket/issues/4"),
        ProjectCard(id=2, content_url=None),
    )


@pytest.mark.unit
def test_create_and_move_project_card_payloads() -> None:
    calls: list[tuple[str, dict[str, object]]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.url.path, json.loads(request.content)))
        if request.url.path.endswith("/moves"):
            return httpx.Response(status_code=201, json={})
        return httpx.Response(status_code=201, json={"id": 77, "content_url": None})

    with make_client(handler) as client:
        card = create_pull_request_card(client=client, column_id=11, pull_request_id=1234)
        move_project_card(client=client, card_id=77, column_id=12)

    assert card.id == 77
    assert calls == [
        ("/projects/columns/11/cards", {"content_id": 1234, "content_type": "PullRequest"}),
        ("/projects/columns/cards/77/moves", {"position": "bottom", "column_id": 12}),
    ]


@pytest.mark.unit
def test_get_github_token_with_source_prefers_github_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "github-token")
    monkeypatch.setenv("GH_TOKEN", "gh-token")

    token, source = get_github_token_with_source()

    assert token == "github-token"
    assert source == "GITHUB_TOKEN"


@pytest.mark.unit
def test_get_github_token_loads_from_dotenv(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GH_TOKEN", raising=False)
    (tmp_path / ".env").write_text("GITHUB_TOKEN=dotenv-token\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    assert get_github_token() == "dotenv-token"


@pytest.mark.unit
def test_get_github_token_with_source_raises_when_missing(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GH_TOKEN", raising=False)
    monkeypatch.chdir(tmp_path)

    with pytest.raises(GitHubAuthError):
        get_github_token_with_source()


@pytest.mark.unit
def test_fetch_authenticated_user_login_returns_login() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/user"
        return httpx.Response(status_code=200, json={"login": "octocat"})

    with make_client(handler) as client:
        assert fetch_authenticated_user_login(client=client) == "octocat"
