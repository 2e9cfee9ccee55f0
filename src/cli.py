"""Typer CLI for the reviewer balancer."""

from __future__ import annotations

from typing import Annotated

import httpx
import typer
import uvicorn

from src.balancer import BalancerError, ReviewerBalancer
from src.config import ConfigError, Settings, load_settings
from src.github_client import (
    GitHubApiError,
    GitHubAuthError,
    build_github_client,
    fetch_authenticated_user_login,
    fetch_repository_star_count,
    get_github_token_with_source,
)
from src.observability import configure_logging
from src.schema import Reviewer
from src.scoring import compute_review_score
from src.server import build_app
from src.store import SqliteReviewerStore, StoreError

app = typer.Typer(help="Balance pull request reviews across a fixed reviewer pool.")
reviewers_app = typer.Typer(help="Administer the tracked reviewer pool.")
app.add_typer(reviewers_app, name="reviewers")


def _settings() -> Settings:
    """Load settings or exit with a readable message."""
    try:
        settings = load_settings()
    except ConfigError as error:
        typer.echo(f"Configuration error: {error}")
        raise typer.Exit(code=1) from error
    configure_logging(settings.log_level)
    return settings


def _open_store(settings: Settings) -> SqliteReviewerStore:
    """Open the configured reviewer store or exit."""
    try:
        return SqliteReviewerStore(settings.reviewer_db_path)
    except StoreError as error:
        typer.echo(f"Store error: {error}")
        raise typer.Exit(code=1) from error


@app.command("serve")
def serve_command(
    host: Annotated[str, typer.Option(help="Interface to bind.")] = "0.0.0.0",
    port: Annotated[int, typer.Option(help="Port to listen on.")] = 80,
) -> None:
    """Run the HTTP service (health, get-reviewer and webhook endpoints)."""
    settings = _settings()
    try:
        service = build_app(settings)
    except (GitHubAuthError, StoreError) as error:
        typer.echo(f"Unable to start service: {error}")
        raise typer.Exit(code=1) from error
    uvicorn.run(service, host=host, port=port, log_config=None)


@app.command("score")
def score_command(
    additions: Annotated[int | None, typer.Option(help="Lines added.")] = None,
    deletions: Annotated[int | None, typer.Option(help="Lines deleted.")] = None,
) -> None:
    """Print the workload score for a change size."""
    typer.echo(str(compute_review_score(additions, deletions)))


@app.command("assign")
def assign_command(
    point: Annotated[int, typer.Option(help="Workload points to credit.")],
    exclude: Annotated[
        str | None, typer.Option(help="Reviewer name that must not be picked (PR author).")
    ] = None,
) -> None:
    """Assign work to the least-loaded reviewer and persist the pool."""
    settings = _settings()
    balancer = ReviewerBalancer(_open_store(settings), threshold=settings.rebalance_threshold)
    try:
        assignment = balancer.assign(point, exclude_name=exclude)
    except (BalancerError, StoreError, ValueError) as error:
        typer.echo(f"Assignment failed: {error}")
        raise typer.Exit(code=1) from error
    assignee = assignment.assignee
    typer.echo(f"{assignee.name},{assignee.contact_handle}")


@app.command("pick-random")
def pick_random_command() -> None:
    """Print a uniformly random reviewer without changing workloads."""
    settings = _settings()
    balancer = ReviewerBalancer(_open_store(settings), threshold=settings.rebalance_threshold)
    try:
        reviewer = balancer.pick_random()
    except (BalancerError, StoreError) as error:
        typer.echo(f"Random pick failed: {error}")
        raise typer.Exit(code=1) from error
    typer.echo(f"{reviewer.name},{reviewer.contact_handle}")


@reviewers_app.command("list")
def list_reviewers_command() -> None:
    """Show reviewers with their current workload."""
    store = _open_store(_settings())
    try:
        reviewers = store.read_all()
    except StoreError as error:
        typer.echo(f"Store error: {error}")
        raise typer.Exit(code=1) from error
    if not reviewers:
        typer.echo("No reviewers registered.")
        return
    for reviewer in sorted(reviewers, key=lambda entry: entry.workload):
        typer.echo(f"{reviewer.name}\t{reviewer.workload}\t{reviewer.contact_handle}")


@reviewers_app.command("add")
def add_reviewer_command(
    name: Annotated[str, typer.Argument(help="GitHub login of the reviewer.")],
    contact: Annotated[str, typer.Option(help="Chat handle used in notifications.")] = "",
    workload: Annotated[int, typer.Option(help="Starting workload.")] = 0,
) -> None:
    """Register a reviewer."""
    store = _open_store(_settings())
    try:
        store.add(Reviewer(name=name, workload=workload, contact_handle=contact))
    except (StoreError, ValueError) as error:
        typer.echo(f"Could not add reviewer: {error}")
        raise typer.Exit(code=1) from error
    typer.echo(f"Added reviewer '{name}'.")


@reviewers_app.command("remove")
def remove_reviewer_command(
    name: Annotated[str, typer.Argument(help="GitHub login of the reviewer.")],
) -> None:
    """Stop tracking a reviewer."""
    store = _open_store(_settings())
    try:
        removed = store.remove(name)
    except StoreError as error:
        typer.echo(f"Could not remove reviewer: {error}")
        raise typer.Exit(code=1) from error
    if not removed:
        typer.echo(f"Reviewer '{name}' is not registered.")
        raise typer.Exit(code=1)
    typer.echo(f"Removed reviewer '{name}'.")


@app.command("auth-check")
def auth_check_command(
    timeout_seconds: Annotated[
        int, typer.Option(help="GitHub API timeout in seconds for the validation call.")
    ] = 20,
    trust_env: Annotated[
        bool,
        typer.Option(
            "--trust-env/--no-trust-env",
            help="Use proxy/SSL environment variables from the current shell.",
        ),
    ] = True,
) -> None:
    """Validate GitHub token setup and read access to the configured repository."""
    settings = _settings()
    try:
        _token, token_source = get_github_token_with_source()
    except GitHubAuthError as error:
        typer.echo(f"GitHub auth check failed: {error}")
        raise typer.Exit(code=1) from error

    typer.echo(f"Token detected in {token_source}.")

    try:
        with build_github_client(timeout_seconds=timeout_seconds, trust_env=trust_env) as client:
            login = fetch_authenticated_user_login(client=client)
            typer.echo(f"Authenticated as GitHub user '{login}'.")

            if settings.github_owner and settings.github_repo:
                stars = fetch_repository_star_count(
                    client=client,
                    repo_full_name=settings.repo_full_name,
                )
                typer.echo(
                    f"Repository access check passed for {settings.repo_full_name} "
                    f"({stars} stars)."
                )
    except GitHubApiError as error:
        typer.echo(
            "GitHub auth check failed: "
            f"status={error.status_code} endpoint={error.endpoint}."
        )
        raise typer.Exit(code=1) from error
    except httpx.HTTPError as error:
        typer.echo(f"GitHub auth check failed: network error ({error}).")
        raise typer.Exit(code=1) from error

    typer.echo("GitHub token setup is valid.")
