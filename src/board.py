"""Project board placement for pull request cards."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from src.github_client import (
    ProjectCard,
    ProjectColumn,
    create_pull_request_card,
    list_column_cards,
    list_project_columns,
    list_repository_projects,
    move_project_card,
)

BACKLOG = "Backlog"
IN_PROGRESS = "In progress"
IN_REVIEW = "In review"
PENDING_RELEASE = "Pending release"
REQUIRED_COLUMNS = (BACKLOG, IN_PROGRESS, IN_REVIEW, PENDING_RELEASE)

logger = logging.getLogger(__name__)


class BoardError(RuntimeError):
    """Raised when the project board is missing expected structure."""


@dataclass(frozen=True, slots=True)
class CardPlacement:
    """Result of placing a pull request card."""

    card_id: int
    created: bool


def resolve_board_columns(
    *,
    client: httpx.Client,
    repo_full_name: str,
    project_name: str,
) -> dict[str, ProjectColumn]:
    """Find the named project and return its required columns by name."""
    projects = list_repository_projects(client=client, repo_full_name=repo_full_name)
    project = next((candidate for candidate in projects if candidate.name == project_name), None)
    if project is None:
        raise BoardError(f"Project '{project_name}' not found in {repo_full_name}.")

    columns = {
        column.name: column
        for column in list_project_columns(client=client, project_id=project.id)
        if column.name in REQUIRED_COLUMNS
    }
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        raise BoardError(f"Project '{project_name}' is missing column(s): {', '.join(missing)}.")
    return columns


def _find_pull_request_card(
    cards: list[ProjectCard],
    *,
    repo_full_name: str,
    pr_number: int,
) -> ProjectCard | None:
    """Match a card whose content points at the pull request's issue."""
    suffix = f"/repos/{repo_full_name}/issues/{pr_number}"
    for card in cards:
        if card.content_url is not None and card.content_url.endswith(suffix):
            return card
    return None


def place_pull_request_in_review(
    *,
    client: httpx.Client,
    repo_full_name: str,
    project_name: str,
    pr_number: int,
    pull_request_id: int,
) -> CardPlacement:
    """Move the PR's card to "In review", creating it when absent."""
    columns = resolve_board_columns(
        client=client,
        repo_full_name=repo_full_name,
        project_name=project_name,
    )
    cards: list[ProjectCard] = []
    for column_name in REQUIRED_COLUMNS:
        cards.extend(list_column_cards(client=client, column_id=columns[column_name].id))

    target = columns[IN_REVIEW]
    existing = _find_pull_request_card(cards, repo_full_name=repo_full_name, pr_number=pr_number)
    if existing is None:
        card = create_pull_request_card(
            client=client,
            column_id=target.id,
            pull_request_id=pull_request_id,
        )
        logger.info("Created card %d for PR #%d in %s", card.id, pr_number, IN_REVIEW)
        return CardPlacement(card_id=card.id, created=True)

    move_project_card(client=client, card_id=existing.id, column_id=target.id)
    logger.info("Moved card %d for PR #%d to %s", existing.id, pr_number, IN_REVIEW)
    return CardPlacement(card_id=existing.id, created=False)
