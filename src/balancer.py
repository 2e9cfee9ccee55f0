"""Least-loaded reviewer selection with threshold rebalancing."""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass

from src.schema import Reviewer
from src.scoring import compute_review_score
from src.store import ReviewerStore

DEFAULT_REBALANCE_THRESHOLD = 1000

logger = logging.getLogger(__name__)


class BalancerError(RuntimeError):
    """Base class for reviewer selection failures."""


class EmptyPoolError(BalancerError):
    """Raised when the store holds no reviewers."""


class NoEligibleReviewerError(BalancerError):
    """Raised when exclusions leave no reviewer to pick."""


@dataclass(frozen=True, slots=True)
class Assignment:
    """Outcome of one balancing pass."""

    assignee: Reviewer
    pool: tuple[Reviewer, ...]


def _by_workload(reviewers: list[Reviewer]) -> list[Reviewer]:
    """Sort ascending by workload; ties keep read order."""
    return sorted(reviewers, key=lambda reviewer: reviewer.workload)


class ReviewerBalancer:
    """Credits review effort to the least-loaded reviewer in a store.

    Every call reads the whole pool, mutates a working copy and writes the
    whole pool back. Calls on one instance are serialized so concurrent
    requests in the same process cannot overwrite each other's update.
    """

    def __init__(
        self,
        store: ReviewerStore,
        *,
        threshold: int = DEFAULT_REBALANCE_THRESHOLD,
        rng: random.Random | None = None,
    ) -> None:
        if threshold <= 0:
            raise ValueError(f"Rebalance threshold must be positive, got {threshold}.")
        self._store = store
        self._threshold = threshold
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    @property
    def threshold(self) -> int:
        """Workload at which every reviewer is shifted down."""
        return self._threshold

    def assign(self, score: int, exclude_name: str | None = None) -> Assignment:
        """Pick the least-loaded reviewer, credit them and persist the pool.

        The returned ``assignee`` is a snapshot taken before the score was
        added. ``exclude_name`` keeps a pull request author from reviewing
        their own change.
        """
        if score < 0:
            raise ValueError(f"Score must be non-negative, got {score}.")

        with self._lock:
            pool = _by_workload(self._store.read_all())
            if not pool:
                raise EmptyPoolError("No reviewers are registered in the store.")

            candidates = [reviewer for reviewer in pool if reviewer.name != exclude_name]
            if not candidates:
                raise NoEligibleReviewerError(
                    f"No reviewer is eligible once '{exclude_name}' is excluded."
                )
            selected = min(candidates, key=lambda reviewer: reviewer.workload)
            assignee = selected.model_copy()

            selected.workload += score
            pool = _by_workload(pool)
            # Whole multiples only, so the minimum lands below the threshold.
            shift = (pool[0].workload // self._threshold) * self._threshold
            if shift:
                for reviewer in pool:
                    reviewer.workload -= shift
                logger.info("Rebalanced %d reviewers by %d points", len(pool), shift)

            self._store.write_all(pool)

        logger.info(
            "Assigned %d points to %s (workload before: %d)",
            score,
            assignee.name,
            assignee.workload,
        )
        return Assignment(assignee=assignee, pool=tuple(pool))

    def pick_random(self) -> Reviewer:
        """Return a uniformly random reviewer without touching workloads."""
        pool = self._store.read_all()
        if not pool:
            raise EmptyPoolError("No reviewers are registered in the store.")
        return self._rng.choice(pool)


def assign_reviewer_for_pull_request(
    balancer: ReviewerBalancer,
    *,
    additions: int | None,
    deletions: int | None,
    author: str | None,
) -> Reviewer:
    """Score a pull request and assign it, skipping its author."""
    score = compute_review_score(additions, deletions)
    assignment = balancer.assign(score, exclude_name=author or None)
    logger.info("Reviewer %s selected for pull request worth %d points", assignment.assignee.name, score)
    return assignment.assignee
