"""Workload score for a pull request derived from its change size."""

from __future__ import annotations

import math

SCORE_DECAY_WIDTH = 5000


def _gaussian_coefficient(magnitude: float) -> float:
    """Return the bell-curve damping factor centered at zero."""
    return math.exp(-0.5 * (magnitude / SCORE_DECAY_WIDTH) ** 2)


def compute_review_score(additions: int | None, deletions: int | None) -> int:
    """Compute the effort points credited to the reviewer of a pull request.

    Missing counts count as zero. The change magnitude is
    ``additions + |additions - deletions| + deletions``, damped by a Gaussian
    of width ``SCORE_DECAY_WIDTH`` so outlier-sized diffs cannot dominate
    future routing. The product is truncated toward zero.
    """
    added = float(additions or 0)
    deleted = float(deletions or 0)
    magnitude = added + abs(added - deleted) + deleted
    return int(_gaussian_coefficient(magnitude) * magnitude)
