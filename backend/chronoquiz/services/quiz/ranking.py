from bisect import bisect_right
from typing import Any, Callable, Optional, Sequence


def _points_of(score: Any) -> int:
    return score if isinstance(score, int) else score.points


def rank(
    final_points: int,
    scores: Sequence[Any],
    points_of: Callable[[Any], int] = _points_of,
) -> Optional[int]:
    """Percentage of historical scores that ``final_points`` beats.

    ``scores`` must already be sorted by points, highest first; it is not
    re-sorted here. Ties count as "not worse", so equal scores are not beaten
    but do not push the new score down either. Example: 50 scores, 20 of
    them lower than ``final_points`` -> 40.

    Returns ``None`` when there is nothing to compare against.
    """
    if not scores:
        return None
    # Negated points ascend, which is what bisect expects
    position = bisect_right(scores, -final_points, key=lambda s: -points_of(s))
    return (len(scores) - position) * 100 // len(scores)
