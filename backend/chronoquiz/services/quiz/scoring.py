"""Scoring rules for the three quiz phases.

Each rule fills in ``user_guess``, ``correct_guess`` and ``points`` on the
questions it is given and returns the phase totals. Callers pass a copy of
the stored question set; the rules never read anything else.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .questions import Phase1Questions, Phase2Questions, Phase3Questions


@dataclass(frozen=True)
class PhaseResult:
    points: int
    correct_guesses: int


def _answer_at(answers: Sequence[Any], index: int) -> Any:
    return answers[index] if 0 <= index < len(answers) else None


def parse_year(raw: Any) -> Optional[int]:
    """Form values arrive as strings; anything that isn't an integer is no guess."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def score_phase1(questions: Phase1Questions, answers: Sequence[Any], points: int) -> PhaseResult:
    """``points`` per chosen year equal to the correct year, nothing otherwise."""
    total = correct = 0
    for num, question in enumerate(questions.questions):
        guess = parse_year(_answer_at(answers, num))
        question.user_guess = guess
        question.correct_guess = guess == question.event_year
        question.points = points if question.correct_guess else 0
        total += question.points
        correct += int(question.correct_guess)
    return PhaseResult(points=total, correct_guesses=correct)


def year_points(correct_year: int, guess: Optional[int], points: int, partial_points: int) -> int:
    if guess is None:
        return 0
    if guess == correct_year:
        return points
    difference = abs(correct_year - guess)
    # The closer the guess, the more partial points
    if difference < partial_points:
        return partial_points - difference
    return 0


def score_phase2(
    questions: Phase2Questions,
    answers: Sequence[Any],
    points: int,
    partial_points: int,
) -> PhaseResult:
    """Exact year earns ``points``; a near miss earns ``partial_points - difference``."""
    total = correct = 0
    for num, question in enumerate(questions.questions):
        guess = parse_year(_answer_at(answers, num))
        question.user_guess = guess
        question.correct_guess = guess == question.event_year
        question.points = year_points(question.event_year, guess, points, partial_points)
        total += question.points
        correct += int(question.correct_guess)
    return PhaseResult(points=total, correct_guesses=correct)


def score_phase3(questions: Phase3Questions, answers: Sequence[Any], points: int) -> PhaseResult:
    """Score the player's chronological ordering.

    ``answers[slot]`` is the name of the event the player put at position
    ``slot``. Each slot earns ``points`` minus how many ranks the event is
    away from its true position, floored at zero. Names that are not part
    of the question set earn nothing, and a name placed more than once only
    counts in the first slot it appears in.
    """
    order_by_name = questions.order_by_name()
    placed = set()
    total = correct = 0
    for slot, question in enumerate(questions.questions):
        raw = _answer_at(answers, slot)
        name = str(raw).strip() if raw is not None else None
        question.user_guess = name
        order = order_by_name.get(name) if name and name not in placed else None
        placed.add(name)
        if order is None:
            question.correct_guess = False
            question.points = 0
        else:
            difference = abs(order - slot)
            question.correct_guess = difference == 0
            question.points = max(0, points - difference)
        total += question.points
        correct += int(question.correct_guess)
    return PhaseResult(points=total, correct_guesses=correct)


def names_in_order(questions: Phase3Questions) -> List[str]:
    """The event names sorted into true chronological order."""
    return [q.event_name for q in sorted(questions.questions, key=lambda q: q.order)]
