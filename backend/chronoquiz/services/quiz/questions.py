"""Question generators for the three quiz phases.

Each generator is a pure function of its events and the ``random.Random``
it is handed; nothing here touches the module-level random state.
"""

import random
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Union


@dataclass(frozen=True)
class EventSnapshot:
    event_id: int
    name: str
    year: int
    date: date

    def to_dict(self):
        return {
            'event_id': self.event_id,
            'name': self.name,
            'year': self.year,
            'date': self.date.isoformat(),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> 'EventSnapshot':
        return EventSnapshot(
            event_id=int(d['event_id']),
            name=d['name'],
            year=int(d['year']),
            date=date.fromisoformat(d['date']),
        )


@dataclass
class Phase1Question:
    event_name: str
    event_year: int
    choices: List[int]
    user_guess: Optional[int] = None
    correct_guess: bool = False
    points: int = 0


@dataclass
class Phase2Question:
    event_name: str
    event_year: int
    user_guess: Optional[int] = None
    correct_guess: bool = False
    points: int = 0


@dataclass
class Phase3Question:
    event_name: str
    event_year: int
    order: int  # 0-based rank of the event by date
    # Scoring results for the presentation slot this question occupies
    user_guess: Optional[str] = None
    correct_guess: bool = False
    points: int = 0


@dataclass
class Phase1Questions:
    phase: ClassVar[int] = 1
    questions: List[Phase1Question] = field(default_factory=list)

    def to_dict(self):
        return {'phase': self.phase, 'questions': [asdict(q) for q in self.questions]}


@dataclass
class Phase2Questions:
    phase: ClassVar[int] = 2
    questions: List[Phase2Question] = field(default_factory=list)

    def to_dict(self):
        return {'phase': self.phase, 'questions': [asdict(q) for q in self.questions]}


@dataclass
class Phase3Questions:
    phase: ClassVar[int] = 3
    questions: List[Phase3Question] = field(default_factory=list)

    def to_dict(self):
        return {'phase': self.phase, 'questions': [asdict(q) for q in self.questions]}

    def order_by_name(self) -> Dict[str, int]:
        return {q.event_name: q.order for q in self.questions}


QuestionSet = Union[Phase1Questions, Phase2Questions, Phase3Questions]

_QUESTION_SETS = {
    1: (Phase1Questions, Phase1Question),
    2: (Phase2Questions, Phase2Question),
    3: (Phase3Questions, Phase3Question),
}


def question_set_from_dict(d: Dict[str, Any]) -> QuestionSet:
    try:
        set_cls, question_cls = _QUESTION_SETS[int(d['phase'])]
    except (KeyError, TypeError, ValueError):
        raise ValueError(f"Unknown question set phase: {d.get('phase')!r}")
    return set_cls(questions=[question_cls(**q) for q in d.get('questions', [])])


def random_distractors(correct_year: int, count: int, max_diff: int, rng: random.Random) -> List[int]:
    """Draw ``count`` distinct years within ``max_diff`` of ``correct_year``.

    Draws equal to the correct year or to an already accepted distractor are
    rejected and redrawn.
    """
    if count > 2 * max_diff:
        raise ValueError(f'Only {2 * max_diff} distinct distractors exist within +/-{max_diff}')
    low, high = correct_year - max_diff, correct_year + max_diff
    taken = {correct_year}
    distractors: List[int] = []
    while len(distractors) < count:
        year = rng.randint(low, high)
        if year in taken:
            continue
        taken.add(year)
        distractors.append(year)
    return distractors


def create_phase1_questions(
    events: Sequence[EventSnapshot],
    count: int,
    choices: int,
    max_diff: int,
    rng: random.Random,
) -> Phase1Questions:
    """Multiple choice: the first ``count`` events, each with ``choices`` candidate years."""
    questions = []
    for event in events[:count]:
        years = random_distractors(event.year, choices - 1, max_diff, rng)
        years.append(event.year)
        # Correct year must not sit in a predictable slot
        rng.shuffle(years)
        questions.append(Phase1Question(event_name=event.name, event_year=event.year, choices=years))
    return Phase1Questions(questions=questions)


def create_phase2_questions(events: Sequence[EventSnapshot], offset: int, count: int) -> Phase2Questions:
    """Exact year recall for events ``offset`` to ``offset + count - 1``."""
    return Phase2Questions(questions=[
        Phase2Question(event_name=event.name, event_year=event.year)
        for event in events[offset:offset + count]
    ])


def create_phase3_questions(events: Sequence[EventSnapshot], rng: random.Random) -> Phase3Questions:
    """Chronological ordering over all events.

    ``order`` is the event's rank by full date; events sharing a date keep
    their incoming relative order. The presentation order is shuffled
    afterwards, the ranks are not.
    """
    by_date = sorted(events, key=lambda e: e.date)
    questions = [
        Phase3Question(event_name=event.name, event_year=event.year, order=index)
        for index, event in enumerate(by_date)
    ]
    rng.shuffle(questions)
    return Phase3Questions(questions=questions)
