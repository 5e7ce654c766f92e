import copy
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional

from .questions import EventSnapshot, QuestionSet, question_set_from_dict


class Step(IntEnum):
    """Position of a quiz session. Each accepted transition moves it up by one."""

    PREPARED_1 = 0
    SUBMITTED_1 = 1
    PREPARED_2 = 2
    SUBMITTED_2 = 3
    PREPARED_3 = 4
    SUBMITTED_3 = 5

    @property
    def phase(self) -> int:
        return self.value // 2 + 1

    @property
    def submitted(self) -> bool:
        return self.value % 2 == 1

    @classmethod
    def prepared(cls, phase: int) -> 'Step':
        return cls((phase - 1) * 2)

    @classmethod
    def after_submit(cls, phase: int) -> 'Step':
        return cls((phase - 1) * 2 + 1)


@dataclass(frozen=True)
class TopicSnapshot:
    topic_id: int
    name: str
    events: List[EventSnapshot] = field(default_factory=list)

    @property
    def events_count(self) -> int:
        return len(self.events)

    def to_dict(self):
        return {
            'topic_id': self.topic_id,
            'name': self.name,
            'events': [e.to_dict() for e in self.events],
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> 'TopicSnapshot':
        return TopicSnapshot(
            topic_id=int(d['topic_id']),
            name=d.get('name', ''),
            events=[EventSnapshot.from_dict(e) for e in d.get('events', [])],
        )


@dataclass
class QuizSession:
    """Everything the server keeps about one playthrough.

    ``topic`` is captured (and its events shuffled) once at the start, so
    later phases never see edits made to the topic mid-quiz. ``questions``
    always holds the set belonging to ``step.phase``.
    """

    topic: TopicSnapshot
    step: Step
    questions: QuestionSet
    timestamp: float
    points: int = 0
    correct_guesses: int = 0
    # Filled in once the final phase is submitted; None means no comparison
    percentile: Optional[int] = None
    # Player who started the quiz; every later step must come from the same one
    user_id: Optional[int] = None

    def __post_init__(self):
        if self.questions.phase != self.step.phase:
            raise ValueError(
                f'Question set of phase {self.questions.phase} does not belong to step {self.step.name}'
            )

    def copy(self) -> 'QuizSession':
        return copy.deepcopy(self)

    def to_dict(self):
        return {
            'topic': self.topic.to_dict(),
            'step': int(self.step),
            'questions': self.questions.to_dict(),
            'timestamp': self.timestamp,
            'points': self.points,
            'correct_guesses': self.correct_guesses,
            'percentile': self.percentile,
            'user_id': self.user_id,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> 'QuizSession':
        return QuizSession(
            topic=TopicSnapshot.from_dict(d['topic']),
            step=Step(int(d['step'])),
            questions=question_set_from_dict(d['questions']),
            timestamp=float(d['timestamp']),
            points=int(d.get('points', 0)),
            correct_guesses=int(d.get('correct_guesses', 0)),
            percentile=d.get('percentile'),
            user_id=d.get('user_id'),
        )
