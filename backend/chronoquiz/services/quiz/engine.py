import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Protocol, Sequence

from .errors import (
    Expired,
    InsufficientEvents,
    NoSession,
    NotAuthenticated,
    StepMismatch,
    TopicMismatch,
    UserMismatch,
)
from .questions import (
    Phase1Questions,
    Phase2Questions,
    Phase3Questions,
    create_phase1_questions,
    create_phase2_questions,
    create_phase3_questions,
)
from .ranking import rank
from .rules import QuizRules
from .scoring import score_phase1, score_phase2, score_phase3
from .session import QuizSession, Step, TopicSnapshot


class ScoreStore(Protocol):
    def get_scores_by_topic(self, topic_id: int) -> Sequence[Any]: ...

    def create_score(self, topic_id: int, user_id: int, points: int, date: datetime) -> Any: ...


@dataclass(frozen=True)
class QuizSummary:
    topic_id: int
    topic_name: str
    points: int
    correct_guesses: int
    questions_count: int
    potential_points: int
    percentile: Optional[int]

    def to_dict(self):
        return {
            'topic_id': self.topic_id,
            'topic_name': self.topic_name,
            'points': self.points,
            'correct_guesses': self.correct_guesses,
            'questions_count': self.questions_count,
            'potential_points': self.potential_points,
            'percentile': self.percentile,
            'has_comparison': self.percentile is not None,
        }


class QuizEngine:
    """Drives one player through the three quiz phases.

    Every transition validates the incoming record first and then works on a
    copy, so a rejected request leaves the caller's record exactly as it was.
    The returned record is what the host should store.

    ``rng_factory`` is called once per transition that needs randomness;
    pass something like ``lambda: random.Random(42)`` for repeatable runs.
    """

    def __init__(
        self,
        rules: QuizRules,
        store: Optional[ScoreStore] = None,
        clock: Callable[[], float] = time.time,
        rng_factory: Callable[[], random.Random] = random.Random,
    ):
        self.rules = rules
        self.store = store
        self.clock = clock
        self.rng_factory = rng_factory

    # ---- validation ----

    def validate(
        self,
        record: Optional[QuizSession],
        expected_step: Step,
        topic_id: int,
        phase: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> None:
        """Raise if ``record`` may not be used for the action requiring ``expected_step``.

        ``phase`` only feeds the error message; it defaults to the phase the
        expected step belongs to. ``user_id`` must be the player who started
        the record.
        """
        phase = phase or expected_step.phase
        if record is None:
            raise NoSession(phase, topic_id)
        if record.user_id != user_id:
            raise UserMismatch(phase, topic_id)
        if record.topic.topic_id != topic_id:
            raise TopicMismatch(phase, topic_id)
        if record.step != expected_step:
            raise StepMismatch(phase, topic_id)
        if self.clock() > record.timestamp + self.rules.expiry_sec:
            raise Expired(phase, topic_id, self.rules.expiry_min)

    def _advance(self, record: QuizSession, questions=None) -> QuizSession:
        updated = record.copy()
        updated.step = Step(record.step + 1)
        if questions is not None:
            updated.questions = questions
        updated.timestamp = self.clock()
        return updated

    # ---- transitions ----

    def start(self, topic: TopicSnapshot, user_id: Optional[int] = None) -> QuizSession:
        """Begin a new quiz on ``topic`` for ``user_id``, replacing whatever came before."""
        required = self.rules.min_events
        if topic.events_count < required:
            raise InsufficientEvents(topic.topic_id, topic.events_count, required)

        rng = self.rng_factory()
        events = list(topic.events)
        # One shuffle for the whole session; phases 1 and 2 slice it
        rng.shuffle(events)
        snapshot = TopicSnapshot(topic_id=topic.topic_id, name=topic.name, events=events)
        questions = create_phase1_questions(
            events,
            self.rules.p1_questions,
            self.rules.p1_choices,
            self.rules.p1_choices_max_diff,
            rng,
        )
        return QuizSession(
            topic=snapshot,
            step=Step.PREPARED_1,
            questions=questions,
            timestamp=self.clock(),
            user_id=user_id,
        )

    def submit_phase1(
        self,
        record: Optional[QuizSession],
        topic_id: int,
        answers: Sequence[Any],
        user_id: Optional[int] = None,
    ) -> QuizSession:
        self.validate(record, Step.PREPARED_1, topic_id, user_id=user_id)
        updated = self._advance(record)
        result = score_phase1(updated.questions, answers, self.rules.p1_points)
        updated.points += result.points
        updated.correct_guesses += result.correct_guesses
        return updated

    def prepare_phase2(self, record: Optional[QuizSession], topic_id: int, user_id: Optional[int] = None) -> QuizSession:
        self.validate(record, Step.SUBMITTED_1, topic_id, phase=2, user_id=user_id)
        questions = create_phase2_questions(
            record.topic.events, self.rules.p1_questions, self.rules.p2_questions
        )
        return self._advance(record, questions)

    def submit_phase2(
        self,
        record: Optional[QuizSession],
        topic_id: int,
        answers: Sequence[Any],
        user_id: Optional[int] = None,
    ) -> QuizSession:
        self.validate(record, Step.PREPARED_2, topic_id, user_id=user_id)
        updated = self._advance(record)
        result = score_phase2(
            updated.questions, answers, self.rules.p2_points, self.rules.p2_partial_points
        )
        updated.points += result.points
        updated.correct_guesses += result.correct_guesses
        return updated

    def prepare_phase3(self, record: Optional[QuizSession], topic_id: int, user_id: Optional[int] = None) -> QuizSession:
        self.validate(record, Step.SUBMITTED_2, topic_id, phase=3, user_id=user_id)
        questions = create_phase3_questions(record.topic.events, self.rng_factory())
        return self._advance(record, questions)

    def submit_phase3(
        self,
        record: Optional[QuizSession],
        topic_id: int,
        answers: Sequence[Any],
        user_id: Optional[int],
        claim: Optional[Callable[[QuizSession], bool]] = None,
    ) -> QuizSession:
        """Score the ordering, rank the total and record the final score.

        The total is ranked against the scores stored *before* this attempt;
        the new score is written afterwards. ``claim`` is handed the finished
        record before the score write and returns False when another request
        already finished this quiz, in which case no score is written.
        """
        if user_id is None:
            raise NotAuthenticated(3, topic_id)
        self.validate(record, Step.PREPARED_3, topic_id, user_id=user_id)
        if self.store is None:
            raise RuntimeError('QuizEngine needs a score store to finish a quiz')

        updated = self._advance(record)
        result = score_phase3(updated.questions, answers, self.rules.p3_points)
        updated.points += result.points
        updated.correct_guesses += result.correct_guesses

        scores = self.store.get_scores_by_topic(topic_id)
        updated.percentile = rank(updated.points, scores)
        if claim is not None and not claim(updated):
            raise StepMismatch(3, topic_id)
        self.store.create_score(
            topic_id,
            user_id,
            updated.points,
            datetime.fromtimestamp(updated.timestamp, tz=timezone.utc),
        )
        return updated

    # ---- read-only views ----

    def show_phase(
        self, record: Optional[QuizSession], topic_id: int, phase: int, user_id: Optional[int] = None
    ) -> QuizSession:
        """Prepared questions of ``phase``; reloading never regenerates them."""
        self.validate(record, Step.prepared(phase), topic_id, phase=phase, user_id=user_id)
        return record

    def review_phase(
        self, record: Optional[QuizSession], topic_id: int, phase: int, user_id: Optional[int] = None
    ) -> QuizSession:
        """Scored questions of ``phase`` right after submitting it."""
        self.validate(record, Step.after_submit(phase), topic_id, phase=phase, user_id=user_id)
        return record

    def summary(self, record: Optional[QuizSession], topic_id: int, user_id: Optional[int] = None) -> QuizSummary:
        self.validate(record, Step.SUBMITTED_3, topic_id, phase=3, user_id=user_id)
        events_count = record.topic.events_count
        return QuizSummary(
            topic_id=record.topic.topic_id,
            topic_name=record.topic.name,
            points=record.points,
            correct_guesses=record.correct_guesses,
            questions_count=self.rules.questions_count(events_count),
            potential_points=self.rules.potential_points(events_count),
            percentile=record.percentile,
        )


def phase_questions(record: QuizSession) -> List[Any]:
    """Questions of the record's current phase, typed by the step it is in."""
    expected = {1: Phase1Questions, 2: Phase2Questions, 3: Phase3Questions}[record.step.phase]
    if not isinstance(record.questions, expected):
        raise ValueError(f'Step {record.step.name} carries a phase {record.questions.phase} question set')
    return record.questions.questions
