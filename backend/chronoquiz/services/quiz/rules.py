from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class QuizRules:
    """Point values, question counts and timing for one quiz configuration.

    Defaults mirror the values shipped in ``config.Config``.
    """

    expiry_min: int = 20

    p1_questions: int = 3
    p1_choices: int = 3
    p1_points: int = 3
    p1_choices_max_diff: int = 10

    p2_questions: int = 4
    p2_points: int = 8
    p2_partial_points: int = 3

    p3_points: int = 5

    def __post_init__(self):
        if self.p1_questions < 1 or self.p2_questions < 1:
            raise ValueError('Phases 1 and 2 need at least one question each')
        if self.p1_choices < 1:
            raise ValueError('Phase 1 needs at least one choice per question')
        # Distractors are drawn without replacement from [year-diff, year+diff]
        # minus the correct year itself.
        if self.p1_choices - 1 > 2 * self.p1_choices_max_diff:
            raise ValueError(
                f'Cannot draw {self.p1_choices - 1} distinct distractors within '
                f'+/-{self.p1_choices_max_diff} years'
            )
        if self.expiry_min <= 0:
            raise ValueError('Quiz expiry must be positive')

    @property
    def min_events(self) -> int:
        return self.p1_questions + self.p2_questions

    @property
    def expiry_sec(self) -> int:
        return self.expiry_min * 60

    def questions_count(self, events_count: int) -> int:
        return self.p1_questions + self.p2_questions + events_count

    def potential_points(self, events_count: int) -> int:
        return (
            self.p1_questions * self.p1_points
            + self.p2_questions * self.p2_points
            + events_count * self.p3_points
        )

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> 'QuizRules':
        defaults = cls()
        return cls(
            expiry_min=int(cfg.get('QUIZ_EXPIRY_MIN', defaults.expiry_min)),
            p1_questions=int(cfg.get('QUIZ_P1_QUESTIONS', defaults.p1_questions)),
            p1_choices=int(cfg.get('QUIZ_P1_CHOICES', defaults.p1_choices)),
            p1_points=int(cfg.get('QUIZ_P1_POINTS', defaults.p1_points)),
            p1_choices_max_diff=int(cfg.get('QUIZ_P1_CHOICES_MAX_DIFF', defaults.p1_choices_max_diff)),
            p2_questions=int(cfg.get('QUIZ_P2_QUESTIONS', defaults.p2_questions)),
            p2_points=int(cfg.get('QUIZ_P2_POINTS', defaults.p2_points)),
            p2_partial_points=int(cfg.get('QUIZ_P2_PARTIAL_POINTS', defaults.p2_partial_points)),
            p3_points=int(cfg.get('QUIZ_P3_POINTS', defaults.p3_points)),
        )
