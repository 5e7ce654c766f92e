"""Quiz domain services: question generation, scoring, session state and ranking.

This package holds the quiz mechanics that HTTP routes call into. Nothing in
here touches the request or the Flask session directly; the only I/O goes
through the collaborators in ``store``.
"""

from .engine import QuizEngine
from .errors import (
    Expired,
    InsufficientEvents,
    NoSession,
    NotAuthenticated,
    NotFound,
    QuizStoreError,
    QuizValidationError,
    StepMismatch,
    StorageError,
    TopicMismatch,
    UserMismatch,
)
from .rules import QuizRules
from .session import QuizSession, Step
