"""Quiz error taxonomy.

Validation errors are user-recoverable: the host flashes ``message`` and sends
the player back to the topic overview. Store errors mean a collaborator broke
and end the current request.
"""

from typing import Optional

_PHASE_PREFIX = 'Ein Fehler ist aufgetreten in Phase {phase} des Quizzes. '


class QuizValidationError(Exception):
    reason = 'Bitte starten Sie ein Quiz nur über die Themenübersicht.'

    def __init__(self, phase: int, topic_id: Optional[int] = None, detail: Optional[str] = None):
        self.phase = phase
        self.topic_id = topic_id
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return _PHASE_PREFIX.format(phase=self.phase) + (self.detail or self.reason)

    def to_dict(self):
        return {
            'error': type(self).__name__,
            'phase': self.phase,
            'message': self.message,
        }


class NoSession(QuizValidationError):
    """No quiz record where one is required (URL typed by hand, or record lost)."""


class TopicMismatch(QuizValidationError):
    reason = 'Womöglich haben Sie versucht, während des Quizzes das Thema zu ändern.'


class StepMismatch(QuizValidationError):
    reason = 'Womöglich haben Sie versucht, eine Phase des Quizzes zu überspringen.'


class UserMismatch(QuizValidationError):
    reason = 'Dieses Quiz wurde von einem anderen Benutzer gestartet.'


class Expired(QuizValidationError):
    reason = 'Womöglich haben Sie das Quiz verlassen und dann versucht, zurückzukehren.'

    def __init__(self, phase: int, topic_id: Optional[int] = None, expiry_min: Optional[int] = None):
        detail = None
        if expiry_min is not None:
            detail = (
                'Womöglich haben Sie das Quiz verlassen und dann versucht, '
                f'nach über {expiry_min} Minuten zurückzukehren.'
            )
        super().__init__(phase, topic_id, detail)


class InsufficientEvents(QuizValidationError):
    def __init__(self, topic_id: int, available: int, required: int):
        self.available = available
        self.required = required
        detail = (
            f'Dieses Thema hat nur {available} Ereignisse, für ein Quiz werden mindestens '
            f'{required} benötigt ({required - available} fehlen).'
        )
        super().__init__(1, topic_id, detail)

    @property
    def shortfall(self) -> int:
        return self.required - self.available


class NotAuthenticated(QuizValidationError):
    def __init__(self, phase: int, topic_id: Optional[int] = None):
        super().__init__(
            phase,
            topic_id,
            'Unzureichende Berechtigung. Sie müssen als Benutzer eingeloggt sein, um ein Quiz zu spielen.',
        )


class QuizStoreError(Exception):
    status_code = 500


class NotFound(QuizStoreError):
    status_code = 404


class StorageError(QuizStoreError):
    status_code = 500
