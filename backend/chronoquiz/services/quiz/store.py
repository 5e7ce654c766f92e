"""Database-backed collaborators of the quiz engine.

Topics, scores and the per-player session records live in the host's
SQLAlchemy tables. Failures surface once as ``NotFound``/``StorageError``;
nothing here retries.
"""

import json
import secrets
import time
from datetime import datetime
from typing import Callable, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from chronoquiz import db
from chronoquiz.models import QuizSessionRow, Score, Topic
from .errors import NotFound, StorageError
from .questions import EventSnapshot
from .session import QuizSession, Step, TopicSnapshot


class TopicStore:
    """Reads topics and their scores, writes final scores."""

    def get_topic(self, topic_id: int) -> TopicSnapshot:
        try:
            topic = db.session.get(Topic, topic_id)
        except SQLAlchemyError as exc:
            current_app.logger.exception(f"[topic-read] topic={topic_id} failed")
            raise StorageError(f'error getting topic: {exc}') from exc
        if topic is None:
            raise NotFound(f'topic {topic_id} not found')
        return TopicSnapshot(
            topic_id=topic.id,
            name=topic.name,
            events=[
                EventSnapshot(event_id=e.id, name=e.name, year=e.year, date=e.date)
                for e in topic.events
            ],
        )

    def get_scores_by_topic(self, topic_id: int) -> List[Score]:
        """All scores of a topic, highest points first (earlier dates win ties)."""
        try:
            return (
                Score.query.filter_by(topic_id=topic_id)
                .order_by(Score.points.desc(), Score.date.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            current_app.logger.exception(f"[score-read] topic={topic_id} failed")
            raise StorageError(f'error getting scores: {exc}') from exc

    def create_score(self, topic_id: int, user_id: int, points: int, date: datetime) -> Score:
        score = Score(topic_id=topic_id, user_id=user_id, points=points, date=date)
        try:
            db.session.add(score)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception(f"[score-write] topic={topic_id} user={user_id} failed")
            raise StorageError(f'error creating score: {exc}') from exc
        current_app.logger.info(f"[score-write] topic={topic_id} user={user_id} points={points}")
        return score


class QuizSessionStore:
    """Get/put of one quiz record per opaque key.

    Rows untouched for longer than ``ttl`` seconds count as gone. The TTL is
    meant to be much longer than the quiz's own step expiry.
    """

    def __init__(self, ttl: int, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self.clock = clock

    @staticmethod
    def new_key() -> str:
        return secrets.token_urlsafe(32)

    def get(self, key: Optional[str]) -> Optional[QuizSession]:
        if not key:
            return None
        row = db.session.get(QuizSessionRow, key)
        if row is None:
            return None
        if self.clock() - row.updated_at > self.ttl:
            self.delete(key)
            return None
        return QuizSession.from_dict(row.data)

    def put(self, key: str, record: QuizSession, expected: Optional[Step] = None) -> bool:
        """Store ``record`` under ``key``.

        With ``expected`` the write only happens while the stored record is
        still at that step; returns False when another request moved it first.
        """
        try:
            if expected is None:
                row = db.session.get(QuizSessionRow, key)
                if row is None:
                    row = QuizSessionRow(key=key)
                row.data = record.to_dict()
                row.updated_at = self.clock()
                db.session.add(row)
                stored = True
            else:
                stored = self.claim(key, expected, record)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError(f'error storing quiz session: {exc}') from exc
        return stored

    def claim(self, key: str, expected: Step, record: QuizSession) -> bool:
        """Move the stored record from ``expected`` to ``record`` in one conditional UPDATE.

        Does not commit: the caller commits the claim together with whatever
        it writes next, so a concurrent request for the same key sees either
        nothing or both.
        """
        try:
            result = db.session.execute(
                db.update(QuizSessionRow)
                .where(QuizSessionRow.key == key, QuizSessionRow.step == int(expected))
                .values(
                    payload=json.dumps(record.to_dict()),
                    step=int(record.step),
                    updated_at=self.clock(),
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError(f'error claiming quiz session: {exc}') from exc
        return result.rowcount == 1

    def delete(self, key: str) -> None:
        QuizSessionRow.query.filter_by(key=key).delete()
        db.session.commit()

    def purge_expired(self) -> int:
        cutoff = self.clock() - self.ttl
        removed = QuizSessionRow.query.filter(QuizSessionRow.updated_at < cutoff).delete()
        db.session.commit()
        return removed
