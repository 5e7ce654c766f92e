from chronoquiz import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import json
import time


def _utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    scores = db.relationship('Score', back_populates='user', lazy='dynamic')

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Topic(db.Model):
    __tablename__ = 'topic'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    start_year = db.Column(db.Integer, nullable=True)
    end_year = db.Column(db.Integer, nullable=True)
    description = db.Column(db.Text, nullable=True)
    events = db.relationship('Event', back_populates='topic', order_by='Event.date', cascade='all, delete-orphan')
    scores = db.relationship('Score', back_populates='topic', lazy='dynamic')

    @property
    def events_count(self):
        return len(self.events)

    def to_dict(self, include_events=False):
        data = {
            'id': self.id,
            'name': self.name,
            'start_year': self.start_year,
            'end_year': self.end_year,
            'description': self.description,
            'events_count': self.events_count,
        }
        if include_events:
            data['events'] = [e.to_dict() for e in self.events]
        return data


class Event(db.Model):
    __tablename__ = 'event'
    id = db.Column(db.Integer, primary_key=True)
    topic_id = db.Column(db.Integer, db.ForeignKey('topic.id'), nullable=False, index=True)
    name = db.Column(db.String(256), nullable=False)
    date = db.Column(db.Date, nullable=False)
    topic = db.relationship('Topic', back_populates='events')

    @property
    def year(self):
        return self.date.year

    def to_dict(self):
        return {
            'id': self.id,
            'topic_id': self.topic_id,
            'name': self.name,
            'year': self.year,
            'date': self.date.isoformat(),
        }


class Score(db.Model):
    __tablename__ = 'score'
    id = db.Column(db.Integer, primary_key=True)
    topic_id = db.Column(db.Integer, db.ForeignKey('topic.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    points = db.Column(db.Integer, nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    topic = db.relationship('Topic', back_populates='scores')
    user = db.relationship('User', back_populates='scores')

    def to_dict(self):
        return {
            'id': self.id,
            'topic_id': self.topic_id,
            'user_id': self.user_id,
            'username': self.user.username if self.user else None,
            'points': self.points,
            'date': self.date.isoformat() if self.date else None,
        }


class QuizSessionRow(db.Model):
    """Server-side storage for one player's quiz record, keyed by an opaque token."""
    __tablename__ = 'quiz_session'
    key = db.Column(db.String(64), primary_key=True)
    payload = db.Column(db.Text, nullable=False)  # JSON-encoded QuizSession
    # Copy of the payload's step so a transition can be claimed with one UPDATE
    step = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.Float, nullable=False, default=time.time)

    @property
    def data(self):
        return json.loads(self.payload)

    @data.setter
    def data(self, value):
        self.payload = json.dumps(value)
        self.step = int(value['step'])
