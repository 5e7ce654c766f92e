import os
import sys
from datetime import date
import pytest

# Ensure the backend root (containing the `chronoquiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from chronoquiz import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    QUIZ_EXPIRY_MIN = 20
    QUIZ_SESSION_TTL_SEC = 86400


EVENTS = [
    ('Helvetische Republik', date(1798, 4, 12)),
    ('Mediationsakte', date(1803, 2, 19)),
    ('Wiener Kongress', date(1815, 3, 20)),
    ('Sonderbundskrieg', date(1847, 11, 3)),
    ('Bundesverfassung', date(1848, 9, 12)),
    ('Gründung des Roten Kreuzes', date(1863, 2, 17)),
    ('Totalrevision der Bundesverfassung', date(1874, 4, 19)),
    ('Eröffnung des Gotthardtunnels', date(1882, 5, 22)),
]


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import chronoquiz.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


def make_topic(name='Schweiz im 19. Jahrhundert', events=EVENTS):
    from chronoquiz.models import Topic, Event
    topic = Topic(name=name)
    for event_name, when in events:
        topic.events.append(Event(name=event_name, date=when))
    db.session.add(topic)
    db.session.commit()
    return topic


def make_user(username='alice', password='password'):
    from chronoquiz.models import User
    user = User(username=username)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture()
def topic(flask_app):
    return make_topic()


@pytest.fixture()
def logged_in(client):
    res = client.post('/users/register', json={'username': 'alice', 'password': 'password'})
    assert res.status_code == 201
    return res.get_json()['user']
