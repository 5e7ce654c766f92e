from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from datetime import date
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

# Sample topic used by `flask db-reset`
SEED_TOPIC = {
    'name': 'Schweizer Geschichte im 19. Jahrhundert',
    'start_year': 1798,
    'end_year': 1891,
    'events': [
        ('Helvetische Republik', date(1798, 4, 12)),
        ('Mediationsakte', date(1803, 2, 19)),
        ('Wiener Kongress', date(1815, 3, 20)),
        ('Sonderbundskrieg', date(1847, 11, 3)),
        ('Bundesverfassung', date(1848, 9, 12)),
        ('Gründung des Roten Kreuzes', date(1863, 2, 17)),
        ('Totalrevision der Bundesverfassung', date(1874, 4, 19)),
        ('Eröffnung des Gotthardtunnels', date(1882, 5, 22)),
        ('Einführung der Volksinitiative', date(1891, 7, 5)),
    ],
}


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from chronoquiz.main import main
    flask_app.register_blueprint(main)

    from chronoquiz.api.topics import topics
    flask_app.register_blueprint(topics, url_prefix='/api/topics')

    from chronoquiz.api.quiz import quiz
    # Quiz routes hang off a topic so every request carries the topic id
    flask_app.register_blueprint(quiz, url_prefix='/api/topics/<int:topic_id>/quiz')

    from chronoquiz.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from chronoquiz.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from chronoquiz.models import User, Topic, Event
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            users = ['testuser1', 'testuser2', 'testuser3']
            for u in users:
                user = User(username=u)
                user.set_password('password')
                db.session.add(user)

            topic = Topic(
                name=SEED_TOPIC['name'],
                start_year=SEED_TOPIC['start_year'],
                end_year=SEED_TOPIC['end_year'],
            )
            for name, when in SEED_TOPIC['events']:
                topic.events.append(Event(name=name, date=when))
            db.session.add(topic)

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('purge-quiz-sessions')
    def purge_quiz_sessions_command():
        """Deletes stored quiz sessions older than QUIZ_SESSION_TTL_SEC."""
        from chronoquiz.services.quiz.store import QuizSessionStore
        with flask_app.app_context():
            removed = QuizSessionStore(ttl=int(flask_app.config.get('QUIZ_SESSION_TTL_SEC', 86400))).purge_expired()
            print(f'Removed {removed} expired quiz sessions.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(purge_quiz_sessions_command)

    return flask_app
