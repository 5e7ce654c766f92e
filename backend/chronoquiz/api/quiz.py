from typing import Optional

from flask import Blueprint, jsonify, request, current_app, session, flash, redirect, url_for, abort
from flask_login import current_user
from chronoquiz import socketio
from chronoquiz.services.quiz import (
    NotAuthenticated,
    QuizEngine,
    QuizRules,
    QuizStoreError,
    QuizValidationError,
    Step,
    StepMismatch,
)
from chronoquiz.services.quiz.engine import phase_questions
from chronoquiz.services.quiz.scoring import names_in_order
from chronoquiz.services.quiz.session import QuizSession
from chronoquiz.services.quiz.store import QuizSessionStore, TopicStore

quiz = Blueprint('quiz', __name__)

SESSION_KEY = 'quiz_key'
PHASES = (1, 2, 3)


def _engine() -> QuizEngine:
    return QuizEngine(QuizRules.from_config(current_app.config), store=TopicStore())


def _session_store() -> QuizSessionStore:
    return QuizSessionStore(ttl=int(current_app.config.get('QUIZ_SESSION_TTL_SEC', 86400)))


def _load_record():
    return _session_store().get(session.get(SESSION_KEY))


def _save_record(record: QuizSession, expected: Optional[Step] = None) -> None:
    """Store ``record``; with ``expected`` only if no other request moved the quiz on first."""
    key = session.get(SESSION_KEY)
    if not key:
        key = QuizSessionStore.new_key()
        session[SESSION_KEY] = key
    if not _session_store().put(key, record, expected):
        raise StepMismatch(record.step.phase, record.topic.topic_id)


def _user_id(phase: int, topic_id: int):
    if not current_user.is_authenticated:
        raise NotAuthenticated(phase, topic_id)
    return current_user.id


def _answers(count: int):
    """Answers as a JSON list, or as form fields q0..qN like the HTML form posts them."""
    data = request.get_json(silent=True)
    if isinstance(data, dict) and isinstance(data.get('answers'), list):
        return data['answers']
    return [request.form.get(f'q{num}') for num in range(count)]


def _bundle(record: QuizSession, questions):
    return {
        'topic_id': record.topic.topic_id,
        'topic_name': record.topic.name,
        'phase': record.step.phase,
        'step': record.step.name,
        'points': record.points,
        'correct_guesses': record.correct_guesses,
        'expires_at': record.timestamp + QuizRules.from_config(current_app.config).expiry_sec,
        'questions': questions,
    }


def _questions_for_play(record: QuizSession):
    """Questions as shown while answering; no solutions."""
    phase = record.step.phase
    shown = []
    for num, q in enumerate(phase_questions(record)):
        item = {'id': f'q{num}', 'event_name': q.event_name}
        if phase == 1:
            item['choices'] = list(q.choices)
        shown.append(item)
    return shown


def _questions_for_review(record: QuizSession):
    phase = record.step.phase
    reviewed = []
    for num, q in enumerate(phase_questions(record)):
        item = {
            'id': f'q{num}',
            'event_name': q.event_name,
            'event_year': q.event_year,
            'user_guess': q.user_guess,
            'correct_guess': q.correct_guess,
            'points': q.points,
        }
        if phase == 1:
            item['choices'] = list(q.choices)
        if phase == 3:
            item['order'] = q.order
        reviewed.append(item)
    return reviewed


@quiz.errorhandler(QuizValidationError)
def handle_validation_error(exc):
    topic_id = (request.view_args or {}).get('topic_id', exc.topic_id)
    current_app.logger.info(
        f"[quiz-reject] topic={topic_id} phase={exc.phase} reason={type(exc).__name__}"
    )
    flash(exc.message, 'error')
    return redirect(url_for('topics.show_topic', topic_id=topic_id))


@quiz.errorhandler(QuizStoreError)
def handle_store_error(exc):
    current_app.logger.error(f"[quiz-store] {type(exc).__name__}: {exc}")
    return jsonify({'error': str(exc)}), exc.status_code


@quiz.route('/start', methods=['POST'])
def start(topic_id):
    user_id = _user_id(1, topic_id)
    engine = _engine()
    topic = engine.store.get_topic(topic_id)
    record = engine.start(topic, user_id)
    _save_record(record)
    current_app.logger.info(f"[quiz-start] topic={topic_id} user={user_id} events={topic.events_count}")
    return jsonify(_bundle(record, _questions_for_play(record))), 201


@quiz.route('/<int:phase>', methods=['GET'])
def show_phase(topic_id, phase):
    if phase not in PHASES:
        abort(404)
    user_id = _user_id(phase, topic_id)
    record = _engine().show_phase(_load_record(), topic_id, phase, user_id)
    return jsonify(_bundle(record, _questions_for_play(record)))


@quiz.route('/1', methods=['POST'])
def submit_phase1(topic_id):
    user_id = _user_id(1, topic_id)
    engine = _engine()
    previous = _load_record()
    record = engine.submit_phase1(previous, topic_id, _answers(engine.rules.p1_questions), user_id)
    _save_record(record, previous.step)
    return jsonify(_bundle(record, _questions_for_review(record)))


@quiz.route('/2/prepare', methods=['POST'])
def prepare_phase2(topic_id):
    user_id = _user_id(2, topic_id)
    previous = _load_record()
    record = _engine().prepare_phase2(previous, topic_id, user_id)
    _save_record(record, previous.step)
    return jsonify(_bundle(record, _questions_for_play(record)))


@quiz.route('/2', methods=['POST'])
def submit_phase2(topic_id):
    user_id = _user_id(2, topic_id)
    engine = _engine()
    previous = _load_record()
    record = engine.submit_phase2(previous, topic_id, _answers(engine.rules.p2_questions), user_id)
    _save_record(record, previous.step)
    return jsonify(_bundle(record, _questions_for_review(record)))


@quiz.route('/3/prepare', methods=['POST'])
def prepare_phase3(topic_id):
    user_id = _user_id(3, topic_id)
    previous = _load_record()
    record = _engine().prepare_phase3(previous, topic_id, user_id)
    _save_record(record, previous.step)
    return jsonify(_bundle(record, _questions_for_play(record)))


@quiz.route('/3', methods=['POST'])
def submit_phase3(topic_id):
    user_id = _user_id(3, topic_id)
    engine = _engine()
    store = _session_store()
    key = session.get(SESSION_KEY)
    previous = store.get(key)
    events_count = previous.topic.events_count if previous else 0
    # The claim and the score row are committed together by create_score
    record = engine.submit_phase3(
        previous,
        topic_id,
        _answers(events_count),
        user_id,
        claim=lambda finished: store.claim(key, Step.PREPARED_3, finished),
    )
    current_app.logger.info(
        f"[quiz-finish] topic={topic_id} user={user_id} points={record.points} percentile={record.percentile}"
    )
    socketio.emit(
        'score_recorded',
        {'topic_id': topic_id, 'user_id': user_id, 'points': record.points},
        to=f"topic:{topic_id}",
        namespace='/ws',
    )
    payload = _bundle(record, _questions_for_review(record))
    payload['correct_order'] = names_in_order(record.questions)
    return jsonify(payload)


@quiz.route('/<int:phase>/review', methods=['GET'])
def review_phase(topic_id, phase):
    if phase not in PHASES:
        abort(404)
    user_id = _user_id(phase, topic_id)
    record = _engine().review_phase(_load_record(), topic_id, phase, user_id)
    payload = _bundle(record, _questions_for_review(record))
    if phase == 3:
        payload['correct_order'] = names_in_order(record.questions)
    return jsonify(payload)


@quiz.route('/summary', methods=['GET'])
def summary(topic_id):
    user_id = _user_id(3, topic_id)
    result = _engine().summary(_load_record(), topic_id, user_id)
    return jsonify(result.to_dict())
