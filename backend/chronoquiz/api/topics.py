from flask import Blueprint, jsonify, get_flashed_messages
from chronoquiz import db
from chronoquiz.models import Topic, Score

topics = Blueprint('topics', __name__)

LEADERBOARD_SIZE = 10


@topics.route('', methods=['GET'])
def list_topics():
    rows = Topic.query.order_by(Topic.start_year.asc(), Topic.name.asc()).all()
    return jsonify([t.to_dict() for t in rows])


@topics.route('/<int:topic_id>', methods=['GET'])
def show_topic(topic_id):
    """Topic overview; also where the quiz sends players after a rejected step."""
    topic = db.get_or_404(Topic, topic_id)
    best = (
        Score.query.filter_by(topic_id=topic.id)
        .order_by(Score.points.desc(), Score.date.asc())
        .limit(LEADERBOARD_SIZE)
        .all()
    )
    payload = topic.to_dict(include_events=True)
    payload['scores_count'] = topic.scores.count()
    payload['leaderboard'] = [s.to_dict() for s in best]
    payload['flash_errors'] = get_flashed_messages(category_filter=['error'])
    return jsonify(payload)
