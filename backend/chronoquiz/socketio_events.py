from flask_socketio import join_room, leave_room, emit


def _topic_room(data):
    topic_id = (data or {}).get('topic_id')
    try:
        return f"topic:{int(topic_id)}"
    except (TypeError, ValueError):
        return None


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_topic(data):
    """Subscribe to live `score_recorded` events of one topic."""
    room = _topic_room(data)
    if not room:
        emit('error', {'message': 'topic_id is required'})
        return
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_topic(data):
    room = _topic_room(data)
    if not room:
        emit('error', {'message': 'topic_id is required'})
        return
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from chronoquiz import socketio

    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('join_topic', handle_join_topic, namespace='/ws')
    socketio.on_event('leave_topic', handle_leave_topic, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('join_topic', handle_join_topic, namespace='/')
        socketio.on_event('leave_topic', handle_leave_topic, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
