"""
WebSocket event handlers for real-time room communication.

This module binds the socket events of the room protocol to the
SessionHandler.  Each handler validates its payload, calls the matching
SessionHandler entry point and delivers the resulting Outcome: broadcast
group changes first, then messages in order.
"""

from functools import wraps

from flask import request
from flask_socketio import emit, join_room, leave_room
from loguru import logger

from .room_state import vote_from_wire


class InvalidPayload(ValueError):
    """An inbound event whose payload doesn't have the expected shape."""


def _require_dict(data, event):
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidPayload(f"{event} payload must be an object")
    return data


def _require_str(data, key, event):
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidPayload(f"{event} requires a non-empty string '{key}'")
    return value


def _require_bool(data, key, event, default=None):
    value = data.get(key)
    if value is None and default is not None:
        value = default
    if not isinstance(value, bool):
        raise InvalidPayload(f"{event} requires a boolean '{key}'")
    return value


def parse_join(data):
    """Returns (room_id, player_id, name, is_spectator)."""
    data = _require_dict(data, 'join')
    room_id = _require_str(data, 'roomId', 'join')
    player = data.get('player')
    if not isinstance(player, dict):
        raise InvalidPayload("join requires a 'player' object")
    player_id = _require_str(player, 'id', 'join')
    name = player.get('name', '')
    if not isinstance(name, str):
        raise InvalidPayload("join requires 'player.name' to be a string")
    is_spectator = _require_bool(player, 'isSpectator', 'join', default=False)
    return room_id, player_id, name, is_spectator


def parse_vote(data):
    data = _require_dict(data, 'vote')
    if 'vote' not in data:
        raise InvalidPayload("vote requires a 'vote' field")
    try:
        return vote_from_wire(data['vote'])
    except ValueError as e:
        raise InvalidPayload(str(e))


def parse_name(data):
    data = _require_dict(data, 'update-name')
    name = data.get('name')
    if not isinstance(name, str):
        raise InvalidPayload("update-name requires a string 'name'")
    return name


def parse_spectator(data):
    data = _require_dict(data, 'toggle-spectator')
    return _require_bool(data, 'isSpectator', 'toggle-spectator')


def deliver(socketio, outcome):
    """Apply an Outcome to the Socket.IO server."""
    for change in outcome.group_changes:
        if change.joined:
            join_room(change.room_id, sid=change.connection_id)
        else:
            leave_room(change.room_id, sid=change.connection_id)

    for message in outcome.messages:
        if message.to is not None:
            socketio.emit(message.event, message.payload, to=message.to)
        else:
            socketio.emit(message.event, message.payload,
                          room=message.room, skip_sid=message.skip)


def apply_event(socketio, sessions, entry_point, *args):
    """Run one SessionHandler entry point and deliver its Outcome.

    Both happen under the session lock, so no other event can change state
    or send messages between this event's state change and its delivery.

    """
    with sessions.lock:
        deliver(socketio, entry_point(*args))


def reports_invalid_payload(f):
    """Answer a malformed event with an error to the sender only."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except InvalidPayload as e:
            logger.warning(f"Rejected event from {request.sid}: {e}")
            emit('error', {'message': str(e)})
    return decorated_function


def init_socketio_handlers(socketio, sessions):
    """Initialize WebSocket event handlers."""

    @socketio.on('connect')
    def handle_connect(auth=None):
        logger.debug(f"Connection opened: {request.sid}")

    @socketio.on('disconnect')
    def handle_disconnect(reason=None):
        """Handle WebSocket disconnection."""
        logger.debug(f"Connection closed: {request.sid}")
        apply_event(socketio, sessions, sessions.disconnect, request.sid)

    @reports_invalid_payload
    def handle_join(data=None):
        """Handle joining (or rejoining) a room."""
        room_id, player_id, name, is_spectator = parse_join(data)
        apply_event(socketio, sessions, sessions.join,
                    request.sid, room_id, player_id, name, is_spectator)

    # 'join-room' is the event name older clients send
    socketio.on_event('join', handle_join)
    socketio.on_event('join-room', handle_join)

    @socketio.on('vote')
    @reports_invalid_payload
    def handle_vote(data=None):
        apply_event(socketio, sessions, sessions.vote, request.sid, parse_vote(data))

    @socketio.on('reveal')
    def handle_reveal(data=None):
        apply_event(socketio, sessions, sessions.reveal, request.sid)

    @socketio.on('reset')
    def handle_reset(data=None):
        apply_event(socketio, sessions, sessions.reset, request.sid)

    @socketio.on('update-name')
    @reports_invalid_payload
    def handle_update_name(data=None):
        apply_event(socketio, sessions, sessions.update_name, request.sid, parse_name(data))

    @socketio.on('toggle-spectator')
    @reports_invalid_payload
    def handle_toggle_spectator(data=None):
        apply_event(socketio, sessions, sessions.toggle_spectator, request.sid, parse_spectator(data))
