"""
Session handling for estimation rooms.

This module is the controller behind the socket events.  Each inbound event
has one entry point on ``SessionHandler``; it mutates room and connection
state and returns an ``Outcome`` describing what must be sent and which
broadcast groups change.  Nothing here talks to the transport, so the whole
protocol can be exercised without a server.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from loguru import logger

from .connections import Binding, ConnectionIndex
from .room_registry import RoomRegistry
from .room_state import Player, Room, Vote, NO_VOTE, vote_to_wire
from .visibility import mask_vote, room_snapshot


@dataclass(frozen=True)
class Message(object):
    """One outbound event.

    Exactly one of ``to`` (a single connection) or ``room`` (a broadcast
    group) is set.  ``skip`` leaves one connection out of a room broadcast.

    """
    event: str
    payload: dict
    to: Optional[str] = None
    room: Optional[str] = None
    skip: Optional[str] = None


@dataclass(frozen=True)
class GroupChange(object):
    """A connection entering (joined=True) or leaving a room's broadcast group."""
    connection_id: str
    room_id: str
    joined: bool


@dataclass
class Outcome(object):
    """Everything a handler wants delivered, in order.

    Group changes are applied before messages are sent.

    """
    messages: List[Message] = field(default_factory=list)
    group_changes: List[GroupChange] = field(default_factory=list)

    def send(self, connection_id: str, event: str, payload: dict):
        self.messages.append(Message(event, payload, to=connection_id))

    def broadcast(self, room_id: str, event: str, payload: dict, skip: Optional[str] = None):
        self.messages.append(Message(event, payload, room=room_id, skip=skip))

    def enter(self, connection_id: str, room_id: str):
        self.group_changes.append(GroupChange(connection_id, room_id, True))

    def leave(self, connection_id: str, room_id: str):
        self.group_changes.append(GroupChange(connection_id, room_id, False))

    def __bool__(self) -> bool:
        return bool(self.messages or self.group_changes)


def epoch_millis() -> int:
    return int(time.time() * 1000)


class SessionHandler(object):
    """Owns the room registry and connection index and applies events to them.

    Every entry point takes the id of the connection the event arrived on.
    Events are applied one at a time under ``lock``.  Each entry point holds
    it while it reads and mutates state; the transport must also hold it
    while it delivers the returned Outcome (see
    ``websocket_handlers.apply_event``), so that the messages of two events
    never interleave even when handlers run on several threads.

    Events that no longer have a target (no binding, room or player gone) and
    votes from spectators are ignored and produce an empty ``Outcome``.

    """
    def __init__(self, registry: Optional[RoomRegistry] = None,
                 connections: Optional[ConnectionIndex] = None,
                 clock: Optional[Callable[[], int]] = None):
        self.registry = registry if registry is not None else RoomRegistry()
        self.connections = connections if connections is not None else ConnectionIndex()
        self.clock = clock or epoch_millis
        # Reentrant so the transport can hold it across an entry point and
        # the delivery of its Outcome
        self.lock = threading.RLock()

    # ---- inbound events ----

    def join(self, connection_id: str, room_id: str, player_id: str, name: str,
             is_spectator: bool = False) -> Outcome:
        """Join (or rejoin) a room.

        Handles three special cases before inserting the player:
        - the connection was already bound elsewhere: it is a room switch,
          so the old membership is torn down first
        - the same player id is live under another connection: that
          connection is superseded and the vote carries over, without any
          player-left/player-joined for the takeover
        - the same connection rejoins as the same player: a refresh

        """
        with self.lock:
            out = Outcome()

            previous = self.connections.lookup(connection_id)
            refresh = (previous == Binding(room_id, player_id)
                       and self._owned_player(connection_id, previous) is not None)
            if previous is not None and not refresh:
                self._depart(out, connection_id, previous)
                out.leave(connection_id, previous.room_id)

            room = self.registry.get_or_create(room_id, player_id)
            existing = room.players.get(player_id)
            takeover = existing is not None and existing.connection_id != connection_id

            if takeover:
                old_connection = existing.connection_id
                self.connections.unbind(old_connection)
                out.leave(old_connection, room_id)
                logger.info(f"Player {player_id} reconnecting to room {room_id}, "
                            f"superseding connection {old_connection}")

            vote = existing.vote if existing is not None else NO_VOTE
            player = Player(id=player_id, name=name, connection_id=connection_id,
                            vote=vote, is_spectator=is_spectator)
            room.players[player_id] = player
            self.connections.bind(connection_id, room_id, player_id)
            if not refresh:
                out.enter(connection_id, room_id)

            logger.info(f"Player {name} ({player_id}) joined room {room_id}")

            out.send(connection_id, 'room-state', room_snapshot(room, player_id))

            if takeover:
                self._announce_changes(out, room, existing, player)
            else:
                peer_view = player.to_wire(mask_vote(player.vote, room.revealed, False))
                out.broadcast(room_id, 'player-joined', {'player': peer_view},
                              skip=connection_id)
            return out

    def vote(self, connection_id: str, vote: Vote) -> Outcome:
        """Record a vote.  The voter sees the value, peers only that it exists."""
        with self.lock:
            out = Outcome()
            target = self._resolve(connection_id, 'vote')
            if target is None:
                return out
            room, player = target
            if player.is_spectator:
                logger.debug(f"Ignoring vote from spectator {player.id} in room {room.id}")
                return out

            player.vote = vote
            out.send(connection_id, 'vote-updated',
                     {'playerId': player.id, 'vote': vote_to_wire(vote)})
            out.broadcast(room.id, 'vote-updated',
                          {'playerId': player.id,
                           'vote': vote_to_wire(mask_vote(vote, room.revealed, False))},
                          skip=connection_id)
            return out

    def reveal(self, connection_id: str) -> Outcome:
        """Reveal every vote in the caller's room.  Safe to repeat."""
        with self.lock:
            out = Outcome()
            target = self._resolve(connection_id, 'reveal')
            if target is None:
                return out
            room, _ = target

            room.revealed = True
            logger.info(f"Revealing votes in room {room.id}")
            out.broadcast(room.id, 'cards-revealed', {'timestamp': self.clock()})
            for player in room.voters():
                out.broadcast(room.id, 'vote-updated',
                              {'playerId': player.id, 'vote': vote_to_wire(player.vote)})
            return out

    def reset(self, connection_id: str) -> Outcome:
        """Clear every vote and hide future ones again."""
        with self.lock:
            out = Outcome()
            target = self._resolve(connection_id, 'reset')
            if target is None:
                return out
            room, _ = target

            room.revealed = False
            for player in room.players.values():
                player.vote = NO_VOTE
            logger.info(f"Reset votes in room {room.id}")
            out.broadcast(room.id, 'game-reset', {})
            return out

    def update_name(self, connection_id: str, name: str) -> Outcome:
        with self.lock:
            out = Outcome()
            target = self._resolve(connection_id, 'update-name')
            if target is None:
                return out
            room, player = target

            player.name = name
            out.broadcast(room.id, 'player-updated', {'playerId': player.id, 'name': name})
            return out

    def toggle_spectator(self, connection_id: str, is_spectator: bool) -> Outcome:
        """Switch between voter and spectator.

        Becoming a spectator clears the vote; switching back does not bring
        it back.

        """
        with self.lock:
            out = Outcome()
            target = self._resolve(connection_id, 'toggle-spectator')
            if target is None:
                return out
            room, player = target

            player.is_spectator = is_spectator
            out.broadcast(room.id, 'spectator-toggled',
                          {'playerId': player.id, 'isSpectator': is_spectator})
            if is_spectator:
                player.vote = NO_VOTE
                out.broadcast(room.id, 'vote-updated',
                              {'playerId': player.id, 'vote': vote_to_wire(NO_VOTE)})
            return out

    def disconnect(self, connection_id: str) -> Outcome:
        """Tear down a closed connection.

        The player is only removed if this connection still owns it; a late
        disconnect from a connection that was superseded by a reconnect
        changes nothing but its own binding.

        """
        with self.lock:
            out = Outcome()
            binding = self.connections.lookup(connection_id)
            if binding is None:
                return out
            self._depart(out, connection_id, binding)
            return out

    # ---- queries ----

    def snapshot(self, room_id: str, viewer_id: str) -> Optional[dict]:
        """room-state payload for a viewer, or None if the room doesn't exist."""
        with self.lock:
            room = self.registry.get(room_id)
            if room is None:
                return None
            return room_snapshot(room, viewer_id)

    def status(self) -> dict:
        with self.lock:
            return {
                'rooms': self.registry.summary(),
                'connections': len(self.connections),
            }

    # ---- helpers ----

    def _owned_player(self, connection_id: str, binding: Binding) -> Optional[Player]:
        """The bound player, if this connection is still the one it belongs to."""
        room = self.registry.get(binding.room_id)
        player = room.players.get(binding.player_id) if room is not None else None
        if player is None or player.connection_id != connection_id:
            return None
        return player

    def _resolve(self, connection_id: str, event: str) -> Optional[Tuple[Room, Player]]:
        """The room and player a connection currently speaks for."""
        binding = self.connections.lookup(connection_id)
        if binding is None:
            logger.debug(f"Ignoring {event} from unbound connection {connection_id}")
            return None
        player = self._owned_player(connection_id, binding)
        if player is None:
            logger.debug(f"Ignoring {event} from connection {connection_id}: "
                         f"no live player {binding.player_id} in room {binding.room_id}")
            return None
        return self.registry.get(binding.room_id), player

    def _depart(self, out: Outcome, connection_id: str, binding: Binding):
        """Remove the connection's binding and, if it still owns its player,
        the player itself."""
        self.connections.unbind(connection_id)
        if self._owned_player(connection_id, binding) is None:
            logger.debug(f"Connection {connection_id} no longer owns player "
                         f"{binding.player_id}, leaving room {binding.room_id} as is")
            return

        logger.info(f"Removing player {binding.player_id} from room {binding.room_id}")
        departure = self.registry.remove_player(binding.room_id, binding.player_id)
        if departure.room_deleted:
            return
        out.broadcast(binding.room_id, 'player-left', {'playerId': binding.player_id},
                      skip=connection_id)
        if departure.new_host_id is not None:
            out.broadcast(binding.room_id, 'host-changed', {'hostId': departure.new_host_id},
                          skip=connection_id)

    def _announce_changes(self, out: Outcome, room: Room, before: Player, after: Player):
        """Tell peers about profile changes carried by a reconnecting player."""
        skip = after.connection_id
        if before.name != after.name:
            out.broadcast(room.id, 'player-updated',
                          {'playerId': after.id, 'name': after.name}, skip=skip)
        if before.is_spectator != after.is_spectator:
            out.broadcast(room.id, 'spectator-toggled',
                          {'playerId': after.id, 'isSpectator': after.is_spectator}, skip=skip)
            if after.is_spectator and before.vote is not NO_VOTE:
                out.broadcast(room.id, 'vote-updated',
                              {'playerId': after.id, 'vote': vote_to_wire(NO_VOTE)}, skip=skip)
