from dataclasses import dataclass
from typing import Dict, List, Optional

from loguru import logger

from .room_state import Room, Player


@dataclass
class Departure(object):
    """What happened to a room when a player left it.

    - player: the removed player
    - room_deleted: True if the room became empty and was dropped
    - new_host_id: set when the departing player was host and a successor
      was chosen

    """
    player: Player
    room_deleted: bool = False
    new_host_id: Optional[str] = None


class RoomRegistry(object):
    """Owns every live room.

    The model here is:
    - Rooms are keyed by a client-chosen string id.
    - A room is created the first time someone joins an unknown id, with the
      joining player as host.
    - A room with no players does not exist; removing the last player
      deletes it.
    - When the host leaves, the first remaining player (in join order)
      becomes host.

    """
    def __init__(self):
        self.rooms: Dict[str, Room] = {}

    def get(self, room_id : str) -> Optional[Room]:
        """Return the room, or None if it doesn't exist."""
        return self.rooms.get(room_id)

    def get_or_create(self, room_id : str, host_id : str) -> Room:
        """Return the room, creating it with the given host if absent."""
        room = self.rooms.get(room_id)
        if room is None:
            room = Room(id=room_id, host_id=host_id)
            self.rooms[room_id] = room
            logger.info(f"Created room {room_id} with host {host_id}")
        return room

    def remove_player(self, room_id : str, player_id : str) -> Optional[Departure]:
        """Remove a player, collecting the room or reassigning the host.

        Returns None if the room or player doesn't exist.

        """
        room = self.rooms.get(room_id)
        if room is None or player_id not in room.players:
            return None

        player = room.players.pop(player_id)
        departure = Departure(player=player)

        if room.is_empty():
            del self.rooms[room_id]
            departure.room_deleted = True
            logger.info(f"Room {room_id} is empty, deleting")
        elif room.host_id == player_id:
            room.host_id = next(iter(room.players))
            departure.new_host_id = room.host_id
            logger.info(f"Host of room {room_id} passed from {player_id} to {room.host_id}")

        return departure

    def list_rooms(self) -> List[str]:
        """Lists current room ids."""
        return list(self.rooms.keys())

    def summary(self) -> List[dict]:
        """Room overview without any vote values."""
        return [
            {
                'room_id': room.id,
                'players': len(room.players),
                'spectators': sum(1 for p in room.players.values() if p.is_spectator),
                'revealed': room.revealed,
                'host': room.host_id,
            }
            for room in self.rooms.values()
        ]

    def __len__(self) -> int:
        return len(self.rooms)
