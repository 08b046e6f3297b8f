"""
Index from live transport connections to the room membership they represent.

The index never owns player data; the room does.  It only answers "which
(room, player) does this connection speak for?" and lets a disconnect or a
reconnection find its target without scanning every room.
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class Binding(object):
    """The (room, player) pair a connection currently represents."""
    room_id: str
    player_id: str


class ConnectionIndex(object):
    """Maps connection ids to bindings.  At most one binding per connection."""

    def __init__(self):
        self._bindings: Dict[str, Binding] = {}

    def bind(self, connection_id: str, room_id: str, player_id: str) -> Binding:
        """Bind a connection, replacing any binding it already had."""
        binding = Binding(room_id, player_id)
        self._bindings[connection_id] = binding
        return binding

    def lookup(self, connection_id: str) -> Optional[Binding]:
        return self._bindings.get(connection_id)

    def unbind(self, connection_id: str) -> Optional[Binding]:
        """Remove and return the connection's binding, if any."""
        return self._bindings.pop(connection_id, None)

    def __contains__(self, connection_id) -> bool:
        return connection_id in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)
