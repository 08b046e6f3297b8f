"""
Room and player state for an estimation room.

A vote is a small tagged union: either one of the two markers in
``VoteMarker`` or a plain integer estimate.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Union


class VoteMarker(Enum):
    """Non-numeric vote states.

    NO_VOTE means the player has not voted (or the vote was cleared).
    HIDDEN means the player has voted but the value is withheld from the
    viewer.

    """
    NO_VOTE = 'no_vote'
    HIDDEN = 'hidden'


NO_VOTE = VoteMarker.NO_VOTE
HIDDEN = VoteMarker.HIDDEN

Vote = Union[VoteMarker, int]

# Wire value for HIDDEN; distinct from null and from every integer
HIDDEN_WIRE = 'hidden'


def is_estimate(value) -> bool:
    """True for a literal integer estimate (bools are not estimates)."""
    return isinstance(value, int) and not isinstance(value, bool)


def has_voted(vote: Vote) -> bool:
    """True if the vote is anything other than NO_VOTE."""
    return vote is not NO_VOTE


def vote_to_wire(vote: Vote):
    """Encode a vote for a client: None, 'hidden' or the integer."""
    if vote is NO_VOTE:
        return None
    if vote is HIDDEN:
        return HIDDEN_WIRE
    return vote


def vote_from_wire(value) -> Vote:
    """Decode a client vote.  Only null and integers are accepted.

    Raises ValueError for anything else, including the hidden marker, which
    is an output-only value.

    """
    if value is None:
        return NO_VOTE
    if is_estimate(value):
        return value
    raise ValueError(f"Vote must be an integer or null, got {value!r}")


@dataclass
class Player(object):
    """A participant in a room.

    The fields are:
    - id: stable identity chosen by the client; survives reconnects
    - name: display name
    - vote: current vote (NO_VOTE, or an integer estimate)
    - is_spectator: spectators never vote; their vote is always NO_VOTE
    - connection_id: the transport connection currently bound to the player

    """
    id: str
    name: str
    connection_id: str
    vote: Vote = NO_VOTE
    is_spectator: bool = False

    def __post_init__(self):
        if self.is_spectator:
            self.vote = NO_VOTE

    def to_wire(self, vote: Optional[Vote] = None) -> dict:
        """Client representation, optionally with a substituted (masked) vote.

        The connection id stays on the server.

        """
        if vote is None:
            vote = self.vote
        return {
            'id': self.id,
            'name': self.name,
            'vote': vote_to_wire(vote),
            'isSpectator': self.is_spectator,
        }


@dataclass
class Room(object):
    """An isolated voting session.

    ``players`` preserves insertion order, which is what host succession
    relies on.  ``host_id`` always names a key of ``players`` while the room
    has members.

    """
    id: str
    host_id: str
    players: Dict[str, Player] = field(default_factory=dict)
    revealed: bool = False

    def is_empty(self) -> bool:
        return not self.players

    def voters(self):
        """Players that currently have a vote recorded."""
        return [p for p in self.players.values() if has_voted(p.vote)]
