"""
Vote masking.

Before a reveal a viewer sees their own vote and, for everyone else, only
whether a vote exists: any recorded estimate becomes HIDDEN while NO_VOTE is
passed through, so clients can still tell "not voted" from "voted".
"""

from typing import Dict

from .room_state import Room, Vote, NO_VOTE, HIDDEN


def mask_vote(vote: Vote, revealed: bool, is_owner: bool) -> Vote:
    """The vote as a single recipient may see it."""
    if revealed or is_owner or vote is NO_VOTE:
        return vote
    return HIDDEN


def visible_players(room: Room, viewer_id: str) -> Dict[str, dict]:
    """Wire form of the room's players as seen by ``viewer_id``."""
    return {
        player_id: player.to_wire(
            mask_vote(player.vote, room.revealed, player_id == viewer_id))
        for player_id, player in room.players.items()
    }


def room_snapshot(room: Room, viewer_id: str) -> dict:
    """Payload of the room-state event for one viewer."""
    return {
        'players': visible_players(room, viewer_id),
        'revealed': room.revealed,
        'host': room.host_id,
    }
