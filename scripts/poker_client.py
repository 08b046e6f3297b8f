#!/usr/bin/env python3
"""
Socket.IO console client for the estimation room server.

This client joins a room and lets you vote, reveal and reset from the
command line.  Open it in two terminals to watch vote masking at work.

Usage:
    python poker_client.py http://localhost:5000 <room_id> <name> [player_id]

Commands:
    <number>       - Vote
    clear          - Clear your vote
    reveal or r    - Reveal all votes
    reset          - Clear all votes for a new round
    name <name>    - Change your name
    spectate on|off
    status or s    - Show the room
    health         - Show server status
    quit or q      - Leave
"""

import sys
import uuid
from typing import Dict, Optional

import requests
import socketio

HIDDEN_WIRE = 'hidden'


class RoomView(object):
    """Client-side mirror of a room, kept current from server events."""

    def __init__(self, player_id: str):
        self.player_id = player_id
        self.players: Dict[str, dict] = {}
        self.revealed = False
        self.host: Optional[str] = None

    def apply(self, event: str, data: dict):
        """Fold one server event into the view."""
        data = data or {}
        if event == 'room-state':
            self.players = dict(data['players'])
            self.revealed = data['revealed']
            self.host = data['host']
        elif event == 'player-joined':
            player = data['player']
            self.players[player['id']] = player
        elif event == 'player-left':
            self.players.pop(data['playerId'], None)
        elif event == 'vote-updated':
            if data['playerId'] in self.players:
                self.players[data['playerId']]['vote'] = data['vote']
        elif event == 'cards-revealed':
            self.revealed = True
        elif event == 'game-reset':
            self.revealed = False
            for player in self.players.values():
                player['vote'] = None
        elif event == 'player-updated':
            if data['playerId'] in self.players:
                self.players[data['playerId']]['name'] = data['name']
        elif event == 'host-changed':
            self.host = data['hostId']
        elif event == 'spectator-toggled':
            if data['playerId'] in self.players:
                self.players[data['playerId']]['isSpectator'] = data['isSpectator']

    def render(self) -> str:
        lines = [f"Votes {'revealed' if self.revealed else 'hidden'}"]
        for player_id, player in self.players.items():
            vote = player.get('vote')
            if player.get('isSpectator'):
                shown = 'spectating'
            elif vote is None:
                shown = '-'
            elif vote == HIDDEN_WIRE:
                shown = 'voted'
            else:
                shown = str(vote)
            marks = ''
            if player_id == self.host:
                marks += ' (host)'
            if player_id == self.player_id:
                marks += ' (you)'
            lines.append(f"  {player['name']}{marks}: {shown}")
        return '\n'.join(lines)


class PokerClient(object):
    """Socket.IO client for the estimation room server."""

    EVENTS = ('room-state', 'player-joined', 'player-left', 'vote-updated',
              'cards-revealed', 'game-reset', 'player-updated', 'host-changed',
              'spectator-toggled')

    def __init__(self, server_url: str, room_id: str, name: str, player_id: Optional[str] = None):
        self.server_url = server_url.rstrip('/')
        self.room_id = room_id
        self.name = name
        self.player_id = player_id or uuid.uuid4().hex
        self.view = RoomView(self.player_id)
        self.sio = socketio.Client()
        self.setup_socketio_handlers()

    def setup_socketio_handlers(self):
        """Set up Socket.IO event handlers."""
        for event in self.EVENTS:
            self.sio.on(event, self._make_handler(event))

        @self.sio.on('error')
        def on_error(data):
            print(f"✗ Server error: {data.get('message', 'Unknown error')}")

        @self.sio.on('connect')
        def on_connect():
            # Also runs after an automatic reconnect, which rebinds our player
            self.sio.emit('join', {'roomId': self.room_id,
                                   'player': {'id': self.player_id, 'name': self.name}})

        @self.sio.on('disconnect')
        def on_disconnect(*args):
            print("🔌 Socket.IO disconnected")

    def _make_handler(self, event):
        def handler(data=None):
            self.view.apply(event, data)
            if event in ('room-state', 'cards-revealed', 'game-reset'):
                print(f"\n{self.view.render()}")
        return handler

    def handle_command(self, line: str) -> bool:
        """Run one console command.  Returns False when the user quits."""
        command, _, arg = line.strip().partition(' ')
        if command in ('quit', 'q'):
            return False
        if command.lstrip('-').isdigit():
            self.sio.emit('vote', {'vote': int(command)})
        elif command == 'clear':
            self.sio.emit('vote', {'vote': None})
        elif command in ('reveal', 'r'):
            self.sio.emit('reveal')
        elif command == 'reset':
            self.sio.emit('reset')
        elif command == 'name' and arg:
            self.sio.emit('update-name', {'name': arg})
        elif command == 'spectate' and arg in ('on', 'off'):
            self.sio.emit('toggle-spectator', {'isSpectator': arg == 'on'})
        elif command in ('status', 's'):
            print(self.view.render())
        elif command == 'health':
            self.show_health()
        elif command:
            print(f"Unknown command: {command}")
        return True

    def show_health(self):
        try:
            response = requests.get(f"{self.server_url}/api/health")
            data = response.json()['data']
        except Exception as e:
            print(f"✗ Health check error: {e}")
            return
        print(f"Connections: {data['connections']}")
        for room in data['rooms']:
            print(f"  {room['room_id']}: {room['players']} players, host {room['host']}")

    def run(self):
        try:
            self.sio.connect(self.server_url)
        except Exception as e:
            print(f"✗ Socket.IO connection failed: {e}")
            return
        try:
            while True:
                try:
                    line = input('> ')
                except (EOFError, KeyboardInterrupt):
                    break
                if not self.handle_command(line):
                    break
        finally:
            if self.sio.connected:
                self.sio.disconnect()


def main():
    if len(sys.argv) < 4:
        print(__doc__)
        sys.exit(1)
    player_id = sys.argv[4] if len(sys.argv) > 4 else None
    PokerClient(sys.argv[1], sys.argv[2], sys.argv[3], player_id).run()


if __name__ == '__main__':
    main()
