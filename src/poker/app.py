"""
Flask application factory and main application entry point.

This module creates and configures the Flask application instance
with WebSocket support for real-time room communication.
"""

import sys

from flask import Flask
from flask_socketio import SocketIO
from flask_cors import CORS
from loguru import logger

from .config import Config
from .session import SessionHandler


def configure_logging(level):
    """Replace loguru's default sink with the server's format."""
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format="{time} | {level} | {message}",
        level=level,
        colorize=True
    )


def create_app(config=None, session_handler=None):
    """
    Create and configure the Flask application.

    Args:
        config: Configuration object or dictionary layered over Config
        session_handler: SessionHandler to use; a fresh one by default

    Returns:
        (Flask application instance, SocketIO instance)
    """
    app = Flask(__name__, static_folder=None)
    app.config.from_object(Config)

    if isinstance(config, dict):
        app.config.update(config)
    elif config is not None:
        app.config.from_object(config)

    configure_logging(app.config['LOG_LEVEL'])
    logger.info("Starting estimation room server")

    origins = app.config['CORS_ORIGINS']

    # Enable CORS for HTTP requests
    CORS(app, origins=origins)

    # Initialize SocketIO for WebSocket support
    socketio = SocketIO(app, cors_allowed_origins=origins)

    # One state container per app, shared by the socket and HTTP layers
    sessions = session_handler or SessionHandler()
    app.extensions['session_handler'] = sessions

    from . import routes
    app.register_blueprint(routes.bp)
    app.register_blueprint(routes.api_bp)

    from . import websocket_handlers
    websocket_handlers.init_socketio_handlers(socketio, sessions)

    return app, socketio
