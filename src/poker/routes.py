"""
HTTP routes.

The socket protocol carries all room traffic; over HTTP the server only
reports its status and, when STATIC_FOLDER is configured, serves the built
web client with a single-page-app fallback to index.html.
"""

import os

from flask import Blueprint, abort, current_app, jsonify, send_from_directory

bp = Blueprint('main', __name__)
api_bp = Blueprint('api', __name__, url_prefix='/api')


@api_bp.route('/health')
def health():
    """Live room and connection counts.  Never includes votes."""
    status = current_app.extensions['session_handler'].status()
    return jsonify({'success': True, 'data': status})


@bp.route('/', defaults={'path': ''})
@bp.route('/<path:path>')
def client(path):
    """Serve the web client, falling back to index.html for client-side routes."""
    folder = current_app.config.get('STATIC_FOLDER')
    if not folder:
        abort(404)
    folder = os.path.abspath(folder)
    if path and os.path.isfile(os.path.join(folder, path)):
        return send_from_directory(folder, path)
    return send_from_directory(folder, 'index.html')
