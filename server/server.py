#!/usr/bin/env python3
"""
HTTP boundary for heardprint profile phases.

Each endpoint runs one phase with the caller's bearer token and returns the
phase's JSON. Chunked phases return `nextOffset`; a long upstream cooldown
comes back as 429 with `error = "rate_limit_long:<seconds>"`.

Usage:
    python server/server.py

The server will run on http://0.0.0.0:5001 (HEARDPRINT_SERVER_PORT to change)
"""

import sys
from pathlib import Path

# Try to import flask, with helpful error message if missing
try:
    from flask import Flask, request, jsonify
    from flask_cors import CORS
except ImportError as e:
    print("=" * 60)
    print("ERROR: Missing required packages")
    print("=" * 60)
    print(f"Missing: {e.name}")
    print("\nPlease install dependencies:")
    print("  pip install -e .")
    print("=" * 60)
    sys.exit(1)

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from heardprint import config  # noqa: E402
from heardprint.client import SpotifyClient  # noqa: E402
from heardprint.orchestrator import BadParams, analyze_payload, error_payload, run_phase  # noqa: E402
from heardprint.utils import log  # noqa: E402


def _bearer_token():
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        return token or None
    return None


def _params():
    """Query-string values overlaid with any JSON body."""
    params = request.args.to_dict()
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        params.update(body)
    return params


def create_app(client_factory=SpotifyClient):
    """Build the Flask app. `client_factory(token)` returns the API client."""
    app = Flask(__name__)
    CORS(app)

    def run(phase):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "missing_token", "message": "Authorization: Bearer <token> required"}), 401
        try:
            result = run_phase(phase, client_factory(token), _params())
        except BadParams as e:
            return jsonify({"error": "bad_request", "message": str(e)}), 400
        except Exception as e:
            body, status = error_payload(e)
            log(f"❌ /profile/{phase} failed ({status}): {body['error']}")
            return jsonify(body), status
        return jsonify(result)

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok"})

    @app.route("/profile/basics", methods=["GET", "POST"])
    def profile_basics():
        return run("basics")

    @app.route("/profile/library", methods=["GET", "POST"])
    def profile_library():
        """Saved tracks from ?offset=N; pass the returned nextOffset back until it is null."""
        return run("library")

    @app.route("/profile/playlists", methods=["GET", "POST"])
    def profile_playlists():
        return run("playlists")

    @app.route("/profile/genres", methods=["POST"])
    def profile_genres():
        return run("genres")

    @app.route("/profile/discography", methods=["POST"])
    def profile_discography():
        return run("discography")

    @app.route("/profile/mainstream", methods=["POST"])
    def profile_mainstream():
        return run("mainstream")

    @app.route("/profile/analyze", methods=["POST"])
    def profile_analyze():
        """Analyze a merged profile. No upstream calls, so no token needed."""
        body = request.get_json(silent=True) or {}
        if not isinstance(body, dict):
            return jsonify({"error": "bad_request", "message": "expected a JSON object"}), 400
        profile = body.get("profile", body)
        try:
            return jsonify(analyze_payload(profile))
        except (TypeError, ValueError) as e:
            return jsonify({"error": "bad_request", "message": str(e)}), 400

    return app


app = create_app()


if __name__ == "__main__":
    port = config.SERVER_PORT

    print("=" * 60)
    print("heardprint server")
    print("=" * 60)
    print(f"Server starting on http://0.0.0.0:{port}")
    print(f"Project root: {PROJECT_ROOT}")
    print("=" * 60)
    print("\nPress Ctrl+C to stop the server.\n")

    try:
        app.run(host="0.0.0.0", port=port, debug=False)
    except OSError as e:
        if "Address already in use" in str(e):
            print(f"\n❌ ERROR: Port {port} is already in use.")
            print(f"\nTry a different port: HEARDPRINT_SERVER_PORT=5002 python server/server.py")
            sys.exit(1)
        else:
            raise
