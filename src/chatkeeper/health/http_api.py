"""Health endpoint — reports when the bot last stored and deleted a message.

Endpoints:
    GET /ping  — liveness plus last-activity timestamps
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any

from flask import Flask, jsonify

from chatkeeper.ingest.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class HealthServer:
    """Flask-based health endpoint.

    Usage::

        server = HealthServer(pipeline, host="0.0.0.0", port=8080)
        server.start()  # Starts Flask in a thread
    """

    def __init__(
        self,
        pipeline: IngestionPipeline,
        host: str = "0.0.0.0",
        port: int = 8080,
    ) -> None:
        self._pipeline = pipeline
        self._host = host
        self._port = port
        self._thread: threading.Thread | None = None
        self._app: Any = None

    def _create_app(self) -> Flask:
        """Create the Flask application with routes."""
        app = Flask("chatkeeper-health")

        @app.route("/ping", methods=["GET"])
        def ping():
            return jsonify({
                "status": "ok",
                "last_incoming_message": _iso(self._pipeline.last_ingested_at),
                "last_deleted_message": _iso(self._pipeline.last_deleted_at),
            })

        self._app = app
        return app

    def start(self) -> None:
        """Start Flask in a background thread."""
        app = self.app

        def _run():
            app.run(host=self._host, port=self._port, debug=False, use_reloader=False)

        self._thread = threading.Thread(target=_run, daemon=True, name="health-http")
        self._thread.start()
        logger.info("Health endpoint at http://%s:%d/ping", self._host, self._port)

    def stop(self) -> None:
        """Stop the HTTP server (daemon thread dies with process)."""
        self._thread = None

    @property
    def app(self) -> Flask:
        """Expose the Flask app for testing."""
        if self._app is None:
            self._create_app()
        return self._app
