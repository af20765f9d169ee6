"""HTTP front-end for the exporter."""

from __future__ import annotations

import logging
from typing import Callable, Optional

import requests
from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .core.errors import InvalidInput, PackagingFailure
from .core.generator import emit
from .core.models import Scene
from .core.settings import ExportSettings, load_settings
from .exporter import EXPORT_FILENAME, export_scene

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], requests.Session]


def _origins(value: str) -> str | list[str]:
    parts = [part.strip() for part in value.split(",") if part.strip()]
    if not parts or parts == ["*"]:
        return "*"
    return parts


def create_app(
    settings: Optional[ExportSettings] = None,
    session_factory: Optional[SessionFactory] = None,
) -> Flask:
    settings = settings or load_settings()

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_request_bytes
    app.extensions["designtocode.settings"] = settings
    CORS(app, resources={r"/api/*": {"origins": _origins(settings.cors_origins)}})

    def _payload() -> object:
        # a missing or non-JSON body is reported as missing items
        return request.get_json(silent=True) or {}

    @app.post("/api/export-zip")
    def export_zip():
        try:
            scene = Scene.from_dict(_payload())
        except InvalidInput as exc:
            logger.info("Rejected export request: %s", exc)
            return jsonify(error=str(exc)), 400

        # the resolver closes the session once its last fetch settles
        session = session_factory() if session_factory else None
        try:
            result = export_scene(scene, settings, session=session, close_session=True)
        except PackagingFailure as exc:
            logger.error("Export failed: %s", exc)
            return jsonify(error=str(exc)), 500

        return Response(
            result.data,
            mimetype="application/zip",
            headers={
                "Content-Disposition": f"attachment; filename={EXPORT_FILENAME}",
                "X-Assets-Omitted": str(len(result.failures)),
            },
        )

    @app.post("/api/preview")
    def preview():
        try:
            scene = Scene.from_dict(_payload())
        except InvalidInput as exc:
            return jsonify(error=str(exc)), 400
        emission = emit(scene)
        return jsonify(
            html=emission.markup,
            css=emission.stylesheet,
            assets=[
                {"id": req.id, "src": req.src, "path": req.path}
                for req in emission.asset_requests
            ],
            skipped=emission.skipped,
        )

    @app.errorhandler(Exception)
    def handle_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return jsonify(error=exc.description), exc.code
        logger.exception("Unhandled error while exporting")
        return jsonify(error=str(exc)), 500

    return app
