from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from .audio import ALLOWED_TYPES_MESSAGE, classify_media
from .config import Settings, load_settings
from .csv_export import export_filename, export_tasks_csv
from .errors import (
    ConversionFailed,
    ExtractionFailed,
    MalformedRequest,
    MediaStorageError,
    NoSpeechDetected,
    NotFound,
    TranscriptionFailed,
    UnsupportedMediaType,
)
from .logging_setup import setup_logging
from .models import parse_task_updates
from .pipeline import Extractor, Transcriber, process_media, process_transcript
from .store import TaskStore

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__)

EXTENSION_KEY = "meeting_tasks"
UPSTREAM_UNAVAILABLE_MESSAGE = "AI service is currently unavailable. Please check your API key and try again."
TRANSCRIPTION_FAILED_MESSAGE = "Failed to transcribe audio. Please ensure it's a valid audio file with clear speech."


def _state() -> Dict[str, Any]:
    return current_app.extensions[EXTENSION_KEY]


def _store() -> TaskStore:
    return _state()["store"]


def _error(message: str, status: int) -> tuple[Response, int]:
    return jsonify({"message": message}), status


def _parse_task_id(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise MalformedRequest("Invalid task ID") from None


@api.route("/", methods=["GET"])
def healthcheck() -> str:
    return "meeting-tasks running"


@api.route("/tasks", methods=["GET"])
def list_tasks() -> Any:
    return jsonify([task.to_dict() for task in _store().get_all()])


@api.route("/tasks/export", methods=["GET"])
def export_tasks() -> Response:
    body = export_tasks_csv(_store().get_all())
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@api.route("/process-transcript", methods=["POST"])
def process_transcript_route() -> Any:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise MalformedRequest("Invalid transcript format")
    transcript = payload.get("transcript")
    if transcript is None:
        raise MalformedRequest("Transcript is required")
    if not isinstance(transcript, str):
        raise MalformedRequest("Invalid transcript format")

    state = _state()
    settings: Settings = state["settings"]
    result = process_transcript(
        transcript,
        store=state["store"],
        extractor=state["extractor"],
        extractor_options=settings.extractor_options(),
    )
    logger.info("Transcript request stored %d tasks", result.count)
    return jsonify(result.to_dict())


@api.route("/process-audio", methods=["POST"])
def process_audio_route() -> Any:
    upload = request.files.get("audio")
    if upload is None or not upload.filename:
        raise MalformedRequest("No audio file provided")
    if classify_media(upload.filename, upload.mimetype) is None:
        raise UnsupportedMediaType(ALLOWED_TYPES_MESSAGE)

    state = _state()
    settings: Settings = state["settings"]
    data = upload.read()
    logger.info("Received upload %s (%s, %d bytes)", upload.filename, upload.mimetype, len(data))

    result = process_media(
        data,
        upload.filename,
        store=state["store"],
        mimetype=upload.mimetype,
        transcriber=state["transcriber"],
        transcription_backend=settings.transcription_backend,
        transcriber_options=settings.transcriber_options(),
        extractor=state["extractor"],
        extractor_options=settings.extractor_options(),
        max_chunk_bytes=settings.transcription_chunk_bytes,
    )
    logger.info("Audio request stored %d tasks", result.count)
    return jsonify(result.to_dict())


@api.route("/tasks/<task_id>", methods=["PUT"])
def update_task(task_id: str) -> Any:
    identifier = _parse_task_id(task_id)
    updates = parse_task_updates(request.get_json(silent=True))
    task = _store().update(identifier, updates)
    if task is None:
        raise NotFound("Task not found")
    return jsonify(task.to_dict())


@api.route("/tasks/<task_id>", methods=["DELETE"])
def delete_task(task_id: str) -> Any:
    identifier = _parse_task_id(task_id)
    if not _store().delete(identifier):
        raise NotFound("Task not found")
    return jsonify({"message": "Task deleted successfully"})


@api.route("/tasks", methods=["DELETE"])
def clear_tasks() -> Any:
    _store().clear()
    return jsonify({"message": "All tasks cleared successfully"})


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(MalformedRequest)
    def _malformed(exc: MalformedRequest):
        return _error(str(exc), 400)

    @app.errorhandler(NotFound)
    def _not_found(exc: NotFound):
        return _error(str(exc), 404)

    @app.errorhandler(UnsupportedMediaType)
    def _unsupported(exc: UnsupportedMediaType):
        return _error(f"Invalid file type: {exc}", 400)

    @app.errorhandler(NoSpeechDetected)
    def _no_speech(exc: NoSpeechDetected):
        return _error(str(exc), 400)

    @app.errorhandler(ConversionFailed)
    def _conversion(exc: ConversionFailed):
        logger.warning("Media conversion failed: %s", exc)
        return _error(TRANSCRIPTION_FAILED_MESSAGE, 400)

    @app.errorhandler(MediaStorageError)
    def _media_storage(exc: MediaStorageError):
        logger.exception("Scratch storage failure during conversion")
        return _error(str(exc), 500)

    @app.errorhandler(TranscriptionFailed)
    def _transcription(exc: TranscriptionFailed):
        logger.warning("Transcription failed: %s", exc)
        if exc.upstream_unavailable:
            return _error(UPSTREAM_UNAVAILABLE_MESSAGE, 502)
        return _error(TRANSCRIPTION_FAILED_MESSAGE, 400)

    @app.errorhandler(ExtractionFailed)
    def _extraction(exc: ExtractionFailed):
        logger.warning("Task extraction failed: %s", exc)
        if exc.upstream_unavailable:
            return _error(UPSTREAM_UNAVAILABLE_MESSAGE, 502)
        return _error("Invalid transcript format", 400)

    @app.errorhandler(RequestEntityTooLarge)
    def _too_large(_: RequestEntityTooLarge):
        limit = app.config.get("MAX_CONTENT_LENGTH")
        if isinstance(limit, int) and limit > 0:
            return _error(f"Upload too large. Max allowed is {limit // (1024 * 1024)} MB.", 413)
        return _error("Upload too large.", 413)

    @app.errorhandler(Exception)
    def _unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return _error(exc.description or exc.name, exc.code or 500)
        logger.exception("Unhandled error while serving %s %s", request.method, request.path)
        return _error(str(exc) or "Internal server error", 500)


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[TaskStore] = None,
    transcriber: Optional[Transcriber] = None,
    extractor: Optional[Extractor] = None,
) -> Flask:
    """Build the Flask application.

    ``transcriber`` and ``extractor`` default to ``None``, in which case the
    pipeline constructs the upstream clients from ``settings`` per request.
    """

    settings = settings or load_settings()
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_bytes
    app.extensions[EXTENSION_KEY] = {
        "settings": settings,
        "store": store if store is not None else TaskStore(),
        "transcriber": transcriber,
        "extractor": extractor,
    }
    app.register_blueprint(api)
    _register_error_handlers(app)
    return app


def main() -> None:
    settings = load_settings()
    setup_logging(level=settings.log_level, log_dir=settings.log_dir)
    app = create_app(settings)
    logger.info("Serving on %s:%d (transcription backend: %s)", settings.host, settings.port, settings.transcription_backend)
    app.run(host=settings.host, port=settings.port, threaded=True)


if __name__ == "__main__":
    main()
