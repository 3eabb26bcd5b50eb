"""
Flask application for the newsdesk transcriber.

Each page load of ``/`` opens a fresh workspace.  Its id is rendered into
the page and sent back on every API call in the ``X-Workspace`` header (or
the ``workspace`` query parameter for media and download links), so every
tab works on its own workspace and a reload starts over, as nothing is
persisted.  The JSON API below drives the browser UI:

* ``POST /api/media`` uploads and validates an audio or video file.
* ``POST /api/transcribe`` runs the Gemini transcription for it.
* ``GET /api/workspace`` reports status and the elapsed time while busy.
* ``GET /api/transcript/search`` highlights matches and moves the cursor.
* ``GET``/``POST /api/chat`` read and extend the assistant conversation.
* ``POST /api/reset`` drops the file, transcript and chat.

Environment variables:

* ``PORT`` – Port for the development server (default 8080).
"""

import json
import logging
import os

from flask import (
    Flask,
    abort,
    jsonify,
    make_response,
    render_template,
    request,
    send_file,
    url_for,
)
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from . import media
from .assistant import ASSISTANT, ChatBusyError
from .formatting import format_message
from .search import find_matches, render_highlighted
from .transcript import download_filename
from .workspace import TranscriptionStatus, WorkspaceStateError, WorkspaceStore

logging.basicConfig(level=logging.INFO, format="%(message)s")

app = Flask(__name__)
# Leave headroom for the multipart envelope; the per-file limit is enforced
# by media.validate_media.
app.config["MAX_CONTENT_LENGTH"] = media.MAX_UPLOAD_BYTES + 1024 * 1024

store = WorkspaceStore()

WORKSPACE_NOT_FOUND = "Workspace not found. Reload the page."


def _error(message, status):
    return jsonify({"error": message}), status


def _current_workspace():
    workspace_id = request.headers.get("X-Workspace") or request.args.get("workspace")
    workspace = store.get(workspace_id)
    if workspace is None:
        abort(make_response(*_error(WORKSPACE_NOT_FOUND, 404)))
    return workspace


def _render_message(message):
    if message.role == ASSISTANT:
        html = render_template("_message.html", blocks=format_message(message.text))
    else:
        html = None
    return {"role": message.role, "text": message.text, "html": html}


@app.errorhandler(RequestEntityTooLarge)
def too_large(exc):
    logging.info(json.dumps({"event": "upload_too_large"}))
    return _error(media.TOO_LARGE_MESSAGE, 413)


@app.route("/")
def index():
    workspace = store.create()
    logging.info(json.dumps({"event": "workspace_created", "workspace": workspace.id}))
    return render_template(
        "index.html",
        workspace_id=workspace.id,
        max_upload_mb=media.MAX_UPLOAD_MB,
    )


@app.route("/api/workspace")
def workspace_status():
    return jsonify(_current_workspace().snapshot())


@app.route("/api/media", methods=["POST"])
def upload_media():
    workspace = _current_workspace()
    upload = request.files.get("file")
    if upload is None:
        return _error(media.INVALID_TYPE_MESSAGE, 400)
    if workspace.busy:
        return _error("A transcription is already in progress.", 409)
    try:
        media_file = media.save_upload(upload)
    except media.MediaValidationError as exc:
        logging.info(
            json.dumps({"event": "upload_rejected", "file": upload.filename, "reason": str(exc)})
        )
        return _error(str(exc), 400)
    media_file.preview_url = url_for(
        "media_preview", workspace=workspace.id, v=os.path.basename(media_file.path)
    )
    workspace.select_media(media_file)
    logging.info(
        json.dumps(
            {
                "event": "upload_accepted",
                "workspace": workspace.id,
                "file": media_file.filename,
                "kind": media_file.kind,
                "size": media_file.size,
            }
        )
    )
    return jsonify(workspace.snapshot())


@app.route("/media/preview")
def media_preview():
    workspace = _current_workspace()
    media_file = workspace.media
    if media_file is None or not os.path.exists(media_file.path):
        abort(404)
    return send_file(media_file.path, mimetype=media_file.mime_type, conditional=True)


@app.route("/api/transcribe", methods=["POST"])
def transcribe():
    workspace = _current_workspace()
    logging.info(json.dumps({"event": "start_transcription", "workspace": workspace.id}))
    try:
        status = workspace.transcribe()
    except WorkspaceStateError as exc:
        return _error(str(exc), 409)
    except Exception as e:
        logging.exception("Error in /api/transcribe")
        return _error(f"Server error: {str(e)}", 500)

    snapshot = workspace.snapshot()
    if status == TranscriptionStatus.ERROR:
        logging.error(
            json.dumps({"event": "transcription_error", "workspace": workspace.id, "error": workspace.error})
        )
        return jsonify(snapshot), 502
    logging.info(
        json.dumps(
            {"event": "transcription_complete", "workspace": workspace.id, "status": status.value}
        )
    )
    return jsonify(snapshot)


@app.route("/api/reset", methods=["POST"])
def reset():
    workspace = _current_workspace()
    workspace.reset()
    logging.info(json.dumps({"event": "workspace_reset", "workspace": workspace.id}))
    return jsonify(workspace.snapshot())


@app.route("/api/transcript")
def transcript_text():
    workspace = _current_workspace()
    if not workspace.transcript:
        return _error("No transcript available yet.", 404)
    return workspace.transcript, 200, {"Content-Type": "text/plain; charset=utf-8"}


@app.route("/api/transcript/download")
def transcript_download():
    workspace = _current_workspace()
    if not workspace.transcript:
        return _error("No transcript available yet.", 404)
    filename = download_filename()
    return (
        workspace.transcript,
        200,
        {
            "Content-Type": "text/plain; charset=utf-8",
            "Content-Disposition": f'attachment; filename="{filename}"',
        },
    )


@app.route("/api/transcript/search")
def transcript_search():
    workspace = _current_workspace()
    query = request.args.get("q", "")
    move = request.args.get("move")
    paragraphs, total = find_matches(workspace.transcript, query)
    cursor = workspace.search
    cursor.update(query, total)
    if move == "next":
        cursor.next()
    elif move == "prev":
        cursor.previous()
    return jsonify(
        {
            "query": query,
            "total": total,
            "index": cursor.index,
            "label": cursor.label if query else "",
            "html": str(render_highlighted(paragraphs, cursor.index if total else -1)),
        }
    )


@app.route("/api/chat", methods=["GET", "POST"])
def chat():
    workspace = _current_workspace()
    try:
        assistant = workspace.chat()
    except WorkspaceStateError as exc:
        return _error(str(exc), 409)

    if request.method == "POST":
        data = request.get_json(silent=True) or {}
        text = data.get("text", "")
        try:
            assistant.send(text)
        except ChatBusyError as exc:
            return _error(str(exc), 409)
        except ValueError as exc:
            return _error(str(exc), 400)
        logging.info(json.dumps({"event": "chat_turn", "workspace": workspace.id}))

    return jsonify(
        {
            "messages": [_render_message(m) for m in assistant.messages],
            "quick_actions": [
                {"label": label, "prompt": prompt} for label, prompt in assistant.quick_actions()
            ],
            "pending": assistant.pending,
        }
    )


@app.errorhandler(HTTPException)
def http_error(exc):
    return _error(exc.description, exc.code)


def main():
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, threaded=True)


if __name__ == "__main__":
    main()
