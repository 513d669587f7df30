"""
Trợ lý Soạn Kế Hoạch Bài Dạy 5512 - Standalone Web Application
Builds Vietnamese lesson plans (Phụ lục IV, Công văn 5512) from a form with AI.
"""

import logging
import mimetypes
import os

from flask import Flask, render_template, request, jsonify, session, send_file
from werkzeug.exceptions import RequestEntityTooLarge

import config
from doc_exporter import DOC_MIMETYPE, DEFAULT_FILENAME, build_doc, safe_filename
from errors import GenerationInFlightError, InvalidFieldError, InvalidInputError, LessonPlanError
from form_state import GRADES
from generation_client import GenerationClient
from lesson_planner import PlannerRegistry
from markdown_renderer import markdown_to_html, render_blocks

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = Flask(__name__)
app.secret_key = os.environ.get("FLASK_SECRET_KEY", os.urandom(24))
app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_MB * 1024 * 1024

# Fix external URL generation when behind a reverse proxy.
from werkzeug.middleware.proxy_fix import ProxyFix
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

# A missing credential stops the process here.
planners = PlannerRegistry(GenerationClient.from_config(), max_size=config.MAX_PLANNER_SESSIONS)


def current_planner():
    """Return the LessonPlanner bound to this browser session."""
    planner_id, planner = planners.get(session.get("planner_id"))
    session["planner_id"] = planner_id
    return planner


# ── Security Headers ────────────────────────────────────────

@app.after_request
def add_security_headers(response):
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "SAMEORIGIN"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
    response.headers["Content-Security-Policy"] = (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data:; "
        "connect-src 'self'"
    )
    response.headers["Cache-Control"] = "private, no-store, no-cache, must-revalidate"
    return response


# ── Error handlers: always return JSON for /api/* routes ────

@app.errorhandler(LessonPlanError)
def err_lesson_plan(e):
    status = 400 if isinstance(e, (InvalidInputError, InvalidFieldError)) else 500
    return jsonify(e.to_dict()), status


@app.errorhandler(RequestEntityTooLarge)
def err_413(e):
    message = f"File quá lớn. Dung lượng tối đa là {config.MAX_UPLOAD_MB} MB."
    if request.path.startswith("/api/"):
        return jsonify({"error": message, "kind": "invalid-field"}), 413
    return message, 413


@app.errorhandler(404)
def err_404(e):
    if request.path.startswith("/api/"):
        return jsonify({"error": "Not found"}), 404
    return str(e), 404


@app.errorhandler(405)
def err_405(e):
    if request.path.startswith("/api/"):
        return jsonify({"error": "Method not allowed"}), 405
    return str(e), 405


@app.errorhandler(500)
def err_500(e):
    if request.path.startswith("/api/"):
        return jsonify({"error": "Internal server error"}), 500
    return str(e), 500


# ── Helpers ─────────────────────────────────────────────────

def _render_screen(markdown):
    """Render lesson plan text with the on-screen block renderer."""
    if not markdown:
        return ""
    return render_template("_lesson_plan.html", blocks=render_blocks(markdown))


def _result_payload(planner):
    payload = {"result": None, "error": None}
    if planner.result is not None:
        payload["result"] = planner.result.to_dict()
        payload["lessonPlanHtml"] = _render_screen(planner.result.lesson_plan)
        payload["worksheetHtml"] = _render_screen(planner.result.worksheet)
    if planner.error is not None:
        payload["error"] = planner.error.message
        payload["kind"] = planner.error.kind
    return payload


def _upload_mimetype(upload):
    if upload.mimetype and upload.mimetype != "application/octet-stream":
        return upload.mimetype
    guessed, _ = mimetypes.guess_type(upload.filename or "")
    return guessed or "application/octet-stream"


# ── Routes ──────────────────────────────────────────────────

@app.route("/")
def generator():
    """Lesson plan form and result panel."""
    planner = current_planner()
    return render_template("generator.html",
                           state=planner.state(),
                           grades=GRADES,
                           default_filename=DEFAULT_FILENAME)


@app.route("/api/form")
def api_form():
    return jsonify(current_planner().state())


@app.route("/api/form", methods=["POST"])
def api_update_form():
    """Update one scalar, boolean or numeric field."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "field" not in data:
        return jsonify({"error": "No data provided"}), 400

    planner = current_planner()
    planner.update_field(data["field"], data.get("value"))
    return jsonify(planner.state())


@app.route("/api/form/content/<field>", methods=["POST"])
def api_update_content(field):
    """
    Update a content input (textbookContent or digitalCompetency).
    JSON {kind} switches kind, JSON {kind, value} edits text/url,
    multipart with a "file" part uploads a file.
    """
    planner = current_planner()

    upload = request.files.get("file")
    if upload is not None:
        data = upload.read()
        if not data:
            return jsonify({"error": "File rỗng.", "kind": "invalid-field"}), 400
        planner.attach_file(field, upload.filename or "tai-lieu.pdf", _upload_mimetype(upload), data)
        app.logger.info("Attached %s (%d bytes) to %s", upload.filename, len(data), field)
        return jsonify(planner.state())

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "kind" not in data:
        return jsonify({"error": "No data provided"}), 400
    if "value" in data:
        planner.set_content_value(field, data["kind"], data["value"])
    else:
        planner.switch_content_kind(field, data["kind"])
    return jsonify(planner.state())


@app.route("/api/generate", methods=["POST"])
def api_generate():
    """Generate a lesson plan from the stored form."""
    planner = current_planner()
    result, error = planner.generate()

    if isinstance(error, GenerationInFlightError):
        return jsonify(error.to_dict()), 409
    if isinstance(error, InvalidInputError):
        return jsonify(error.to_dict()), 400
    if error is not None:
        app.logger.warning("Generation failed: %s", error.kind)
        return jsonify(_result_payload(planner)), 502

    app.logger.info("Generated lesson plan: %s", planner.form.lesson_title)
    return jsonify(_result_payload(planner))


@app.route("/api/result")
def api_result():
    planner = current_planner()
    payload = _result_payload(planner)
    payload["inFlight"] = planner.in_flight
    return jsonify(payload)


@app.route("/api/export-doc", methods=["POST"])
def api_export_doc():
    """Download lesson plan (or worksheet) markdown as a Word-compatible .doc."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({"error": "No data provided"}), 400

    content = data.get("content", "")
    if not isinstance(content, str) or not content.strip():
        return jsonify({"error": "content is required"}), 400
    filename = data.get("filename")
    if filename is not None and not isinstance(filename, str):
        return jsonify({"error": "filename must be a string"}), 400

    return send_file(
        build_doc(content),
        mimetype=DOC_MIMETYPE,
        as_attachment=True,
        download_name=safe_filename(filename),
    )


@app.route("/api/export-html", methods=["POST"])
def api_export_html():
    """HTML for rich clipboard copy (Google Docs and similar paste targets)."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({"error": "No data provided"}), 400
    content = data.get("content", "")
    if not isinstance(content, str):
        return jsonify({"error": "content must be a string"}), 400
    return jsonify({"html": markdown_to_html(content)})


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    app.run(debug=os.environ.get("FLASK_DEBUG") == "1", host="0.0.0.0", port=port, threaded=True)
