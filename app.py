#!/usr/bin/env python3
"""Hub backend: Flask API behind the loan-origination launcher.

Serves proposal/contract/KPI data to the dashboard, normalizes proposal
submissions coming from the embedded Hunt app and relays them to Arise,
and keeps short in-memory logs for the debug endpoints.
"""

import logging
import math
import os
import time
from datetime import datetime, timezone
from functools import wraps

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

import store
from cors import apply_frame_headers, build_allow_list, init_cors
from forwarder import DEFAULT_TIMEOUT, ForwardError, forward_submission, new_correlation_id, submit_url
from normalizer import PayloadError, normalize_proposal_input
from ring_log import RingLog, capacity_from_env

# ─── Logging ───
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.json.sort_keys = False

# ─── Config ───
PORT = int(os.environ.get("PORT", "5000"))
PRODUCTION = os.environ.get("NODE_ENV", "development") == "production"
API_KEY = os.environ.get("HUB_API_KEY", "")
HUNT_URL = os.environ.get("VITE_HUNT_URL", "")
GATE_URL = os.environ.get("VITE_GATE_URL", "")
ALLOWED_ORIGINS = build_allow_list(os.environ.get("HUB_ALLOWED_ORIGINS", ""), HUNT_URL, GATE_URL)
CORS_ORIGINS = init_cors(app, ALLOWED_ORIGINS)

REQUEST_LOG = RingLog(capacity_from_env(os.environ.get("HUB_REQUEST_LOG_SIZE"), 200))
SUBMISSION_LOG = RingLog(capacity_from_env(os.environ.get("HUB_SUBMISSION_LOG_SIZE"), 50))

KPIS = {
    "creditPortfolio": 120000,
    "activeClients": 85,
    "delinquencyRate": "4.8%",
}


def arise_base_url():
    """Read per request so the upstream can be pointed elsewhere without a restart."""
    return os.environ.get("ARISE_BASE_URL", "").strip()


def arise_timeout():
    """Upstream timeout in seconds; anything not finite and positive uses the default."""
    try:
        timeout = float(os.environ.get("ARISE_TIMEOUT_SECONDS", DEFAULT_TIMEOUT))
    except ValueError:
        return DEFAULT_TIMEOUT
    if not math.isfinite(timeout) or timeout <= 0:
        return DEFAULT_TIMEOUT
    return timeout


def configured(value):
    return "[configured]" if value else "[not set]"


def elapsed_ms(start):
    return int((time.monotonic() - start) * 1000)


# ─── Auth helpers ───

def require_api_key(f):
    """Decorator to require API key for write endpoints."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not API_KEY:
            # No API key configured, allow (dev mode)
            return f(*args, **kwargs)
        if request.headers.get("X-API-Key", "") != API_KEY:
            return jsonify({"error": "unauthorized", "message": "Valid API key required"}), 401
        return f(*args, **kwargs)
    return decorated


# ─── Request hooks ───

@app.before_request
def start_request():
    g.started = time.monotonic()
    g.correlation_id = request.headers.get("X-Correlation-Id", "").strip() or None


@app.after_request
def finish_request(response):
    apply_frame_headers(response, PRODUCTION)

    if request.path.startswith("/api") and request.method != "OPTIONS":
        duration = elapsed_ms(g.get("started", time.monotonic()))
        logger.info("%s %s %d in %dms", request.method, request.path, response.status_code, duration)
        REQUEST_LOG.append({
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "durationMs": duration,
            "origin": request.headers.get("Origin"),
            "correlationId": g.get("correlation_id"),
        })
    return response


# ─── Error handlers ───

@app.errorhandler(HTTPException)
def handle_http_error(err):
    if not request.path.startswith("/api"):
        return err
    return jsonify({"message": err.description}), err.code


@app.errorhandler(Exception)
def handle_unexpected_error(err):
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"message": "Internal Server Error"}), 500


# ─── Health ───

@app.route("/healthz")
def healthz():
    return jsonify({"ok": True})


@app.route("/api/health")
def api_health():
    """Report liveness and which satellite URLs are configured."""
    return jsonify({
        "ok": True,
        "ts": datetime.now(timezone.utc).isoformat(),
        "huntUrl": configured(HUNT_URL),
        "gateUrl": configured(GATE_URL),
        "ariseUrl": configured(arise_base_url()),
    })


# ─── Proposals & contracts ───

@app.route("/api/proposals", methods=["GET"])
def api_list_proposals():
    status = request.args.get("status")
    if status and status not in store.PROPOSAL_STATUSES:
        return jsonify({"error": "validation_error", "message": f"Invalid status: {status}",
                        "field": "status"}), 400
    return jsonify(store.get_proposals(status))


@app.route("/api/proposals", methods=["POST"])
@require_api_key
def api_create_proposal():
    """Create a proposal record. Requires API key if configured."""
    data = request.get_json(silent=True)
    try:
        proposal = store.create_proposal(data)
    except store.ValidationError as e:
        return jsonify({"error": "validation_error", "message": str(e), "field": e.field}), 400
    return jsonify(proposal), 201


@app.route("/api/contracts", methods=["GET"])
def api_list_contracts():
    status = request.args.get("status")
    if status and status not in store.CONTRACT_STATUSES:
        return jsonify({"error": "validation_error", "message": f"Invalid status: {status}",
                        "field": "status"}), 400
    return jsonify(store.get_contracts(status))


@app.route("/api/kpis", methods=["GET"])
def api_kpis():
    return jsonify(KPIS)


# ─── Submission relay ───

@app.route("/api/proposals/submit", methods=["POST"])
def api_submit_proposal():
    """Normalize a Hunt submission and forward it to Arise."""
    correlation_id = g.correlation_id or new_correlation_id()
    g.correlation_id = correlation_id
    started = time.monotonic()

    try:
        proposal_id, normalized = normalize_proposal_input(request.get_json(silent=True))
    except PayloadError as e:
        response = jsonify({"success": False, "error": str(e), "field": e.field,
                            "correlationId": correlation_id})
        response.headers["X-Correlation-Id"] = correlation_id
        return response, 400

    base_url = arise_base_url()
    entry = {
        "correlationId": correlation_id,
        "proposalId": proposal_id,
        "groupId": normalized["groupId"],
        "memberCount": len(normalized["members"]),
        "totalAmount": normalized["totalAmount"],
        "upstreamUrl": submit_url(base_url) if base_url else None,
    }

    try:
        status, upstream = forward_submission(base_url, normalized, proposal_id, correlation_id,
                                              timeout=arise_timeout())
    except ForwardError as e:
        logger.error("Submission %s for group %s failed: %s", correlation_id, normalized["groupId"], e)
        SUBMISSION_LOG.append({**entry, "status": 502, "ok": False, "error": e.message,
                               "upstreamStatus": e.upstream_status, "durationMs": elapsed_ms(started)})
        response = jsonify({
            "success": False,
            "error": e.message,
            "correlationId": correlation_id,
            "upstreamStatus": e.upstream_status,
            "upstream": e.upstream_body,
            "normalized": normalized,
        })
        response.headers["X-Correlation-Id"] = correlation_id
        return response, 502

    logger.info("Submission %s for group %s accepted by Arise (HTTP %d)",
                correlation_id, normalized["groupId"], status)
    SUBMISSION_LOG.append({**entry, "status": status, "ok": True, "error": None,
                           "upstreamStatus": status, "durationMs": elapsed_ms(started)})

    upstream_fields = upstream if isinstance(upstream, dict) else {}
    response = jsonify({
        "success": True,
        "correlationId": correlation_id,
        "proposalId": upstream_fields.get("proposalId", proposal_id),
        "stage": upstream_fields.get("stage"),
        "normalized": normalized,
        "upstream": upstream,
    })
    response.headers["X-Correlation-Id"] = correlation_id
    return response, status


# ─── Debug ───

def _log_listing(log):
    limit = request.args.get("limit", type=int)
    entries = log.recent(limit)
    return jsonify({"capacity": log.capacity, "count": len(entries), "entries": entries})


@app.route("/api/debug/requests", methods=["GET"])
def api_debug_requests():
    return _log_listing(REQUEST_LOG)


@app.route("/api/debug/submissions", methods=["GET"])
def api_debug_submissions():
    return _log_listing(SUBMISSION_LOG)


@app.route("/api/debug/config", methods=["GET"])
def api_debug_config():
    """Show which settings are in effect, without leaking secret values."""
    return jsonify({
        "production": PRODUCTION,
        "ariseBaseUrl": configured(arise_base_url()),
        "ariseTimeoutSeconds": arise_timeout(),
        "huntUrl": configured(HUNT_URL),
        "gateUrl": configured(GATE_URL),
        "apiKey": configured(API_KEY),
        "allowedOrigins": CORS_ORIGINS,
        "requestLogCapacity": REQUEST_LOG.capacity,
        "submissionLogCapacity": SUBMISSION_LOG.capacity,
    })


@app.route("/api/debug/logs", methods=["DELETE"])
@require_api_key
def api_debug_clear():
    REQUEST_LOG.clear()
    SUBMISSION_LOG.clear()
    return jsonify({"ok": True})


if __name__ == "__main__":
    logger.info("Starting Hub backend on port %d", PORT)
    app.run(host="0.0.0.0", port=PORT, debug=False)
