"""Relay normalized proposal submissions to Arise."""

import logging
import time
import uuid

import requests

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/api/proposals/submit"
DEFAULT_TIMEOUT = 15


class ForwardError(Exception):
    """Upstream submission failed: not configured, unreachable, or non-2xx."""

    def __init__(self, message, upstream_status=None, upstream_body=None):
        super().__init__(message)
        self.message = message
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body


def new_correlation_id():
    """Generate an id like ``hub-1718000000000-a1b2c3``."""
    return f"hub-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def submit_url(base_url):
    return base_url.strip().rstrip("/") + SUBMIT_PATH


def decode_body(resp):
    """Return the response JSON, or the raw text wrapped in a dict."""
    try:
        return resp.json()
    except ValueError:
        return {"raw": resp.text}


def forward_submission(base_url, normalized, proposal_id=None, correlation_id=None,
                       timeout=DEFAULT_TIMEOUT):
    """POST the normalized payload to Arise.

    Returns ``(status_code, body)`` for a 2xx answer and raises ForwardError
    for everything else.
    """
    if not base_url or not base_url.strip():
        raise ForwardError("ARISE_BASE_URL is not configured")

    url = submit_url(base_url)
    headers = {"Content-Type": "application/json"}
    if correlation_id:
        headers["X-Correlation-Id"] = correlation_id

    try:
        resp = requests.post(
            url,
            json={"proposalId": proposal_id, "payload": normalized},
            headers=headers,
            timeout=timeout,
        )
    except requests.exceptions.Timeout:
        raise ForwardError(f"Arise did not answer within {timeout}s")
    except requests.exceptions.RequestException as exc:
        raise ForwardError(f"Could not reach Arise: {exc}")

    body = decode_body(resp)
    if not 200 <= resp.status_code < 300:
        logger.warning("Arise rejected submission %s with HTTP %d", correlation_id, resp.status_code)
        raise ForwardError(
            f"Arise responded with HTTP {resp.status_code}",
            upstream_status=resp.status_code,
            upstream_body=body,
        )
    return resp.status_code, body
