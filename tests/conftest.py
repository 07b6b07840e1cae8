"""Shared fixtures for the Hub backend test suite."""

import sys
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BASE_DIR))


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, json_body=None, text=""):
        self.status_code = status_code
        self._json = json_body
        self.text = text

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the record store at an empty temp directory."""
    import store
    monkeypatch.setattr(store, "DATA_DIR", tmp_path)
    return tmp_path


@pytest.fixture
def hub(data_dir, monkeypatch):
    """The app module with clean logs and no upstream configured."""
    import app as hub_module
    monkeypatch.delenv("ARISE_BASE_URL", raising=False)
    monkeypatch.setattr(hub_module, "API_KEY", "")
    hub_module.app.config["TESTING"] = True
    hub_module.REQUEST_LOG.clear()
    hub_module.SUBMISSION_LOG.clear()
    return hub_module


@pytest.fixture
def client(hub):
    with hub.app.test_client() as client:
        yield client


@pytest.fixture
def upstream(monkeypatch):
    """Capture calls to requests.post and answer with a configurable response."""
    import forwarder

    calls = []
    state = {"response": FakeResponse(201, {"success": True, "proposalId": "ARISE-1", "stage": "DOC_REVIEW"})}

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        result = state["response"]
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(forwarder.requests, "post", fake_post)
    state["calls"] = calls
    return state


@pytest.fixture
def hunt_submission():
    """Envelope shape produced by Hunt's submit helper."""
    return {
        "proposalId": "1718000000000",
        "payload": {
            "groupId": "GRP-42",
            "members": [
                {"memberId": "1", "name": "Maria Silva", "firstName": "Maria", "lastName": "Silva",
                 "loanAmount": 1500, "role": "LEADER"},
                {"memberId": "2", "name": "Ana Costa", "firstName": "Ana", "lastName": "Costa",
                 "loanAmount": 2000, "role": "MEMBER"},
            ],
            "leaderName": "Maria Silva",
            "clientName": "Maria Silva",
            "totalAmount": 3500,
            "submittedAt": "2024-03-15T12:00:00Z",
            "loanDetailsByMember": {"1": {"installments": 12}},
        },
    }
