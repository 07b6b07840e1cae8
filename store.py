"""File-backed proposal and contract records.

Each collection is one JSON list on disk. Reads take a shared lock; writes
go to a temp file under an exclusive lock and are swapped in atomically,
with the previous file kept as ``.bak`` for corruption recovery.
"""

import fcntl
import json
import logging
import math
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

DATA_DIR = Path(os.environ.get("HUB_DATA_DIR", "data"))
PROPOSALS_FILE = "proposals.json"
CONTRACTS_FILE = "contracts.json"

PROPOSAL_STATUSES = ("on_going", "under_evaluation", "completed")
CONTRACT_STATUSES = ("active", "renewal_due", "delinquent")
PROPOSAL_FIELDS = {"clientName", "amount", "status"}

SEED_PROPOSALS = [
    {"id": 1, "clientName": "Maria Silva", "amount": "5000", "status": "on_going",
     "createdAt": "2024-03-10T00:00:00Z", "updatedAt": "2024-03-10T00:00:00Z"},
    {"id": 2, "clientName": "João Santos", "amount": "12000", "status": "under_evaluation",
     "createdAt": "2024-03-12T00:00:00Z", "updatedAt": "2024-03-12T00:00:00Z"},
    {"id": 3, "clientName": "Padaria Central", "amount": "25000", "status": "completed",
     "createdAt": "2024-03-01T00:00:00Z", "updatedAt": "2024-03-15T00:00:00Z"},
    {"id": 4, "clientName": "Ana Costa", "amount": "3500", "status": "on_going",
     "createdAt": "2024-03-14T00:00:00Z", "updatedAt": "2024-03-14T00:00:00Z"},
    {"id": 5, "clientName": "Oficina Mecânica", "amount": "15000", "status": "under_evaluation",
     "createdAt": "2024-03-11T00:00:00Z", "updatedAt": "2024-03-11T00:00:00Z"},
    {"id": 6, "clientName": "Mercadinho Feliz", "amount": "8000", "status": "completed",
     "createdAt": "2024-02-28T00:00:00Z", "updatedAt": "2024-03-10T00:00:00Z"},
    {"id": 7, "clientName": "Carlos Oliveira", "amount": "4200", "status": "on_going",
     "createdAt": "2024-03-15T00:00:00Z", "updatedAt": "2024-03-15T00:00:00Z"},
]

SEED_CONTRACTS = [
    {"id": 1, "clientName": "José Pereira", "amount": "10000", "status": "active",
     "maturityDate": "2024-06-15T00:00:00Z", "createdAt": "2023-12-15T00:00:00Z"},
    {"id": 2, "clientName": "Salão Beleza Pura", "amount": "5000", "status": "renewal_due",
     "maturityDate": "2024-03-20T00:00:00Z", "createdAt": "2023-09-20T00:00:00Z"},
    {"id": 3, "clientName": "Lanchonete da Esquina", "amount": "8000", "status": "delinquent",
     "maturityDate": "2024-02-28T00:00:00Z", "createdAt": "2023-08-28T00:00:00Z"},
    {"id": 4, "clientName": "Fernanda Lima", "amount": "3000", "status": "active",
     "maturityDate": "2024-07-10T00:00:00Z", "createdAt": "2024-01-10T00:00:00Z"},
    {"id": 5, "clientName": "Roberto Souza", "amount": "15000", "status": "renewal_due",
     "maturityDate": "2024-03-25T00:00:00Z", "createdAt": "2023-09-25T00:00:00Z"},
]


class ValidationError(ValueError):
    """Invalid input for a record, tagged with the offending field."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field


# ─── Disk I/O ───

def _path(name):
    return Path(DATA_DIR) / name


def load_records(name, seed=()):
    """Load a record list, falling back to the backup and then to ``seed``."""
    path = _path(name)
    if not path.exists():
        return [dict(r) for r in seed]
    try:
        with open(path) as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            try:
                return json.load(f)
            finally:
                fcntl.flock(f, fcntl.LOCK_UN)
    except json.JSONDecodeError:
        logger.error("%s is corrupted, attempting backup recovery", name)
        backup = path.with_suffix(".json.bak")
        if backup.exists():
            try:
                with open(backup) as f:
                    data = json.load(f)
                logger.info("Recovered %s from backup", name)
                return data
            except (json.JSONDecodeError, OSError) as e:
                logger.error("Backup of %s also corrupted: %s", name, e)
        return []
    except OSError as e:
        logger.error("Failed to read %s: %s", name, e)
        return []


def save_records(name, records):
    """Write a record list atomically with file locking."""
    data_dir = Path(DATA_DIR)
    data_dir.mkdir(parents=True, exist_ok=True)
    path = _path(name)

    if path.exists():
        backup = path.with_suffix(".json.bak")
        try:
            shutil.copy2(path, backup)
        except OSError as e:
            logger.warning("Failed to back up %s: %s", name, e)

    fd, tmp_path = tempfile.mkstemp(dir=str(data_dir), suffix=".json.tmp")
    try:
        with os.fdopen(fd, "w") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            try:
                json.dump(records, f, indent=2, ensure_ascii=False, default=str)
            finally:
                fcntl.flock(f, fcntl.LOCK_UN)
        os.replace(tmp_path, str(path))
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


# ─── Validation ───

def validate_amount(value):
    """Return the amount as a plain numeric string or raise ValidationError."""
    if isinstance(value, bool) or value is None or not str(value).strip():
        raise ValidationError("amount is required", "amount")
    cleaned = str(value).replace(",", "").replace("$", "").strip()
    try:
        amount = float(cleaned)
    except ValueError:
        raise ValidationError(f"Invalid amount: {value}. Must be numeric.", "amount")
    if not math.isfinite(amount):
        raise ValidationError(f"Invalid amount: {value}. Must be a finite number.", "amount")
    if amount < 0:
        raise ValidationError("amount cannot be negative", "amount")
    return cleaned


def validate_proposal_input(data):
    """Validate a create-proposal body and return the cleaned fields."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", "body")

    unknown = sorted(set(data) - PROPOSAL_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(unknown)}", unknown[0])

    client_name = data.get("clientName")
    if not isinstance(client_name, str) or not client_name.strip():
        raise ValidationError("clientName is required", "clientName")

    amount = validate_amount(data.get("amount"))

    status = data.get("status", "on_going")
    if status not in PROPOSAL_STATUSES:
        raise ValidationError(
            f"Invalid status: {status}. Must be one of: {', '.join(PROPOSAL_STATUSES)}", "status")

    return {"clientName": client_name.strip(), "amount": amount, "status": status}


# ─── Collections ───

def _now():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def get_proposals(status=None):
    proposals = load_records(PROPOSALS_FILE, SEED_PROPOSALS)
    if status:
        proposals = [p for p in proposals if p.get("status") == status]
    return proposals


def create_proposal(data):
    """Validate and persist a new proposal, returning the stored record."""
    fields = validate_proposal_input(data)
    proposals = load_records(PROPOSALS_FILE, SEED_PROPOSALS)
    now = _now()
    proposal = {
        "id": max((p.get("id", 0) for p in proposals), default=0) + 1,
        **fields,
        "createdAt": now,
        "updatedAt": now,
    }
    proposals.append(proposal)
    save_records(PROPOSALS_FILE, proposals)
    logger.info("Created proposal %d for %s", proposal["id"], proposal["clientName"])
    return proposal


def get_contracts(status=None):
    contracts = load_records(CONTRACTS_FILE, SEED_CONTRACTS)
    if status:
        contracts = [c for c in contracts if c.get("status") == status]
    return contracts
