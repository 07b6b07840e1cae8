"""Proposal payload normalization.

Hunt has shipped several shapes of the submit body over time: an envelope
with a ``payload`` object, the same envelope with ``payload`` serialized as a
JSON string, a bare proposal, and the raw ``ProposalWithData`` record with
its ``data.group`` tree. Everything is reshaped here into the single form
Arise accepts.
"""

import json
import logging
import math
import re
import uuid
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

LEADER = "LEADER"
MEMBER = "MEMBER"

PASSTHROUGH_FIELDS = ("contractText", "evidencePhotos")


class PayloadError(ValueError):
    """Raised when a submit body cannot be normalized at all."""

    def __init__(self, message, field="body"):
        super().__init__(message)
        self.field = field


# ─── Value helpers ───

def first_present(*values, default=None):
    """Return the first value that is not None and not a blank string."""
    for value in values:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return default


def as_dict(value):
    """Return value if it is a dict, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def as_text(value):
    if value is None:
        return ""
    return str(value).strip()


_AMOUNT_JUNK = re.compile(r"[^\d.,\-]")


def finite_or_zero(value):
    return value if math.isfinite(value) else 0.0


def parse_amount(value):
    """Parse a loosely formatted money value into a float.

    Handles plain numbers and strings like "$1,200.50", "R$ 1.234,56" or
    "1.234,56". Anything unparseable or non-finite gives 0.0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        try:
            return finite_or_zero(float(value))
        except OverflowError:
            return 0.0
    if not isinstance(value, str):
        return 0.0

    cleaned = _AMOUNT_JUNK.sub("", value)
    if not cleaned:
        return 0.0

    if "." in cleaned and "," in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        head, _, tail = cleaned.rpartition(",")
        if len(tail) == 2 and cleaned.count(",") == 1:
            cleaned = f"{head}.{tail}"
        else:
            cleaned = cleaned.replace(",", "")

    try:
        return finite_or_zero(float(cleaned))
    except ValueError:
        return 0.0


def utc_now_iso():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ─── Shape resolution ───

def resolve_source(body):
    """Pick the object holding the proposal fields out of a submit body."""
    payload = body.get("payload")
    if isinstance(payload, str) and payload.strip():
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Submit body carried an unparseable payload string; ignoring it")
            payload = None
    if isinstance(payload, dict):
        return payload
    if isinstance(body.get("proposal"), dict):
        return body["proposal"]
    return body


def resolve_group(source):
    group = source.get("group")
    if isinstance(group, dict):
        return group
    return as_dict(as_dict(source.get("data")).get("group"))


def split_name(name):
    parts = as_text(name).split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def normalize_member(raw, index, leader_id=None):
    """Normalize one member entry. ``index`` is the 0-based list position."""
    member_id = as_text(first_present(raw.get("memberId"), raw.get("id"), default=index + 1))

    first_from_name, last_from_name = split_name(raw.get("name"))
    first_name = as_text(first_present(raw.get("firstName"), first_from_name, default=""))
    last_name = as_text(first_present(raw.get("lastName"), last_from_name, default=""))
    name = as_text(first_present(raw.get("name"), f"{first_name} {last_name}".strip(), default="Unknown"))

    amount = first_present(raw.get("loanAmount"), raw.get("requestedAmount"), raw.get("amount"), default=0)

    role = as_text(raw.get("role")).upper()
    if not role:
        is_leader = leader_id is not None and member_id == as_text(leader_id)
        role = LEADER if is_leader else MEMBER

    member = {
        "memberId": member_id,
        "name": name,
        "firstName": first_name,
        "lastName": last_name,
        "loanAmount": parse_amount(amount),
        "role": role,
    }
    phone = first_present(raw.get("phone"), raw.get("contact1Number"))
    if phone is not None:
        member["phone"] = as_text(phone)
    id_number = first_present(raw.get("idNumber"), raw.get("documentNumber"))
    if id_number is not None:
        member["idNumber"] = as_text(id_number)
    return member


def find_leader(members):
    for member in members:
        if member["role"] == LEADER:
            return member
    return members[0] if members else None


# ─── Entry point ───

def normalize_proposal_input(body):
    """Reshape a submit body into ``(proposal_id, normalized_payload)``.

    The payload always has a non-empty ``groupId`` and at least one member.
    Raises PayloadError only when ``body`` is not a JSON object.
    """
    if not isinstance(body, dict):
        raise PayloadError("Request body must be a JSON object")

    source = resolve_source(body)
    group = resolve_group(source)

    proposal_id = first_present(body.get("proposalId"), source.get("proposalId"), source.get("id"))
    proposal_id = as_text(proposal_id) if proposal_id is not None else None

    leader_id = first_present(source.get("leaderId"), group.get("leaderId"))
    raw_members = first_present(source.get("members"), group.get("members"), default=[])
    if not isinstance(raw_members, list):
        raw_members = []
    members = [
        normalize_member(raw, index, leader_id)
        for index, raw in enumerate(raw_members)
        if isinstance(raw, dict)
    ]

    leader = find_leader(members)
    leader_name = as_text(first_present(
        source.get("leaderName"),
        source.get("clientName"),
        leader["name"] if leader else None,
        default="Unknown",
    ))

    raw_total = first_present(source.get("totalAmount"), source.get("amount"))
    if raw_total is not None:
        total_amount = parse_amount(raw_total)
    else:
        total_amount = finite_or_zero(sum(m["loanAmount"] for m in members))

    if not members:
        first_name, last_name = split_name(leader_name)
        members = [{
            "memberId": "1",
            "name": leader_name,
            "firstName": first_name,
            "lastName": last_name,
            "loanAmount": total_amount,
            "role": LEADER,
        }]
    elif not any(m["role"] == LEADER for m in members):
        members[0]["role"] = LEADER
    leader = find_leader(members)

    group_id = as_text(first_present(
        source.get("groupId"),
        group.get("groupId"),
        body.get("groupId"),
        f"GRP-{proposal_id}" if proposal_id else None,
        default=f"GRP-{uuid.uuid4().hex[:8]}",
    ))

    normalized = {
        "groupId": group_id,
        "groupName": as_text(first_present(
            source.get("groupName"), group.get("groupName"), group.get("name"),
            default=f"Group {leader_name}",
        )),
        "members": members,
        "leaderName": leader_name,
        "clientName": as_text(first_present(source.get("clientName"), leader_name)),
        "totalAmount": total_amount,
        "submittedAt": as_text(first_present(source.get("submittedAt"), default=utc_now_iso())),
    }

    leader_phone = first_present(source.get("leaderPhone"), leader.get("phone"))
    if leader_phone is not None:
        normalized["leaderPhone"] = as_text(leader_phone)

    for key in PASSTHROUGH_FIELDS:
        if source.get(key) is not None:
            normalized[key] = source[key]

    form_data = dict(as_dict(source.get("formData")))
    if source.get("loanDetailsByMember") is not None:
        form_data["loanDetailsByMember"] = source["loanDetailsByMember"]
    if form_data:
        normalized["formData"] = form_data

    return proposal_id, normalized
