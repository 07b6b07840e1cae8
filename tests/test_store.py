"""Tests for the JSON record store."""

import json

import pytest

import store


class TestProposalValidation:

    def test_valid_input_is_cleaned(self):
        fields = store.validate_proposal_input({"clientName": "  Ana Costa ", "amount": "$3,500"})
        assert fields == {"clientName": "Ana Costa", "amount": "3500", "status": "on_going"}

    @pytest.mark.parametrize("data, field", [
        ({"amount": "100"}, "clientName"),
        ({"clientName": "   ", "amount": "100"}, "clientName"),
        ({"clientName": 7, "amount": "100"}, "clientName"),
        ({"clientName": "Ana"}, "amount"),
        ({"clientName": "Ana", "amount": "lots"}, "amount"),
        ({"clientName": "Ana", "amount": -5}, "amount"),
        ({"clientName": "Ana", "amount": True}, "amount"),
        ({"clientName": "Ana", "amount": "nan"}, "amount"),
        ({"clientName": "Ana", "amount": "inf"}, "amount"),
        ({"clientName": "Ana", "amount": "1e999"}, "amount"),
        ({"clientName": "Ana", "amount": float("nan")}, "amount"),
        ({"clientName": "Ana", "amount": "1", "status": "funded"}, "status"),
        ({"clientName": "Ana", "amount": "1", "id": 3}, "id"),
        (None, "body"),
    ])
    def test_invalid_input_names_field(self, data, field):
        with pytest.raises(store.ValidationError) as exc:
            store.validate_proposal_input(data)
        assert exc.value.field == field


class TestRecords:

    def test_seed_returned_when_no_file(self, data_dir):
        proposals = store.get_proposals()
        assert len(proposals) == len(store.SEED_PROPOSALS)
        assert not (data_dir / store.PROPOSALS_FILE).exists()

    def test_seed_is_copied(self, data_dir):
        store.get_proposals()[0]["clientName"] = "changed"
        assert store.get_proposals()[0]["clientName"] == "Maria Silva"

    def test_status_filter(self, data_dir):
        assert {p["status"] for p in store.get_proposals("completed")} == {"completed"}
        assert {c["status"] for c in store.get_contracts("delinquent")} == {"delinquent"}

    def test_create_assigns_next_id_and_persists(self, data_dir):
        created = store.create_proposal({"clientName": "Nova Loja", "amount": 900, "status": "under_evaluation"})
        assert created["id"] == max(p["id"] for p in store.SEED_PROPOSALS) + 1
        assert created["createdAt"] == created["updatedAt"]
        on_disk = json.loads((data_dir / store.PROPOSALS_FILE).read_text())
        assert on_disk[-1] == created
        assert store.create_proposal({"clientName": "Outra", "amount": 1})["id"] == created["id"] + 1

    def test_backup_written_on_second_save(self, data_dir):
        store.create_proposal({"clientName": "A", "amount": 1})
        store.create_proposal({"clientName": "B", "amount": 2})
        backup = json.loads((data_dir / "proposals.json.bak").read_text())
        assert backup[-1]["clientName"] == "A"

    def test_recovers_from_backup(self, data_dir):
        (data_dir / store.PROPOSALS_FILE).write_text("{broken")
        (data_dir / "proposals.json.bak").write_text(json.dumps([{"id": 1, "clientName": "Saved"}]))
        assert store.get_proposals() == [{"id": 1, "clientName": "Saved"}]

    def test_corrupt_without_backup_is_empty(self, data_dir):
        (data_dir / store.CONTRACTS_FILE).write_text("not json")
        assert store.get_contracts() == []
