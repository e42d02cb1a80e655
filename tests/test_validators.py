import json

import pytest

from topo.validators import (
    ValidationError,
    assert_node,
    assert_snapshot,
    lint_node,
    lint_snapshot,
    load_document,
    snapshot_nodes,
    validate_snapshot_file,
)


class TestNodeSchema:
    def test_valid_node(self, make_node):
        assert lint_node(make_node("10.0.0.1", peers=[("10.0.0.2", 5)])) == []

    def test_nullable_fields(self):
        assert lint_node({"address": "a:1", "pubkey": None, "location": None, "stats": None, "version": None}) == []

    def test_bad_status_is_reported_with_pointer(self):
        problems = lint_node({"address": "a:1", "status": "sleeping"})
        assert len(problems) == 1
        assert problems[0][0] == "status"

    def test_peer_needs_address(self):
        problems = lint_node({"address": "a:1", "pods": {"pods": [{"last_seen_timestamp": 1}]}})
        assert problems and problems[0][0] == "pods/pods/0"

    def test_assert_raises_domain_error(self):
        with pytest.raises(ValidationError) as exc:
            assert_node({"address": "a:1", "location": {"lat": -91}})
        assert exc.value.where == "a:1"
        assert exc.value.instance_path == "location/lat"

    def test_defaults_are_opt_in(self):
        node = {"address": "a:1"}
        lint_node(node)
        assert "status" not in node
        lint_node(node, apply_defaults=True)
        assert node["status"] == "offline"


class TestSnapshotDocuments:
    def test_both_shapes_accepted(self):
        assert lint_snapshot([{"address": "a:1"}]) == []
        assert lint_snapshot({"ts": 1, "nodes": []}) == []

    def test_scalar_rejected(self):
        with pytest.raises(ValidationError):
            assert_snapshot("nodes")

    def test_snapshot_nodes(self):
        assert snapshot_nodes([1, 2]) == [1, 2]
        assert snapshot_nodes({"nodes": [3]}) == [3]
        assert snapshot_nodes({"data": []}) == []
        assert snapshot_nodes(None) == []

    def test_load_document_by_suffix(self, tmp_path):
        j = tmp_path / "snap.json"
        j.write_text(json.dumps({"nodes": [{"address": "a:1"}]}))
        y = tmp_path / "snap.yaml"
        y.write_text("nodes:\n  - address: a:1\n")
        assert load_document(j) == load_document(y)

    def test_validate_snapshot_file(self, tmp_path, make_node):
        path = tmp_path / "snap.json"
        path.write_text(json.dumps({"nodes": [make_node("10.0.0.1"), {"address": ""}]}))
        report = validate_snapshot_file(path)
        assert (report.total, report.valid, report.invalid) == (2, 1, 1)
        assert report.records[1].valid is False
        assert report.records[1].problems[0][0] == "address"
