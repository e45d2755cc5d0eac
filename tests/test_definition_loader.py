# ============================================================================
# DEFINITION LOADER TESTS
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Tests - YAML/JSON definition files
# PURPOSE: Verify definition files load into validated workflows
# CREATED: 18 OCT 2026
# ============================================================================
"""
Definition Loader Tests

Covers:
1. YAML with and without the top-level jobs: key
2. JSON files (JSON is YAML)
3. One file, many workflow instances
4. Parse errors, empty files and invalid DAGs raise ValidationError

Run with:
    pytest tests/test_definition_loader.py -v
"""

import json

import pytest

from core.errors import ValidationError
from services import definition_from_mapping, load_definition


# ============================================================================
# FIXTURES
# ============================================================================

DIAMOND_YAML = """
jobs:
  a_job: {deps: [], args: [1, 2]}
  b_job: {deps: [a_job]}
  c_job: {deps: [a_job]}
  d_job: {deps: [b_job, c_job], args: [final]}
"""


@pytest.fixture
def diamond_file(tmp_path):
    path = tmp_path / "diamond.yaml"
    path.write_text(DIAMOND_YAML)
    return path


# ============================================================================
# LOADING
# ============================================================================

class TestLoadDefinition:

    def test_yaml_with_jobs_key(self, diamond_file):
        definition = load_definition(diamond_file, "wf-1")

        assert definition.workflow_id == "wf-1"
        assert definition.get_job("a_job").args == (1, 2)
        assert definition.get_job("d_job").deps == frozenset({"b_job", "c_job"})

    def test_bare_mapping(self, tmp_path):
        path = tmp_path / "bare.yml"
        path.write_text("extract: {}\nload:\n  deps: [extract]\n")

        definition = load_definition(str(path), "wf-1")
        assert definition.dependents_of("extract") == ["load"]

    def test_json_file(self, tmp_path):
        path = tmp_path / "flow.json"
        path.write_text(json.dumps({"jobs": {"a": {"args": ["x"]}, "b": {"deps": ["a"]}}}))

        definition = load_definition(path, "wf-1")
        assert definition.to_record() == {
            "a": {"deps": [], "args": ["x"]},
            "b": {"deps": ["a"], "args": []},
        }

    def test_one_file_many_instances(self, diamond_file):
        first = load_definition(diamond_file, "wf-1")
        second = load_definition(diamond_file, "wf-2")

        assert first.workflow_id != second.workflow_id
        assert first.to_record() == second.to_record()

    def test_from_mapping_unwraps_jobs_key(self):
        wrapped = definition_from_mapping("wf-1", {"jobs": {"a": {}, "b": {"deps": ["a"]}}})
        bare = definition_from_mapping("wf-1", {"a": {}, "b": {"deps": ["a"]}})

        assert wrapped == bare


class TestLoadErrors:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_definition(tmp_path / "nope.yaml", "wf-1")

    def test_unparseable(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("jobs: [unclosed\n")

        with pytest.raises(ValidationError, match="Could not parse"):
            load_definition(path, "wf-1")

    def test_empty(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        with pytest.raises(ValidationError, match="empty"):
            load_definition(path, "wf-1")

    def test_cycle(self, tmp_path):
        path = tmp_path / "cycle.yaml"
        path.write_text("a: {deps: [b]}\nb: {deps: [a]}\n")

        with pytest.raises(ValidationError, match="Cycle detected"):
            load_definition(path, "wf-1")

    def test_top_level_list(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValidationError):
            load_definition(path, "wf-1")
