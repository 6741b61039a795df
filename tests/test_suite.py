"""Tests for suite file loading and validation."""

import pytest

from flowwatch.suite import (
    SuiteFileError,
    load_suite,
    validate_suite,
    validate_suite_file,
)


VALID_SUITE = """\
suite_name: User API
node_id: user-api
metadata:
  priority: high
  tags: [smoke, users]
steps:
  - name: Create user
    request:
      method: POST
      url: /users
  - name: Fetch user
    request:
      method: GET
      url: /users/1
"""


class TestLoadSuite:
    """Tests for load_suite()."""

    def test_loads_mapping(self, tmp_path):
        path = tmp_path / "users.yaml"
        path.write_text(VALID_SUITE)

        data = load_suite(path)

        assert data["suite_name"] == "User API"
        assert len(data["steps"]) == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(SuiteFileError, match="Failed to read"):
            load_suite(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("steps: [unclosed\n")

        with pytest.raises(SuiteFileError, match="Invalid YAML"):
            load_suite(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(SuiteFileError, match="expected a mapping"):
            load_suite(path)


class TestValidateSuite:
    """Tests for validate_suite()."""

    def test_valid_suite(self, tmp_path):
        path = tmp_path / "users.yaml"
        path.write_text(VALID_SUITE)

        result = validate_suite_file(path)

        assert result.valid is True
        assert result.errors == []
        assert result.suite.suite_name == "User API"
        assert result.suite.node_id == "user-api"
        assert result.suite.step_names == ["Create user", "Fetch user"]
        assert result.suite.step_count == 2
        assert result.suite.priority == "high"
        assert result.suite.tags == ["smoke", "users"]
        assert result.suite.path == path

    def test_collects_all_errors(self):
        result = validate_suite({"steps": []})

        assert result.valid is False
        assert result.suite is None
        assert 'Missing or invalid "suite_name" field' in result.errors
        assert 'Missing or invalid "node_id" field' in result.errors
        assert 'Missing or invalid "steps" field' in result.errors

    def test_step_problems(self):
        result = validate_suite({
            "suite_name": "S",
            "node_id": "s",
            "steps": ["not a mapping", {"request": {}}, {"name": "Ok", "request": "GET /"}],
        })

        assert result.errors == [
            "Step 1 is not a mapping",
            'Step 2 is missing a "name"',
            'Step 3 has an invalid "request" section',
        ]

    def test_invalid_priority(self):
        result = validate_suite({
            "suite_name": "S",
            "node_id": "s",
            "steps": [{"name": "one"}],
            "metadata": {"priority": "urgent"},
        })

        assert result.valid is False
        assert "Invalid priority 'urgent'" in result.errors[0]

    def test_tags_must_be_list(self):
        result = validate_suite({
            "suite_name": "S",
            "node_id": "s",
            "steps": [{"name": "one"}],
            "metadata": {"tags": "smoke"},
        })

        assert result.errors == ['"metadata.tags" must be a list']

    def test_unreadable_file_is_invalid_result(self, tmp_path):
        result = validate_suite_file(tmp_path / "missing.yaml")

        assert result.valid is False
        assert "Failed to read" in result.errors[0]
