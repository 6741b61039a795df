"""Loading and validation of flow-test suite files.

Suites are YAML documents with at least `suite_name`, `node_id` and a `steps`
list. flowwatch only reads enough of a suite to reject obviously broken files
before launching the engine and to know how many steps to expect.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

PRIORITY_LEVELS = ("critical", "high", "medium", "low")


class SuiteFileError(Exception):
    """Raised when a suite file cannot be read or is not valid YAML."""
    pass


@dataclass
class SuiteInfo:
    """Summary of a suite file.

    Attributes:
        path: Location of the suite file
        suite_name: Human-readable suite name
        node_id: Suite identifier used by the engine
        step_names: Names of the suite's steps, in order
        priority: Priority from the suite metadata, if any
        tags: Tags from the suite metadata
    """
    path: Path
    suite_name: str
    node_id: str
    step_names: List[str] = field(default_factory=list)
    priority: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    @property
    def step_count(self) -> int:
        return len(self.step_names)


@dataclass
class SuiteValidation:
    valid: bool
    errors: List[str] = field(default_factory=list)
    suite: Optional[SuiteInfo] = None


def load_suite(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a suite file and return the parsed YAML mapping.

    Raises:
        SuiteFileError: If the file cannot be read, is not valid YAML, or its
            top level is not a mapping
    """
    suite_path = Path(path)
    try:
        content = suite_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SuiteFileError(f"Failed to read {suite_path}: {e}") from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SuiteFileError(f"Invalid YAML in {suite_path}: {e}") from e

    if not isinstance(data, dict):
        raise SuiteFileError(f"Invalid suite {suite_path}: expected a mapping at top level")
    return data


def validate_suite(data: Dict[str, Any], path: Union[str, Path] = "<suite>") -> SuiteValidation:
    """Check the fields the engine requires.

    Returns every problem found rather than stopping at the first one.
    """
    errors: List[str] = []

    suite_name = data.get("suite_name")
    if not isinstance(suite_name, str) or not suite_name.strip():
        errors.append('Missing or invalid "suite_name" field')

    node_id = data.get("node_id")
    if not isinstance(node_id, str) or not node_id.strip():
        errors.append('Missing or invalid "node_id" field')

    steps = data.get("steps")
    step_names: List[str] = []
    if not isinstance(steps, list) or not steps:
        errors.append('Missing or invalid "steps" field')
    else:
        for i, step in enumerate(steps):
            if not isinstance(step, dict):
                errors.append(f"Step {i + 1} is not a mapping")
                continue
            name = step.get("name")
            if not isinstance(name, str) or not name.strip():
                errors.append(f'Step {i + 1} is missing a "name"')
                name = f"Step {i + 1}"
            step_names.append(name)
            request = step.get("request")
            if request is not None and not isinstance(request, dict):
                errors.append(f'Step {i + 1} has an invalid "request" section')

    metadata = data.get("metadata") or {}
    priority = None
    tags: List[str] = []
    if isinstance(metadata, dict):
        priority = metadata.get("priority")
        if priority is not None and priority not in PRIORITY_LEVELS:
            errors.append(
                f"Invalid priority '{priority}': must be one of {', '.join(PRIORITY_LEVELS)}"
            )
        raw_tags = metadata.get("tags") or []
        if isinstance(raw_tags, list):
            tags = [str(t) for t in raw_tags]
        else:
            errors.append('"metadata.tags" must be a list')
    else:
        errors.append('"metadata" must be a mapping')

    if errors:
        return SuiteValidation(valid=False, errors=errors)

    return SuiteValidation(valid=True, suite=SuiteInfo(
        path=Path(path),
        suite_name=suite_name,
        node_id=node_id,
        step_names=step_names,
        priority=priority,
        tags=tags,
    ))


def validate_suite_file(path: Union[str, Path]) -> SuiteValidation:
    """Load and validate a suite file.

    Unreadable or unparsable files produce an invalid result instead of an
    exception.
    """
    try:
        data = load_suite(path)
    except SuiteFileError as e:
        logger.warning(str(e))
        return SuiteValidation(valid=False, errors=[str(e)])
    return validate_suite(data, path)
