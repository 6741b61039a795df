"""Result model for reconstructed test steps.

A StepRecord is produced by the stream parser once a step is finalized and is
never modified afterwards. All classes here are frozen dataclasses; the
parser accumulates partial data in its own mutable builder and only converts
it into these types at finalization time.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple


class StepStatus(str, Enum):
    """Final status of a step."""
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class VariableScope(str, Enum):
    LOCAL = "local"
    GLOBAL = "global"


@dataclass(frozen=True)
class RequestDetails:
    """Request performed by a step.

    Attributes:
        method: HTTP method token (e.g. "POST")
        url: Request URL as printed by the tool
        headers: Header name -> value, in the order the tool printed them
        body: Parsed body (JSON value) or the raw text if it did not parse
        query_params: Query string parameters extracted from the URL
    """
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Any] = None
    query_params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ResponseDetails:
    """Response observed for a step.

    Attributes:
        status_code: HTTP status code
        status_text: Reason phrase following the code, empty if none printed
        headers: Response headers
        body: Parsed body (JSON value), raw text, or None
        response_time_ms: Reported response time (0 if not reported)
        content_type: Content-Type header value if one was printed
    """
    status_code: int
    status_text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    response_time_ms: float = 0.0
    content_type: Optional[str] = None


@dataclass(frozen=True)
class AssertionResult:
    path: str
    operator: str
    expected: Any
    actual: Any
    passed: bool
    message: Optional[str] = None


@dataclass(frozen=True)
class CapturedVariable:
    name: str
    value: Any
    source_expression: str
    scope: VariableScope = VariableScope.LOCAL


@dataclass(frozen=True)
class ExportedVariable:
    """A captured value published for other steps or suites.

    Attributes:
        name: Variable name
        value: Parsed value
        reference_handle: Placeholder other steps use to reference the value,
            e.g. "{{create-user.user_id}}"
    """
    name: str
    value: Any
    reference_handle: str


@dataclass(frozen=True)
class StepRecord:
    """One finalized step reconstructed from the tool output.

    Collections are tuples so a record cannot be mutated after it has been
    appended to a session's completed list.
    """
    name: str
    status: StepStatus
    started_at: datetime
    ended_at: datetime
    duration_ms: float = 0.0
    id: Optional[str] = None
    index: Optional[int] = None
    declared_total: Optional[int] = None
    request: Optional[RequestDetails] = None
    response: Optional[ResponseDetails] = None
    assertions: Tuple[AssertionResult, ...] = ()
    captured: Tuple[CapturedVariable, ...] = ()
    exported: Tuple[ExportedVariable, ...] = ()
    error: Optional[str] = None
    curl_command: Optional[str] = None

    @property
    def failed_assertions(self) -> List[AssertionResult]:
        return [a for a in self.assertions if not a.passed]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        data = asdict(self)
        data["status"] = self.status.value
        data["started_at"] = self.started_at.isoformat()
        data["ended_at"] = self.ended_at.isoformat()
        for variable in data["captured"]:
            variable["scope"] = VariableScope(variable["scope"]).value
        data["assertions"] = list(data["assertions"])
        data["captured"] = list(data["captured"])
        data["exported"] = list(data["exported"])
        return data


@dataclass(frozen=True)
class RunStats:
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0

    @classmethod
    def from_steps(cls, steps: Sequence[StepRecord]) -> "RunStats":
        """Count step outcomes."""
        passed = sum(1 for s in steps if s.status == StepStatus.PASSED)
        failed = sum(1 for s in steps if s.status == StepStatus.FAILED)
        skipped = sum(1 for s in steps if s.status == StepStatus.SKIPPED)
        return cls(total=len(steps), passed=passed, failed=failed, skipped=skipped)


@dataclass(frozen=True)
class StopResult:
    """Outcome of a stop request. Never raised, always returned."""
    success: bool
    message: str
