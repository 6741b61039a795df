"""Incremental parser for flow-test-engine console output.

The engine prints a human-readable report: a marker line when a step starts,
then the request it sends, the response it gets, assertion outcomes and any
captured or exported variables. StreamParser turns that text, fed one line at
a time, into finalized StepRecord objects.

Each line is classified by an ordered list of recognizers (first match wins).
Step lifecycle changes go through a single transition table so that closing a
step on an explicit marker, on the next step-start and on end of stream all
share the same finalization path.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from .curl import to_curl
from .models import (
    AssertionResult,
    CapturedVariable,
    ExportedVariable,
    RequestDetails,
    ResponseDetails,
    StepRecord,
    StepStatus,
    VariableScope,
)

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")

# Upper bound on lines buffered for a body fragment whose brackets never close
MAX_BODY_LINES = 200

_ANSI_PATTERN = re.compile(r'\x1b\[[0-9;?]*[ -/]*[@-~]')

_STEP_START_PATTERNS = (
    re.compile(r'^\[STEP\s+(?P<index>\d+)\s*/\s*(?P<total>\d+)\]\s+(?P<name>.+)$'),
    re.compile(r'^▶\s*Step\s+(?P<index>\d+)\s*:\s*(?P<name>.+)$'),
    re.compile(r'^Running step:\s*(?P<name>.+)$'),
)

_STEP_SKIP_PATTERN = re.compile(
    r'^(?:[⊘⏭]\s*(?:Step\s+)?[Ss]kipped|[Ss]tep\s+skipped|\[SKIP(?:PED)?\])'
    r'(?:\s*[:\-]\s*(?P<reason>.+))?$'
)

# End-of-run banner; closes the last step so summary counters are not
# attributed to it
_SUMMARY_PATTERN = re.compile(
    r'^(?:[═=─━]{3,}\s*)?(?:(?:Test|Execution|Suite|Run)\s+)?Summary\b', re.IGNORECASE
)

_STEP_DONE_PATTERNS = (
    re.compile(r'^Step\s+(?P<word>completed|passed|failed|finished)\b\s*[:\-]?\s*(?P<reason>.*)$',
               re.IGNORECASE),
    re.compile(r'^(?P<mark>[✓✔✗✘])(?:\s+(?P<word>Success|Passed|Failed|Failure|OK))?'
               r'(?:\s*:\s*(?P<reason>.+))?$'),
)

_METHODS_ALT = "|".join(HTTP_METHODS)
_REQUEST_PATTERN = re.compile(rf'^(?P<method>{_METHODS_ALT})\s+(?P<url>\S+)')
_REQUEST_HEADER_PATTERN = re.compile(
    rf'^(?:→\s*)?Request:\s*(?:(?P<method>{_METHODS_ALT})\s+(?P<url>\S+))?'
)

_STATUS_PATTERN = re.compile(
    r"Status:\s+(?P<code>\d{3})\b(?:\s+(?P<text>[A-Za-z][A-Za-z \-']*[A-Za-z]))?"
)
_RESPONSE_TIME_PATTERN = re.compile(r'Response time:\s+(?P<ms>\d+(?:\.\d+)?)\s*ms')
_RESPONSE_HEADER_PATTERN = re.compile(r'^(?:←\s*)?Response:')

_ASSERT_MARK = (
    r'(?P<mark>[✓✔✗✘](?:\s+(?:Passed|Failed|Success|Failure|OK)\b)?|\[?PASS(?:ED)?\]?|\[?FAIL(?:ED)?\]?'
    r'|Assert(?:ion)?(?:\s+(?:passed|failed))?)'
)
_ASSERTION_HINT = re.compile(r'[✓✔✗✘]|PASS|FAIL|Assert')
_ASSERTION_PATTERNS = (
    re.compile(
        rf'^{_ASSERT_MARK}\s*:?\s+(?P<path>.+?):\s+expected\s+(?P<expected>.+?),\s+'
        r'(?:got|actual|received)\s+(?P<actual>.+)$'
    ),
    re.compile(
        rf'^{_ASSERT_MARK}\s*:?\s+(?P<path>\S+)\s+'
        r'(?P<operator>equals|not_equals|contains|not_contains|greater_than|less_than'
        r'|regex|exists|type|length|in|not_in|==|!=|>=|<=|>|<)'
        r'(?:\s+(?P<expected>.+?))?(?:\s*\((?:got|actual)\s+(?P<actual>.+)\))?$'
    ),
    re.compile(rf'^{_ASSERT_MARK}\s*:?\s+(?P<path>.+?):\s+(?P<rest>.+)$'),
)

# Outcome words that make a marked line a step-completion marker, not a path
_DONE_WORDS = frozenset({"success", "passed", "failed", "failure", "ok"})

_STEP_ID_PATTERN = re.compile(r'^Step[ _]ID\s*[:=]\s*(?P<id>\S+)$', re.IGNORECASE)
_ERROR_PATTERN = re.compile(r'^(?:[✗✘]\s*)?(?:Error|ERROR)\s*:\s*(?P<message>.+)$')

_HEADER_PATTERN = re.compile(r'^\s+(?P<name>[A-Za-z][A-Za-z0-9\-_]*):\s*(?P<value>.*)$')
_BODY_PREFIX_PATTERN = re.compile(
    r'^(?P<label>Request body|Response body|Body)\s*:\s*(?P<body>.*)$', re.IGNORECASE
)
_BARE_BODY_PATTERN = re.compile(r'(?P<body>.*)')

_VAR_NAME = r'(?P<name>[A-Za-z_][\w.\-]*)'
_VAR_SEP = r'\s*(?:=|:|→|->)\s*'
_EXPORT_PATTERN = re.compile(
    rf'^Export(?:ed)?(?:\s+variable)?\s*:?\s+{_VAR_NAME}{_VAR_SEP}(?P<value>.+)$',
    re.IGNORECASE,
)
_CAPTURE_PATTERNS = (
    re.compile(
        rf'^(?:Captured(?:\s+variable)?|Variable\s+captured)\s*:?\s*{_VAR_NAME}{_VAR_SEP}(?P<value>.+)$',
        re.IGNORECASE,
    ),
    re.compile(rf'^(?:[•*\-]\s+)?{_VAR_NAME}{_VAR_SEP}(?P<value>.+)$'),
)
_SCOPE_SUFFIX = re.compile(r'\s*\[(?P<scope>global|local)\]\s*$', re.IGNORECASE)
_SOURCE_SUFFIX = re.compile(
    r'\s*\((?:from|via|expr(?:ession)?)\s*:?\s*(?P<expr>[^)]*)\)\s*$', re.IGNORECASE
)

_SLUG_PATTERN = re.compile(r'[^a-z0-9]+')


def parse_value(text: str) -> Any:
    """Interpret a printed value.

    Tries JSON first, then strips one pair of matching quotes, otherwise
    returns the text unchanged.
    """
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        pass
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    return text


def slugify(text: str) -> str:
    return _SLUG_PATTERN.sub("-", text.lower()).strip("-") or "step"


def _bracket_depth(text: str) -> int:
    """Net count of open brackets in text, ignoring brackets inside strings."""
    depth = 0
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
    return depth


def _parse_body(text: str) -> Any:
    """Parse a body fragment, falling back to the raw text."""
    text = text.strip()
    starts = [i for i in (text.find("{"), text.find("[")) if i >= 0]
    if starts:
        start = min(starts)
        end = max(text.rfind("}"), text.rfind("]"))
        if end > start:
            try:
                return json.loads(text[start:end + 1])
            except (json.JSONDecodeError, ValueError):
                logger.debug(f"Unparsable body fragment kept as text: {text[:80]}")
    return text


class _Phase(Enum):
    NONE = "none"
    OPEN = "open"


class _Event(Enum):
    START = "start"
    CLOSE = "close"
    END = "end"


# (phase, event) -> (close current step, open a new one, next phase)
_TRANSITIONS: Dict[Tuple[_Phase, _Event], Tuple[bool, bool, _Phase]] = {
    (_Phase.NONE, _Event.START): (False, True, _Phase.OPEN),
    (_Phase.OPEN, _Event.START): (True, True, _Phase.OPEN),
    (_Phase.NONE, _Event.CLOSE): (False, False, _Phase.NONE),
    (_Phase.OPEN, _Event.CLOSE): (True, False, _Phase.NONE),
    (_Phase.NONE, _Event.END): (False, False, _Phase.NONE),
    (_Phase.OPEN, _Event.END): (True, False, _Phase.NONE),
}


@dataclass
class _StepBuilder:
    """Mutable in-progress step. Never handed out."""
    name: str
    started_at: datetime
    index: Optional[int] = None
    declared_total: Optional[int] = None
    id: Optional[str] = None
    section: Optional[str] = None  # "request" or "response"
    method: Optional[str] = None
    url: Optional[str] = None
    request_headers: Dict[str, str] = field(default_factory=dict)
    request_body: Any = None
    response_seen: bool = False
    status_code: int = 0
    status_text: str = ""
    response_headers: Dict[str, str] = field(default_factory=dict)
    response_body: Any = None
    response_time_ms: float = 0.0
    content_type: Optional[str] = None
    assertions: List[AssertionResult] = field(default_factory=list)
    captured: List[CapturedVariable] = field(default_factory=list)
    exports: List[Tuple[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    failed_marker: bool = False
    skipped: bool = False


@dataclass
class _PendingBody:
    section: str
    lines: List[str]


class StreamParser:
    """Incremental state machine turning tool output into StepRecords.

    Not thread-safe: all add_line() calls for one stream must be sequential.

    Args:
        empty_status: Status given to a finalized step that recorded no
            assertions and no failure. Defaults to PASSED.
        clock: Callable returning the current time, used for step timestamps.
    """

    def __init__(
        self,
        empty_status: StepStatus = StepStatus.PASSED,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.empty_status = StepStatus(empty_status)
        self._clock = clock
        self._recognizers: List[Tuple[Callable[[str, str], Optional[re.Match]], Callable[[re.Match], None]]] = [
            (self._match_step_start, self._on_step_start),
            (self._match_step_skip, self._on_step_skip),
            (self._match_step_done, self._on_step_done),
            (self._match_summary, self._on_summary),
            (self._match_request, self._on_request),
            (self._match_response, self._on_response),
            (self._match_error, self._on_error),
            (self._match_assertion, self._on_assertion),
            (self._match_step_id, self._on_step_id),
            (self._match_header, self._on_header),
            (self._match_body, self._on_body),
            (self._match_export, self._on_export),
            (self._match_capture, self._on_capture),
        ]
        self.reset()

    def reset(self) -> None:
        """Clear all state."""
        self.raw_lines: List[str] = []
        self._phase = _Phase.NONE
        self._current: Optional[_StepBuilder] = None
        self._pending_body: Optional[_PendingBody] = None
        self._steps: List[StepRecord] = []
        self.declared_total: Optional[int] = None

    @property
    def steps(self) -> List[StepRecord]:
        """Finalized steps so far, without closing the in-progress one."""
        return list(self._steps)

    @property
    def has_open_step(self) -> bool:
        return self._phase is _Phase.OPEN

    def add_line(self, line: str) -> None:
        """Consume one line (or a block of lines) of tool output.

        Never raises: a line that cannot be classified only ends up in
        raw_lines.
        """
        for raw in line.splitlines():
            self.raw_lines.append(raw)
            try:
                self._process(raw)
            except Exception as e:
                logger.warning(f"Ignoring line that failed to parse: {raw!r}: {e}")

    def get_steps(self) -> List[StepRecord]:
        """Close any open step (end of stream) and return all finalized steps."""
        self._transition(_Event.END)
        return list(self._steps)

    def _process(self, raw: str) -> None:
        text = _ANSI_PATTERN.sub("", raw).rstrip()
        stripped = text.strip()
        if not stripped:
            return

        if self._pending_body is not None:
            if not self._interrupts_body(stripped, text):
                self._continue_body(text)
                return
            # The body was truncated or malformed; keep what arrived as text
            self._flush_pending_body()

        for matcher, handler in self._recognizers:
            match = matcher(stripped, text)
            if match is not None:
                handler(match)
                return

    def _transition(self, event: _Event, match: Optional[re.Match] = None) -> None:
        close_current, open_new, next_phase = _TRANSITIONS[(self._phase, event)]
        if close_current:
            self._finalize()
        if open_new and match is not None:
            self._open(match)
        self._phase = next_phase

    def _open(self, match: re.Match) -> None:
        groups = match.groupdict()
        index = groups.get("index")
        total = groups.get("total")
        self._current = _StepBuilder(
            name=groups["name"].strip() or "Unknown Step",
            started_at=self._clock(),
            index=int(index) - 1 if index is not None else None,
            declared_total=int(total) if total is not None else None,
        )
        if total is not None:
            self.declared_total = int(total)

    def _finalize(self) -> None:
        if self._pending_body is not None:
            self._flush_pending_body()
        b = self._current
        self._current = None
        if b is None:
            return

        ended_at = self._clock()
        if b.skipped:
            status = StepStatus.SKIPPED
        elif b.failed_marker or b.error or any(not a.passed for a in b.assertions):
            status = StepStatus.FAILED
        elif not b.assertions:
            status = self.empty_status
        else:
            status = StepStatus.PASSED

        request = None
        if b.method and b.url:
            request = RequestDetails(
                method=b.method,
                url=b.url,
                headers=dict(b.request_headers),
                body=b.request_body,
                query_params=_query_params(b.url),
            )

        response = None
        if b.response_seen:
            response = ResponseDetails(
                status_code=b.status_code,
                status_text=b.status_text,
                headers=dict(b.response_headers),
                body=b.response_body,
                response_time_ms=b.response_time_ms,
                content_type=b.content_type,
            )

        if b.response_time_ms > 0:
            duration_ms = b.response_time_ms
        else:
            duration_ms = max((ended_at - b.started_at).total_seconds() * 1000.0, 0.0)

        step_ref = b.id or slugify(b.name)
        exported = tuple(
            ExportedVariable(name=name, value=value, reference_handle=f"{{{{{step_ref}.{name}}}}}")
            for name, value in b.exports
        )

        self._steps.append(StepRecord(
            name=b.name,
            status=status,
            started_at=b.started_at,
            ended_at=ended_at,
            duration_ms=duration_ms,
            id=b.id,
            index=b.index,
            declared_total=b.declared_total,
            request=request,
            response=response,
            assertions=tuple(b.assertions),
            captured=tuple(b.captured),
            exported=exported,
            error=b.error,
            curl_command=to_curl(request) if request is not None else None,
        ))
        logger.debug(f"Finalized step '{b.name}' with status {status.value}")

    # Recognizers: each returns a match object or None.

    def _match_step_start(self, stripped: str, text: str) -> Optional[re.Match]:
        for pattern in _STEP_START_PATTERNS:
            match = pattern.match(stripped)
            if match is not None:
                return match
        return None

    def _match_step_skip(self, stripped: str, text: str) -> Optional[re.Match]:
        return _STEP_SKIP_PATTERN.match(stripped)

    def _match_step_done(self, stripped: str, text: str) -> Optional[re.Match]:
        match = _STEP_DONE_PATTERNS[0].match(stripped)
        if match is not None:
            return match
        match = _STEP_DONE_PATTERNS[1].match(stripped)
        if match is not None and match.group("reason") and self._is_assertion_line(stripped):
            # "✓ Passed: status_code: expected 200, got 200" reports a check
            return None
        return match

    def _is_assertion_line(self, stripped: str) -> bool:
        for pattern in _ASSERTION_PATTERNS[:2]:
            match = pattern.match(stripped)
            if match is not None and match.group("path").strip().lower() not in _DONE_WORDS:
                return True
        return False

    def _match_summary(self, stripped: str, text: str) -> Optional[re.Match]:
        return _SUMMARY_PATTERN.match(stripped)

    def _match_request(self, stripped: str, text: str) -> Optional[re.Match]:
        return _REQUEST_PATTERN.match(stripped) or _REQUEST_HEADER_PATTERN.match(stripped)

    def _match_response(self, stripped: str, text: str) -> Optional[re.Match]:
        return (
            _STATUS_PATTERN.search(stripped)
            or _RESPONSE_TIME_PATTERN.search(stripped)
            or _RESPONSE_HEADER_PATTERN.match(stripped)
        )

    def _match_error(self, stripped: str, text: str) -> Optional[re.Match]:
        return _ERROR_PATTERN.match(stripped)

    def _match_assertion(self, stripped: str, text: str) -> Optional[re.Match]:
        if not _ASSERTION_HINT.search(stripped):
            return None
        for pattern in _ASSERTION_PATTERNS:
            match = pattern.match(stripped)
            if match is not None:
                return match
        return None

    def _match_step_id(self, stripped: str, text: str) -> Optional[re.Match]:
        return _STEP_ID_PATTERN.match(stripped)

    def _match_header(self, stripped: str, text: str) -> Optional[re.Match]:
        if self._current is None or self._current.section is None:
            return None
        return _HEADER_PATTERN.match(text)

    def _match_body(self, stripped: str, text: str) -> Optional[re.Match]:
        labelled = _BODY_PREFIX_PATTERN.match(stripped)
        if labelled is not None:
            return labelled
        if self._current is not None and self._current.section is not None and stripped[0] in "{[":
            return _BARE_BODY_PATTERN.match(stripped)
        return None

    def _match_export(self, stripped: str, text: str) -> Optional[re.Match]:
        return _EXPORT_PATTERN.match(stripped)

    def _match_capture(self, stripped: str, text: str) -> Optional[re.Match]:
        for pattern in _CAPTURE_PATTERNS:
            match = pattern.match(stripped)
            if match is not None:
                return match
        return None

    # Handlers

    def _on_step_start(self, match: re.Match) -> None:
        self._transition(_Event.START, match)

    def _on_step_skip(self, match: re.Match) -> None:
        if self._current is not None:
            self._current.skipped = True
            reason = match.group("reason")
            if reason:
                self._current.error = reason.strip()
        self._transition(_Event.CLOSE)

    def _on_step_done(self, match: re.Match) -> None:
        groups = match.groupdict()
        word = (groups.get("word") or "").lower()
        failed = groups.get("mark") in ("✗", "✘") or word in ("failed", "failure")
        if self._current is not None and failed:
            self._current.failed_marker = True
            reason = (groups.get("reason") or "").strip()
            if reason and not self._current.error:
                self._current.error = reason
        self._transition(_Event.CLOSE)

    def _on_summary(self, match: re.Match) -> None:
        self._transition(_Event.CLOSE)

    def _on_request(self, match: re.Match) -> None:
        step = self._current
        if step is None:
            return
        step.section = "request"
        if match.group("method") and match.group("url"):
            step.method = match.group("method")
            step.url = match.group("url").strip()
            step.request_headers = {}
            step.request_body = None

    def _on_response(self, match: re.Match) -> None:
        step = self._current
        if step is None:
            return
        # A response line may carry the status and the timing together
        stripped = match.string
        step.section = "response"
        step.response_seen = True
        status = _STATUS_PATTERN.search(stripped)
        if status is not None:
            step.status_code = int(status.group("code"))
            if status.group("text"):
                step.status_text = status.group("text").strip()
        timing = _RESPONSE_TIME_PATTERN.search(stripped)
        if timing is not None:
            step.response_time_ms = float(timing.group("ms"))

    def _on_error(self, match: re.Match) -> None:
        if self._current is None:
            return
        self._current.section = None
        self._current.error = match.group("message").strip()

    def _on_assertion(self, match: re.Match) -> None:
        step = self._current
        if step is None:
            return
        step.section = None
        groups = match.groupdict()
        mark = groups["mark"]
        if mark[0] in "✓✔" or "PASS" in mark or mark.lower().endswith("passed"):
            passed = True
        elif mark[0] in "✗✘" or "FAIL" in mark or mark.lower().endswith("failed"):
            passed = False
        else:
            passed = "fail" not in match.string.lower()

        rest = groups.get("rest")
        if rest is not None:
            expected_text = actual_text = rest.strip()
        else:
            expected_text = (groups.get("expected") or "").strip()
            actual_text = (groups.get("actual") or "").strip() or expected_text

        expected = parse_value(expected_text) if expected_text else None
        actual = parse_value(actual_text) if actual_text else None
        message = None
        if not passed:
            message = rest.strip() if rest is not None else f"expected {expected_text}, got {actual_text}"

        step.assertions.append(AssertionResult(
            path=groups["path"].strip() or "unknown",
            operator=groups.get("operator") or "equals",
            expected=expected,
            actual=actual,
            passed=passed,
            message=message,
        ))

    def _on_step_id(self, match: re.Match) -> None:
        if self._current is not None:
            self._current.id = match.group("id")

    def _on_header(self, match: re.Match) -> None:
        step = self._current
        name = match.group("name")
        value = match.group("value").strip()
        if step.section == "request":
            step.request_headers[name] = value
        else:
            step.response_headers[name] = value
            if name.lower() == "content-type":
                step.content_type = value

    def _on_body(self, match: re.Match) -> None:
        step = self._current
        if step is None:
            return
        groups = match.groupdict()
        label = (groups.get("label") or "").lower()
        if label.startswith("request"):
            section = "request"
        elif label.startswith("response"):
            section = "response"
        else:
            section = step.section or ("request" if step.method else "response")
        step.section = section

        body = groups["body"]
        if _bracket_depth(body) > 0:
            self._pending_body = _PendingBody(section=section, lines=[body])
            return
        self._assign_body(section, _parse_body(body) if body else None)

    def _on_export(self, match: re.Match) -> None:
        if self._current is None:
            return
        self._current.section = None
        value = match.group("value").strip()
        self._current.exports.append((match.group("name"), parse_value(value)))

    def _on_capture(self, match: re.Match) -> None:
        if self._current is None:
            return
        self._current.section = None
        value_text = match.group("value").strip()
        scope = VariableScope.LOCAL
        expression = None
        # Suffixes may appear in either order
        for _ in range(2):
            scope_match = _SCOPE_SUFFIX.search(value_text)
            if scope_match is not None:
                scope = VariableScope(scope_match.group("scope").lower())
                value_text = value_text[:scope_match.start()]
                continue
            source_match = _SOURCE_SUFFIX.search(value_text)
            if source_match is not None:
                expression = source_match.group("expr").strip()
                value_text = value_text[:source_match.start()]
        value_text = value_text.strip()
        self._current.captured.append(CapturedVariable(
            name=match.group("name"),
            value=parse_value(value_text),
            source_expression=expression or value_text,
            scope=scope,
        ))

    # Multi-line body fragments

    def _interrupts_body(self, stripped: str, text: str) -> bool:
        """True if a line is step output rather than the continuation of a body."""
        matchers = (
            self._match_step_start,
            self._match_step_skip,
            self._match_step_done,
            self._match_summary,
            self._match_request,
            self._match_error,
            self._match_assertion,
            self._match_step_id,
            self._match_export,
        )
        if any(matcher(stripped, text) is not None for matcher in matchers):
            return True
        # Only the labelled capture form; bare "name: value" is valid body text
        return _CAPTURE_PATTERNS[0].match(stripped) is not None

    def _continue_body(self, text: str) -> None:
        pending = self._pending_body
        pending.lines.append(text)
        joined = "\n".join(pending.lines)
        if _bracket_depth(joined) <= 0:
            self._pending_body = None
            self._assign_body(pending.section, _parse_body(joined))
        elif len(pending.lines) >= MAX_BODY_LINES:
            self._flush_pending_body()

    def _flush_pending_body(self) -> None:
        pending = self._pending_body
        self._pending_body = None
        if pending is not None:
            self._assign_body(pending.section, "\n".join(pending.lines).strip())

    def _assign_body(self, section: str, body: Any) -> None:
        step = self._current
        if step is None:
            return
        if section == "request":
            step.request_body = body
        else:
            step.response_seen = True
            step.response_body = body


def _query_params(url: str) -> Dict[str, Any]:
    try:
        query = urlsplit(url).query
    except ValueError:
        return {}
    params = parse_qs(query, keep_blank_values=True)
    return {k: v[0] if len(v) == 1 else v for k, v in params.items()}
