"""Render a parsed request as a curl command line."""

import json
import shlex
from typing import List

from .models import RequestDetails


def to_curl(request: RequestDetails) -> str:
    """Build a copy-pasteable curl command for a request.

    GET requests omit the -X flag. Structured bodies are serialised as compact
    JSON; string bodies are passed through unchanged.

    Args:
        request: The request to render

    Returns:
        A multi-line curl command joined with backslash continuations
    """
    parts: List[str] = [f"curl {shlex.quote(request.url)}"]

    if request.method.upper() != "GET":
        parts.append(f"-X {request.method.upper()}")

    for name, value in request.headers.items():
        parts.append(f"-H {shlex.quote(f'{name}: {value}')}")

    if request.body is not None:
        if isinstance(request.body, str):
            data = request.body
        else:
            data = json.dumps(request.body, separators=(",", ":"))
        parts.append(f"--data-raw {shlex.quote(data)}")

    return " \\\n  ".join(parts)
