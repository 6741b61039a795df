# Test configuration for pytest
#
# Tests import the installed package; run `pip install -e ".[test]"` from the
# project root first. Shared fakes live in tests/fakes.py.

import sys
import pytest

IS_WINDOWS = sys.platform.startswith('win')

# marker -> reason to skip on this platform (None means the test can run)
PLATFORM_MARKERS = {
    "unix": "Unix-only test (process groups, killpg)" if IS_WINDOWS else None,
    "windows": None if IS_WINDOWS else "Windows-only test",
}


def pytest_configure(config):
    """Register custom markers for platform-specific tests."""
    config.addinivalue_line("markers", "unix: run only on Unix")
    config.addinivalue_line("markers", "windows: run only on Windows")


def pytest_collection_modifyitems(config, items):
    """Skip platform-specific tests on incompatible platforms."""
    for item in items:
        for marker, reason in PLATFORM_MARKERS.items():
            if reason and marker in item.keywords:
                item.add_marker(pytest.mark.skip(reason=reason))
