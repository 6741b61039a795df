"""flowwatch: run flow-test suites and turn the engine's output into step results."""

__version__ = "0.1.0"
