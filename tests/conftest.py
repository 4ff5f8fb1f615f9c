# tests/conftest.py
import os
import sys

import pytest

# Ensure repository root is on PYTHONPATH for tests
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)


def pytest_addoption(parser: pytest.Parser) -> None:
    """--unit-only: run module-level tests and skip end-to-end conversion suites."""
    parser.addoption(
        "--unit-only",
        action="store_true",
        default=False,
        help="Skip tests marked integration (full conversions and CLI runs).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if not config.getoption("--unit-only"):
        return

    skip_marker = pytest.mark.skip(reason="skipped by --unit-only")
    for item in items:
        if item.get_closest_marker("integration") is not None:
            item.add_marker(skip_marker)
