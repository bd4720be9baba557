"""Root conftest.py for the benchlink monorepo.

Puts every package's ``src`` directory on ``sys.path``, registers the
shared markers and tags tests that rely on ``unittest.mock`` so coverage
from mocked tests can be told apart from coverage earned against the
emulators.
"""

from __future__ import annotations

import ast
import inspect
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.nodes import Item


PROJECT_ROOT = Path(__file__).parent
for pkg_dir in sorted(PROJECT_ROOT.glob("benchlink-*/src")):
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))


def pytest_configure(config: Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "uses_mock: Test uses mocking (auto-detected)")
    config.addinivalue_line("markers", "integration: Test needs a real instrument")
    config.addinivalue_line("markers", "slow: Slow-running test")


class MockDetector(ast.NodeVisitor):
    """AST visitor that spots mock objects in a test function."""

    MOCK_NAMES = frozenset(
        {"MagicMock", "Mock", "patch", "create_autospec", "PropertyMock", "mocker"}
    )

    def __init__(self) -> None:
        self.uses_mock = False

    def visit_Name(self, node: ast.Name) -> None:
        if node.id in self.MOCK_NAMES:
            self.uses_mock = True
        self.generic_visit(node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        # patch.dict(...), patch.object(...)
        if node.attr in self.MOCK_NAMES:
            self.uses_mock = True
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        if any("mock" in arg.arg.lower() for arg in node.args.args):
            self.uses_mock = True
        self.generic_visit(node)


def _uses_mock(item: Item) -> bool:
    if "mock" in item.name.lower():
        return True
    obj = getattr(item, "obj", None)
    if obj is None:
        return False
    try:
        source = inspect.getsource(obj)
    except (OSError, TypeError):
        return False
    try:
        tree = ast.parse(textwrap.dedent(source))
    except SyntaxError:
        return False
    detector = MockDetector()
    detector.visit(tree)
    return detector.uses_mock


def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Mark tests that use mocking with ``uses_mock``."""
    for item in items:
        if item.get_closest_marker("uses_mock") is None and _uses_mock(item):
            item.add_marker(pytest.mark.uses_mock)


def pytest_report_header(config: Config) -> list[str]:
    """Add a suite banner and the coverage mode to the pytest header."""
    lines = ["benchlink monorepo test suite"]
    if getattr(config.option, "cov_source", None):
        lines.append("Coverage: enabled with mock detection")
    return lines
