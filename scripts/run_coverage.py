#!/usr/bin/env python3
"""Coverage runner for benchlink.

Runs each package's unit tests under pytest-cov, combines the data and
reports which lines are covered only by tests that use ``unittest.mock``
(the ``uses_mock`` marker set by the root conftest). Those lines have not
been exercised against an emulator and are candidates for emulator-backed
tests.

Usage:
    # Run all unit tests with coverage
    python scripts/run_coverage.py

    # Run specific packages
    python scripts/run_coverage.py --package benchlink-scpi --package benchlink-prologix

    # Report mock-only coverage from the last run
    python scripts/run_coverage.py --skip-tests --analyze-mocks
"""

from __future__ import annotations

import argparse
import json
import os
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
COVERAGE_DIR = PROJECT_ROOT / "coverage"

PACKAGES = [
    "benchlink-core",
    "benchlink-scpi",
    "benchlink-prologix",
    "benchlink-drivers",
    "benchlink-sim",
    "benchlink-bench",
]

# Context substrings of tests considered mocked.
MOCK_CONTEXT_PATTERNS = ("mock", "Mock", "patch")


@dataclass
class CoverageStats:
    """Coverage totals with the mock-only share."""

    total_lines: int = 0
    covered_lines: int = 0
    mocked_only_lines: int = 0
    files: dict[str, tuple[int, int, int]] = field(default_factory=dict)

    @property
    def coverage_percent(self) -> float:
        if self.total_lines == 0:
            return 100.0
        return self.covered_lines / self.total_lines * 100

    @property
    def mocked_only_percent(self) -> float:
        if self.covered_lines == 0:
            return 0.0
        return self.mocked_only_lines / self.covered_lines * 100


def _coverage(args: list[str], data_file: Path) -> None:
    env = dict(os.environ, COVERAGE_FILE=str(data_file))
    cmd = [sys.executable, "-m", "coverage", *args]
    subprocess.run(cmd, cwd=PROJECT_ROOT, env=env, check=False)


def run_pytest_with_coverage(packages: list[str], verbose: bool = True) -> int:
    """Run each package's tests with coverage, then combine and report.

    Packages run in separate pytest processes so each collects coverage
    for its own ``src`` tree.

    Returns:
        0 if all tests passed, 1 otherwise.
    """
    COVERAGE_DIR.mkdir(exist_ok=True)
    all_passed = True
    data_files: list[Path] = []

    for pkg in packages:
        pkg_path = PROJECT_ROOT / pkg
        test_path = pkg_path / "tests" / "unit"
        if not test_path.exists():
            print(f"Skipping {pkg}: no tests/unit directory")
            continue

        print(f"\n{'=' * 60}\nTesting: {pkg}\n{'=' * 60}")
        data_file = COVERAGE_DIR / f".coverage.{pkg}"
        data_files.append(data_file)
        cmd = [
            sys.executable,
            "-m",
            "pytest",
            f"--cov={pkg_path / 'src'}",
            "--cov-report=",
            "--cov-context=test",
            str(test_path),
        ]
        if verbose:
            cmd.append("-v")
        env = dict(os.environ, COVERAGE_FILE=str(data_file))
        if subprocess.run(cmd, cwd=PROJECT_ROOT, env=env, check=False).returncode != 0:
            all_passed = False

    existing = [str(f) for f in data_files if f.exists()]
    if existing:
        combined = COVERAGE_DIR / ".coverage"
        _coverage(["combine", "--keep", *existing], combined)
        _coverage(["report", "--show-missing"], combined)
        _coverage(["html", "-d", str(COVERAGE_DIR / "html")], combined)
        _coverage(["json", "--show-contexts", "-o", str(COVERAGE_DIR / "coverage.json")], combined)
        print(f"\nCoverage HTML report: {COVERAGE_DIR / 'html' / 'index.html'}")

    return 0 if all_passed else 1


def analyze_mocked_coverage() -> CoverageStats:
    """Count lines covered only by mocked tests in the combined JSON report."""
    coverage_json = COVERAGE_DIR / "coverage.json"
    stats = CoverageStats()
    if not coverage_json.exists():
        print(f"Coverage data not found at {coverage_json}; run without --skip-tests first")
        return stats

    with open(coverage_json, encoding="utf-8") as f:
        data = json.load(f)

    for filename, file_data in data.get("files", {}).items():
        if "/tests/" in filename:
            continue
        covered = len(file_data.get("executed_lines", []))
        total = covered + len(file_data.get("missing_lines", []))
        mocked_only = sum(
            1
            for contexts in file_data.get("contexts", {}).values()
            if contexts
            and all(any(p in ctx for p in MOCK_CONTEXT_PATTERNS) for ctx in contexts)
        )
        stats.total_lines += total
        stats.covered_lines += covered
        stats.mocked_only_lines += mocked_only
        stats.files[filename.replace(f"{PROJECT_ROOT}/", "")] = (total, covered, mocked_only)

    return stats


def print_mock_analysis(stats: CoverageStats) -> None:
    """Print totals and the files with the most mock-only lines."""
    print(f"\n{'=' * 80}\nMOCK COVERAGE ANALYSIS\n{'=' * 80}")
    print(f"Total lines:           {stats.total_lines:,}")
    print(f"Covered lines:         {stats.covered_lines:,} ({stats.coverage_percent:.1f}%)")
    print(
        f"Covered by mocks only: {stats.mocked_only_lines:,} "
        f"({stats.mocked_only_percent:.1f}% of covered)"
    )
    ranked = sorted(stats.files.items(), key=lambda item: item[1][2], reverse=True)
    for filename, (total, covered, mocked_only) in ranked[:20]:
        if mocked_only:
            print(f"  {filename}: {mocked_only} lines mock-only ({covered}/{total} covered)")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run coverage and analyze mock usage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--package",
        "-p",
        action="append",
        dest="packages",
        choices=PACKAGES,
        help="Package(s) to test (repeatable)",
    )
    parser.add_argument(
        "--analyze-mocks", "-m", action="store_true", help="Report mock-only coverage"
    )
    parser.add_argument(
        "--skip-tests", action="store_true", help="Only analyze existing coverage data"
    )
    parser.add_argument("--quiet", "-q", action="store_true", help="Minimal output")
    args = parser.parse_args()

    exit_code = 0
    if not args.skip_tests:
        exit_code = run_pytest_with_coverage(args.packages or PACKAGES, verbose=not args.quiet)
    if args.analyze_mocks or args.skip_tests:
        print_mock_analysis(analyze_mocked_coverage())
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
