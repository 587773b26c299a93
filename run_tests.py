#!/usr/bin/env python
"""
Simple Test Runner for treestatelib
===================================

Runs the test suite with short tracebacks and the slowest tests listed.

Usage:
    python run_tests.py           # Run all tests
    python run_tests.py --cov     # Run with a coverage report (pytest-cov)
    python run_tests.py -k search # Pass a keyword filter through to pytest
"""

import subprocess
import sys
import argparse
from pathlib import Path


def run_tests(coverage=False, keyword=None):
    """Run the test suite."""
    cmd = [
        sys.executable, "-m", "pytest",
        "tests",
        "--tb=short",               # Short traceback format
        "--durations=10",           # Show 10 slowest tests
        "-v"                        # Verbose output
    ]

    if coverage:
        cmd.extend(["--cov=treestatelib", "--cov-report=term-missing"])
    if keyword:
        cmd.extend(["-k", keyword])

    print("Running treestatelib tests...")
    print("=" * 60)

    result = subprocess.run(cmd, cwd=Path(__file__).parent)
    return result.returncode


def main():
    parser = argparse.ArgumentParser(description="Run treestatelib tests")
    parser.add_argument("--cov", action="store_true",
                        help="Collect coverage for the treestatelib package")
    parser.add_argument("-k", dest="keyword",
                        help="Only run tests matching the given expression")
    args = parser.parse_args()

    return run_tests(coverage=args.cov, keyword=args.keyword)


if __name__ == "__main__":
    sys.exit(main())
