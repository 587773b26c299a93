#!/usr/bin/env python
"""
Simple CI Tester for treestatelib
=================================

Tests if your code will pass the CI checks.
Focuses on the critical checks that actually fail in CI.

Usage:
    python scripts/test-ci.py
"""

import subprocess
import sys
from pathlib import Path


def run_command(cmd, description, critical=True):
    """Run a command and return True if it succeeds."""
    print(f"\n[Testing] {description}...")
    print(f"  Command: {' '.join(cmd)}")

    result = subprocess.run(cmd, capture_output=True, text=True, cwd=PROJECT_ROOT)

    if result.returncode == 0:
        print("  PASSED")
        return True
    if critical:
        print("  FAILED - This will fail in CI!")
        output = result.stderr or result.stdout
        if output:
            print(f"  Error: {output[-500:]}")
    else:
        print("  WARNING - Non-critical issue")
    return False


PROJECT_ROOT = Path(__file__).parent.parent


def main():
    print("=" * 60)
    print("CI/CD LOCAL TESTER")
    print("=" * 60)

    all_passed = True

    # Test 1: Can we import the package without optional extras?
    if not run_command([sys.executable, "-c", "import treestatelib"],
                       "Basic import test"):
        print("\n  Fix: Check install_requires in setup.py")
        all_passed = False

    # Test 2: Do the tests run?
    if not run_command([sys.executable, "run_tests.py"],
                       "Run the test suite (what CI runs)"):
        print("\n  Fix: Debug the failing tests")
        all_passed = False

    # Test 3: Any Python syntax errors?
    try:
        import flake8  # noqa: F401
    except ImportError:
        print("\n[Skipped] Flake8 not installed (pip install -e .[dev] to enable)")
    else:
        if not run_command(
            [sys.executable, "-m", "flake8", "treestatelib", "tests",
             "--count", "--select=E9,F63,F7,F82", "--show-source"],
            "Check for Python syntax errors",
        ):
            print("\n  Fix: Fix the syntax errors shown above")
            all_passed = False

    # Test 4: Do the examples still run?
    for example in sorted((PROJECT_ROOT / "examples").glob("*.py")):
        if not run_command([sys.executable, str(example)],
                           f"Run example {example.name}", critical=False):
            all_passed = False

    print("\n" + "=" * 60)
    if all_passed:
        print("SUCCESS: Your code should pass CI!")
    else:
        print("FAILURE: Fix the issues above before pushing")
    print("=" * 60)

    return 0 if all_passed else 1


if __name__ == "__main__":
    sys.exit(main())
