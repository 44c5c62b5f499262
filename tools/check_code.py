#!/usr/bin/env python3
"""
Ruff + Black + MyPy code quality checker.

Runs ruff linting, black formatting, then mypy type checking with fail-fast
behavior. Exits immediately on first failure.
"""

import subprocess
import sys


_PATHS = ["src/s3wire/", "tools/", "tests/"]


def _run(label: str, command: list[str]) -> int:
    print(f"🔍 Running {label}...")
    result = subprocess.run(command, check=False)
    if result.returncode != 0:
        print(f"❌ {label} failed with exit code {result.returncode}")
        return result.returncode
    print(f"✅ {label} passed!\n")
    return 0


def main() -> int:
    """Run ruff, black and mypy with fail-fast."""
    steps = [
        ("Ruff linter", ["poetry", "run", "ruff", "check", "--fix", *_PATHS]),
        ("Black formatter", ["poetry", "run", "black", *_PATHS]),
        # Paths match pyproject.toml [tool.mypy] files configuration
        ("MyPy type checker", ["poetry", "run", "mypy", "src/s3wire", "tests", "tools"]),
    ]
    for label, command in steps:
        status = _run(label, command)
        if status != 0:
            return status

    print("🎉 All code quality checks passed!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
