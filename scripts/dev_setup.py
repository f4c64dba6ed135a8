#!/usr/bin/env python3
"""Development setup for the CommunityOps engine.

Installs the package in editable mode with its test extra, checks that it
imports and runs the unit test suite.

Usage:
    python scripts/dev_setup.py [--skip-tests]
"""

import subprocess
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
MIN_PYTHON = (3, 11)


def run_command(cmd: list[str]) -> tuple[int, str]:
    """Run a command from the project root and return exit code and output."""
    result = subprocess.run(
        cmd,
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        check=False,
    )
    return result.returncode, result.stdout + result.stderr


def check_python_version() -> bool:
    version = sys.version_info
    found = f"{version.major}.{version.minor}.{version.micro}"
    if version[:2] >= MIN_PYTHON:
        print(f"✓ Python {found} detected")
        return True
    print(f"✗ Python {found} detected (need {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+)")
    return False


def check_venv() -> None:
    if sys.base_prefix != sys.prefix:
        print("✓ Virtual environment is active")
    else:
        print("⚠ Virtual environment not detected (recommended but not required)")


def install_package() -> bool:
    print("\n📦 Installing communityops-engine with test extras...")
    if not (PROJECT_ROOT / "pyproject.toml").exists():
        print("✗ Error: pyproject.toml not found at the project root")
        return False

    code, output = run_command([sys.executable, "-m", "pip", "install", "-e", ".[test,dev]"])
    if code != 0:
        print(f"✗ Error installing package:\n{output[-1000:]}")
        return False
    print("✓ Package installed")
    return True


def verify_installation() -> bool:
    print("\n🔍 Verifying installation...")
    code, output = run_command(
        [sys.executable, "-c", "from communityops.engine import CommunityOpsEngine"]
    )
    if code != 0:
        print(f"✗ Import failed: {output.strip()}")
        return False
    print("✓ Imports successful")
    return True


def run_unit_tests() -> bool:
    print("\n🧪 Running unit tests...")
    code, output = run_command(
        [sys.executable, "-m", "pytest", "packages/core/tests/unit", "-q", "--tb=short"]
    )
    if code == 0:
        print("✓ Tests passed!")
        return True
    print("⚠ Some tests failed")
    print(output[-2000:])
    return False


def main() -> None:
    print("=" * 60)
    print("CommunityOps Engine Development Setup")
    print("=" * 60)

    print("\n📋 Checking prerequisites...")
    if not check_python_version():
        sys.exit(1)
    check_venv()

    if not install_package() or not verify_installation():
        sys.exit(1)

    if "--skip-tests" not in sys.argv[1:] and not run_unit_tests():
        sys.exit(1)

    print("\n" + "=" * 60)
    print("✅ Setup complete!")
    print("=" * 60)
    print("\nNext steps:")
    print("1. Run all tests: pytest")
    print("2. Try the walkthrough: python docs/examples/basic-usage.py")


if __name__ == "__main__":
    main()
