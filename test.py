#!/usr/bin/env python3
"""
hlspresso test runner.

Usage:
    python test.py              # Run all tests
    python test.py quick        # Skip slow tests (no ffmpeg needed)
    python test.py e2e          # Only the end-to-end ffmpeg tests
    python test.py verbose      # Show test output
    python test.py failed       # Re-run failed tests
    python test.py <module>     # tests/test_<module>.py, or a -k filter
"""

import os
import subprocess
import sys


def build_command(args):
    cmd = [sys.executable, "-m", "pytest", "tests/"]

    if not args:
        cmd.extend(["-v", "--tb=short"])
        print("[TEST] Running all tests...\n")
    elif "quick" in args:
        cmd.extend(["-v", "--tb=short", "-m", "not slow"])
        print("[QUICK] Running quick tests (skipping slow)...\n")
    elif "e2e" in args:
        cmd.extend(["-v", "--tb=short", "-m", "requires_ffmpeg"])
        print("[E2E] Running ffmpeg end-to-end tests...\n")
    elif "verbose" in args:
        cmd.extend(["-v", "-s", "--tb=long"])
        print("[VERBOSE] Running tests with verbose output...\n")
    elif "failed" in args:
        cmd.extend(["--lf", "-v"])
        print("[RETRY] Re-running failed tests...\n")
    else:
        module = args[0]
        test_file = f"tests/test_{module}.py"
        if os.path.exists(test_file):
            cmd = [sys.executable, "-m", "pytest", test_file, "-v", "--tb=short"]
            print(f"[MODULE] Running tests for {module}...\n")
        else:
            cmd.extend(["-v", "--tb=short", "-k", module])
            print(f"[FILTER] Running tests matching '{module}'...\n")

    return cmd


def main():
    os.chdir(os.path.dirname(os.path.abspath(__file__)))
    cmd = build_command(sys.argv[1:])

    try:
        result = subprocess.run(cmd)
    except KeyboardInterrupt:
        print("\n\n[ABORT] Tests interrupted by user")
        return 1

    print("\n" + "=" * 60)
    if result.returncode == 0:
        print("[PASS] All tests passed!")
    else:
        print(f"[FAIL] Tests failed (exit code: {result.returncode})")
    print("=" * 60)

    return result.returncode


if __name__ == "__main__":
    sys.exit(main())
