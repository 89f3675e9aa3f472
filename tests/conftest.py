"""Pytest configuration for clamdash."""
import os
import stat
import sys
import textwrap

import pytest


def pytest_configure():
    # Tests must never write ~/.clamdash/clamdash.log.
    os.environ["CLAMDASH_LOG_FILE"] = "false"
    os.environ.setdefault("CLAMDASH_CANCEL_GRACE", "1.0")


CLEAN_SCAN = """
for i in range(100):
    print(f"/tmp/clean/file{i}.txt: OK")
print("/tmp/evil.bin: Test.Signature FOUND")
print("")
print("----------- SCAN SUMMARY -----------")
print("Known viruses: 8708661")
print("Scanned files: 101")
print("Infected files: 1")
print("Time: 0.020 sec (0 m 0 s)")
sys.exit(1)
"""


@pytest.fixture
def clean_scan_script():
    """100 clean files, one detection, a summary block, exit code 1."""
    return CLEAN_SCAN


@pytest.fixture
def fake_tool(tmp_path):
    """Write an executable python script that behaves like a ClamAV tool."""

    def _make(body: str, name: str = "clamscan") -> str:
        path = tmp_path / name
        path.write_text(f"#!{sys.executable}\nimport sys\n" + textwrap.dedent(body))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return _make


@pytest.fixture
def python_child():
    """argv prefix running an inline script with the test interpreter, unbuffered."""

    def _argv(body: str):
        return sys.executable, ["-u", "-c", "import sys\n" + textwrap.dedent(body)]

    return _argv
