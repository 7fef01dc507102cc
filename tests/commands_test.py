import sys

import pytest

from brewlot import commands
from brewlot.build_log import BuildLog
from brewlot.commands import CommandFailedError
from brewlot.commands import ExecuteCommand
from brewlot.commands import Retry


def test_output_is_streamed_and_returned(tmp_path):
    cmd = [sys.executable, "-c", "print('hello'); import sys; print('oops', file=sys.stderr)"]
    with BuildLog("test") as log:
        out = ExecuteCommand(cmd, working_directory=tmp_path, output=log)()
    assert "hello\n" in out
    assert "oops\n" in out
    assert "hello\n" in log.text
    assert log.text.splitlines()[1].startswith("+ ")


def test_failure_carries_output():
    cmd = [sys.executable, "-c", "print('bad things'); raise SystemExit(3)"]
    with pytest.raises(CommandFailedError) as excinfo:
        ExecuteCommand(cmd)()
    assert excinfo.value.return_code == 3
    assert "bad things" in excinfo.value.output


def test_missing_binary():
    with pytest.raises(CommandFailedError):
        ExecuteCommand(["definitely-not-a-real-binary-brewlot"])()


class Flaky(commands.Work):

    def __init__(self, failures):
        self.failures = failures
        self.calls = 0

    def __str__(self):
        return "flaky"

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise CommandFailedError(["flaky"], 1, "")
        return "done"


def test_retry(monkeypatch):
    sleeps = []
    monkeypatch.setattr(commands.time, "sleep", sleeps.append)
    work = Flaky(failures=2)
    assert Retry(work, attempts=3)() == "done"
    assert work.calls == 3
    assert sleeps == [5, 20]


def test_retry_gives_up(monkeypatch):
    monkeypatch.setattr(commands.time, "sleep", lambda s: None)
    work = Flaky(failures=5)
    with pytest.raises(CommandFailedError):
        Retry(work, attempts=2)()
    assert work.calls == 2
