"""Tests for hashtree.shell."""

import logging
import sys

import pytest

from hashtree.shell import call_cont, run_stderr


def _py(code):
    return [sys.executable, "-c", code]


class TestRunStderr:
    def test_exit_code(self):
        assert run_stderr(_py("raise SystemExit(3)")) == 3

    def test_logs_stderr(self, caplog):
        with caplog.at_level(logging.WARNING, logger="hashtree.shell"):
            rc = run_stderr(_py("import sys; sys.stderr.write('oops')"))
        assert rc == 0
        assert "oops" in caplog.text

    def test_quiet_command_logs_nothing(self, caplog):
        with caplog.at_level(logging.WARNING, logger="hashtree.shell"):
            run_stderr(_py("pass"))
        assert caplog.records == []


class TestCallCont:
    def test_streams_stdout(self):
        seen = []
        rc = call_cont(_py("print('hello'); print('world')"), lambda out: seen.append(out.read()))
        assert rc == 0
        assert seen[0].split() == [b"hello", b"world"]

    def test_stderr_is_not_fatal(self, caplog):
        with caplog.at_level(logging.WARNING, logger="hashtree.shell"):
            rc = call_cont(
                _py("import sys; print('out'); sys.stderr.write('warn')"),
                lambda out: out.read(),
            )
        assert rc == 0
        assert "warn" in caplog.text

    def test_returns_exit_code(self):
        assert call_cont(_py("raise SystemExit(5)"), lambda out: out.read()) == 5

    def test_consumer_error_aborts(self):
        def cont(out):
            out.readline()
            raise ValueError("stop")

        with pytest.raises(ValueError, match="stop"):
            call_cont(_py("import time; print('x', flush=True); time.sleep(30)"), cont)
