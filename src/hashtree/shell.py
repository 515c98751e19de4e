"""Run external commands, streaming stdout to a caller and logging stderr.

Used to feed command output (e.g. a block-storage client) into tree
builders.  Anything a command writes to stderr is logged as a warning and
never treated as a failure; the exit code is returned unchanged.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from typing import IO, Callable, Sequence

logger = logging.getLogger(__name__)


def _log_stderr(args: Sequence[str], stderr: bytes) -> None:
    if stderr:
        logger.warning(
            "Command had output on stderr.\n Cmd: %s\nstderr: %s",
            " ".join(args), stderr.decode(errors="replace"),
        )


def run_stderr(args: Sequence[str], **popen_kwargs) -> int:
    """Run *args* to completion, logging its stderr; return the exit code."""
    proc = subprocess.Popen(args, stderr=subprocess.PIPE, **popen_kwargs)
    _out, err = proc.communicate()
    _log_stderr(args, err)
    return proc.returncode


def call_cont(
    args: Sequence[str],
    cont: Callable[[IO[bytes]], object],
    **popen_kwargs,
) -> int:
    """Run *args*, passing its stdout stream to *cont*; return the exit code.

    If *cont* raises, the process is killed and the exception propagates.
    stderr is drained on a background thread so a chatty command cannot
    block on a full pipe while *cont* reads stdout.
    """
    with subprocess.Popen(
        args, stdout=subprocess.PIPE, stderr=subprocess.PIPE, **popen_kwargs
    ) as proc:
        chunks: list[bytes] = []
        reader = threading.Thread(target=lambda: chunks.append(proc.stderr.read()), daemon=True)
        reader.start()
        try:
            cont(proc.stdout)
        except BaseException:
            proc.kill()
            reader.join()
            raise
        finally:
            proc.stdout.close()
        returncode = proc.wait()
        reader.join()
    _log_stderr(args, b"".join(chunks))
    return returncode
