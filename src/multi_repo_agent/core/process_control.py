"""Process control helpers for git/gh/agent subprocesses and shutdown."""

import platform
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Set, Tuple, Union

from ..errors import CommandError


IS_WINDOWS = platform.system() == "Windows"

_active_processes: Set[subprocess.Popen] = set()
_active_processes_lock = threading.Lock()
_shutdown_event = threading.Event()


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of a short-lived command."""

    argv: Tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def background_subprocess_kwargs() -> Dict[str, Any]:
    """Return subprocess kwargs that hide console windows on Windows."""
    if not IS_WINDOWS:
        return {}

    startupinfo = subprocess.STARTUPINFO()
    startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW
    startupinfo.wShowWindow = subprocess.SW_HIDE
    return {
        "startupinfo": startupinfo,
        "creationflags": subprocess.CREATE_NO_WINDOW,
    }


def start_tracked_process(command, **kwargs) -> subprocess.Popen:
    """Start a subprocess in background mode and track it for shutdown cleanup."""
    popen_kwargs = dict(kwargs)
    for key, value in background_subprocess_kwargs().items():
        popen_kwargs.setdefault(key, value)

    process = subprocess.Popen(command, **popen_kwargs)
    with _active_processes_lock:
        _active_processes.add(process)
    return process


def untrack_process(process: subprocess.Popen) -> None:
    """Remove process from tracked set."""
    with _active_processes_lock:
        _active_processes.discard(process)


def terminate_process(process: subprocess.Popen, timeout: float = 2.0) -> None:
    """Terminate a process (and children on Windows) best-effort."""
    if process.poll() is not None:
        return

    try:
        if IS_WINDOWS:
            subprocess.run(
                ["taskkill", "/F", "/T", "/PID", str(process.pid)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
                **background_subprocess_kwargs(),
            )
        else:
            process.terminate()
    except OSError:
        pass

    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            pass


def terminate_all_tracked_processes() -> None:
    """Terminate all tracked subprocesses best-effort."""
    with _active_processes_lock:
        processes = list(_active_processes)

    for process in processes:
        terminate_process(process)
        untrack_process(process)


def active_process_count() -> int:
    with _active_processes_lock:
        return len(_active_processes)


def request_shutdown() -> None:
    """Signal shutdown and terminate running tracked subprocesses."""
    _shutdown_event.set()
    terminate_all_tracked_processes()


def clear_shutdown_request() -> None:
    """Clear shutdown signal before a new run."""
    _shutdown_event.clear()


def is_shutdown_requested() -> bool:
    """Whether a shutdown (Ctrl+C) was requested for the current run."""
    return _shutdown_event.is_set()


def run_command(
    command: Sequence[str],
    cwd: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
    input_text: Optional[str] = None,
    check: bool = False,
) -> CommandResult:
    """Run an argv-list command to completion and capture its output.

    Arguments are passed straight to ``Popen`` without a shell, so branch
    names and task text never need quoting.
    """
    argv = [str(part) for part in command]
    try:
        process = start_tracked_process(
            argv,
            cwd=str(cwd) if cwd is not None else None,
            stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as exc:
        raise CommandError(argv, 127, reason=str(exc)) from exc

    try:
        stdout, stderr = process.communicate(input=input_text, timeout=timeout)
    except subprocess.TimeoutExpired:
        terminate_process(process)
        raise CommandError(argv, -1, reason=f"timed out after {timeout}s")
    except BaseException:
        terminate_process(process)
        raise
    finally:
        untrack_process(process)

    result = CommandResult(
        argv=tuple(argv),
        returncode=process.returncode,
        stdout=stdout or "",
        stderr=stderr or "",
    )
    if check and not result.ok:
        raise CommandError(argv, result.returncode, result.stderr)
    return result
