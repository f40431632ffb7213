# module for command execution

from __future__ import annotations

import os
import signal
import sys
from dataclasses import dataclass
from typing import Callable, NoReturn, Optional

import ops
from groups import CommandGroup, check_syntax, parse_args, tokenize


NO_CHILD = 0

# Pid of the child the shell is currently waiting on. Written only by
# execute_tokens, read only by relay_interrupt.
_foreground_pid: int = NO_CHILD


def foreground_pid() -> int:
    return _foreground_pid


def relay_interrupt(signum: int, frame) -> None:
    pid = _foreground_pid
    if pid != NO_CHILD:
        try:
            os.kill(pid, signum)
        except ProcessLookupError:
            pass


def install_signal_relay():
    """Forward SIGINT to the foreground child; returns the previous handler."""
    return signal.signal(signal.SIGINT, relay_interrupt)


@dataclass
class ChildStatus:
    pid: int
    exit_code: Optional[int] = None
    term_signal: Optional[int] = None

    @classmethod
    def from_wait_status(cls, pid: int, status: int) -> "ChildStatus":
        if os.WIFSIGNALED(status):
            return cls(pid, term_signal=os.WTERMSIG(status))
        return cls(pid, exit_code=os.WEXITSTATUS(status))

    @property
    def returncode(self) -> int:
        if self.term_signal is not None:
            return 128 + self.term_signal
        return self.exit_code or 0

    def describe(self) -> str:
        if self.term_signal is not None:
            try:
                name = signal.Signals(self.term_signal).name
            except ValueError:
                name = str(self.term_signal)
            return f"Child {self.pid} terminated by signal {name}"
        return f"Child {self.pid} exited with status {self.exit_code}"


class ShellSession:
    """Holds session-wide shell context."""

    def __init__(self, report_status: bool = True) -> None:
        self.report_status = report_status
        self.last_status: Optional[ChildStatus] = None


# --- Built-in commands ---

def do_ls(args: list[str]) -> int:
    target = args[1] if len(args) > 1 else "."
    try:
        names = os.listdir(target)
    except OSError as e:
        sys.stderr.write(f"pipesh: ls: {target}: {e.strerror}\n")
        sys.stderr.flush()
        return 1
    for name in [".", ".."] + names:
        print(name)
    sys.stdout.flush()
    return 0


def do_rm(args: list[str]) -> int:
    if len(args) < 2:
        print("rm: no file specified")
        return 1
    rc = 0
    for path in args[1:]:
        try:
            os.unlink(path)
        except OSError as e:
            sys.stderr.write(f"pipesh: rm: {path}: {e.strerror}\n")
            sys.stderr.flush()
            rc = 1
    return rc


builtin_commands: dict[str, Callable[[list[str]], int]] = {
    "ls": do_ls,
    "rm": do_rm,
}


# --- Supervision ---

def wait_for(pid: int) -> ChildStatus:
    """Block until pid has exited or been killed; stops are waited through."""
    while True:
        _, status = os.waitpid(pid, os.WUNTRACED)
        if os.WIFEXITED(status) or os.WIFSIGNALED(status):
            return ChildStatus.from_wait_status(pid, status)


def restore_child_signals() -> None:
    """Give a forked child the default dispositions exec'd programs expect.

    SIGINT carries the relay handler; Python ignores SIGPIPE (and SIGXFSZ)
    at startup, and an ignored signal stays ignored across execv.
    """
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    signal.signal(signal.SIGPIPE, signal.SIG_DFL)
    if hasattr(signal, "SIGXFSZ"):
        signal.signal(signal.SIGXFSZ, signal.SIG_DFL)


def _child_main(tokens: list[str], i: int, cmd: CommandGroup) -> NoReturn:
    # Must never return into the shell's own code.
    try:
        restore_child_signals()
        ops.interpret_line(tokens, i, cmd)
    except BaseException as e:
        ops.die(ops.EXIT_INTERNAL_ERROR, f"internal error: {e!r}")


def execute_tokens(tokens: list[str], session: ShellSession) -> int:
    """Run one tokenized line and return its exit code.

    Raises groups.ParseError for malformed lines; nothing is forked then.
    """
    global _foreground_pid
    if not tokens:
        return 0
    check_syntax(tokens)
    cmd, i = parse_args(tokens, 0)

    builtin = builtin_commands.get(cmd.name)
    if builtin is not None:
        if i < len(tokens):
            sys.stderr.write(f"pipesh: {cmd.name}: redirection and pipes are not supported for built-in commands\n")
            sys.stderr.flush()
        return builtin(cmd.parts)

    pid = ops.fork_or_die()
    if pid == 0:
        _child_main(tokens, i, cmd)
    _foreground_pid = pid
    try:
        status = wait_for(pid)
    finally:
        _foreground_pid = NO_CHILD

    session.last_status = status
    if session.report_status:
        print(status.describe())
        sys.stdout.flush()
    return status.returncode


def execute_line(line: str, session: ShellSession) -> int:
    return execute_tokens(tokenize(line), session)
