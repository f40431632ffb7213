"""Process plumbing for pipesh: redirection, exec and pipelines.

Everything here runs in a forked child of the interactive shell. The
functions rebind the calling process's standard descriptors and end by
replacing its image with ``os.execv``; failures end the process with one of
the EXIT_* codes below and a one-line diagnostic on descriptor 2.
"""
from __future__ import annotations

import os
import stat
import sys
from dataclasses import dataclass
from typing import NoReturn, Optional

from groups import CommandGroup, Operator, is_special, parse_args


EXIT_EXEC_FAILED = 1
EXIT_FORK_FAILED = 2
EXIT_DUP_FAILED = 3
EXIT_PIPE_FAILED = 4
EXIT_OPEN_FAILED = 5
EXIT_SYNTAX_ERROR = 6
EXIT_INTERNAL_ERROR = 7

STDIN_FILENO = 0
STDOUT_FILENO = 1
STDERR_FILENO = 2

# Permission bits for files created by a redirection (owner rwx).
CREATE_MODE = stat.S_IRWXU

_TRUNCATE = os.O_CREAT | os.O_TRUNC | os.O_WRONLY

# operator -> (open flags, descriptors rebound to the opened file)
REDIRECTIONS: dict[Operator, tuple[int, tuple[int, ...]]] = {
    Operator.STDOUT: (_TRUNCATE, (STDOUT_FILENO,)),
    Operator.APPEND: (os.O_CREAT | os.O_APPEND | os.O_WRONLY, (STDOUT_FILENO,)),
    Operator.STDERR: (_TRUNCATE, (STDERR_FILENO,)),
    Operator.STDOUT_AND_STDERR: (_TRUNCATE, (STDOUT_FILENO, STDERR_FILENO)),
    Operator.STDIN: (os.O_RDONLY, (STDIN_FILENO,)),
}


def flush_std() -> None:
    # Python-level buffers must not leak across a fork or a dup2.
    sys.stdout.flush()
    sys.stderr.flush()


def die(code: int, message: str) -> NoReturn:
    """Report on descriptor 2 and end the current process immediately."""
    flush_std()
    try:
        os.write(STDERR_FILENO, f"pipesh: {message}\n".encode(errors="replace"))
    finally:
        os._exit(code)


def fork_or_die() -> int:
    flush_std()
    try:
        return os.fork()
    except OSError as e:
        die(EXIT_FORK_FAILED, f"fork: {e.strerror}")


def pipe_or_die() -> tuple[int, int]:
    try:
        return os.pipe()
    except OSError as e:
        die(EXIT_PIPE_FAILED, f"pipe: {e.strerror}")


def move_fd(fd: int, target: int) -> None:
    """Rebind target to fd, then drop fd."""
    if fd == target:
        return
    try:
        os.dup2(fd, target)
    except OSError as e:
        die(EXIT_DUP_FAILED, f"dup2: {e.strerror}")
    os.close(fd)


# ---- Redirection ----

def redirect(op: Operator, filename: str) -> None:
    """Open filename for op and rebind the matching standard stream(s)."""
    flags, targets = REDIRECTIONS[op]
    try:
        fd = os.open(filename, flags, CREATE_MODE)
    except OSError as e:
        die(EXIT_OPEN_FAILED, f"{filename}: {e.strerror}")
    flush_std()
    for target in targets:
        if fd != target:
            try:
                os.dup2(fd, target)
            except OSError as e:
                die(EXIT_DUP_FAILED, f"dup2: {e.strerror}")
    # open() may hand back a free standard descriptor that is itself a target
    if fd not in targets:
        os.close(fd)


# ---- Launching ----

@dataclass
class LaunchError:
    path: str
    error: OSError

    def __str__(self) -> str:
        return f"{self.path}: {self.error.strerror or self.error}"


def launch(cmd: CommandGroup) -> Optional[LaunchError]:
    """Replace this process with cmd. Only returns when exec fails."""
    flush_std()
    try:
        os.execv(cmd.parts[0], cmd.parts)
    except OSError as e:
        return LaunchError(cmd.parts[0], e)
    return None


def run(cmd: CommandGroup) -> NoReturn:
    if not cmd.parts:
        die(EXIT_SYNTAX_ERROR, "missing command")
    error = launch(cmd)
    die(EXIT_EXEC_FAILED, f"execv: {error}")


# ---- Pipelines ----

def build_pipe(left: CommandGroup, tokens: list[str], i: int) -> tuple[CommandGroup, int]:
    """Fork off left with its stdout on a new pipe; keep the read end here.

    The child never returns. In this process stdin now reads from the pipe,
    and the command starting at tokens[i] is parsed and returned along with
    the advanced cursor.
    """
    read_fd, write_fd = pipe_or_die()
    pid = fork_or_die()
    if pid == 0:
        os.close(read_fd)
        move_fd(write_fd, STDOUT_FILENO)
        run(left)
    os.close(write_fd)
    move_fd(read_fd, STDIN_FILENO)
    return parse_args(tokens, i)


# ---- Line interpretation ----

def interpret_line(tokens: list[str], i: int, cmd: CommandGroup) -> NoReturn:
    """Apply the operators from tokens[i:] to cmd, then exec the last command.

    cmd holds the arguments already extracted in front of tokens[i]. Each
    pipe hands the current command to a forked child and continues here with
    the command on its right.
    """
    while i < len(tokens):
        op = Operator.from_token(tokens[i])
        if op is None:
            die(EXIT_SYNTAX_ERROR, f"unexpected argument '{tokens[i]}'")
        i += 1
        if i >= len(tokens) or is_special(tokens[i]):
            what = "filename" if op.is_redirection else "command"
            die(EXIT_SYNTAX_ERROR, f"missing {what} after '{op.value}'")
        if op is Operator.PIPE:
            cmd, i = build_pipe(cmd, tokens, i)
        else:
            redirect(op, tokens[i])
            i += 1
    run(cmd)
