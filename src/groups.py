"""Grouping and tokenization utilities for pipesh.

This module defines the operators the shell understands and the data
structure for a single command, plus helpers that turn a raw input line
into tokens and carve plain-argument runs out of a token list.

Operators are recognized by exact token equality only; a token such as
``2>&1`` or ``>>x`` is an ordinary argument.
"""
from __future__ import annotations

from dataclasses import dataclass
import enum
import shlex
from typing import Optional


class Operator(enum.Enum):
    APPEND = ">>"
    STDOUT = ">"
    STDERR = "2>"
    STDOUT_AND_STDERR = "&>"
    STDIN = "<"
    PIPE = "|"

    @classmethod
    def from_token(cls, token: str) -> Optional["Operator"]:
        try:
            return cls(token)
        except ValueError:
            return None

    @property
    def is_redirection(self) -> bool:
        return self is not Operator.PIPE


OPERATORS = frozenset(op.value for op in Operator)


class ParseError(ValueError):
    """Raised for a line that cannot be interpreted (e.g. a trailing operator)."""


@dataclass
class CommandGroup:
    """A simple command with its argv tokens (argv[0] is the program path)."""
    parts: list[str]

    @property
    def name(self) -> Optional[str]:
        return self.parts[0] if self.parts else None


def is_special(token: str) -> bool:
    return token in OPERATORS


# --- Tokenization ---

def tokenize(line: str) -> list[str]:
    """Split an input line into whitespace-separated, shell-quoted tokens.

    Operators must be separated from their neighbours by whitespace, so
    ``a>b`` stays a single argument. Raises ValueError on unbalanced quotes.
    """
    lexer = shlex.shlex(line, posix=True)
    lexer.commenters = ''
    lexer.whitespace_split = True
    return list(lexer)


# --- Grouping ---

def parse_args(tokens: list[str], i: int) -> tuple[CommandGroup, int]:
    """Collect plain tokens from position i up to the next operator.

    Returns the command and the index of the first unconsumed token.
    """
    start = i
    while i < len(tokens) and not is_special(tokens[i]):
        i += 1
    return CommandGroup(tokens[start:i]), i


def check_syntax(tokens: list[str]) -> None:
    """Reject lines the interpreter cannot run, before any process exists."""
    if not tokens:
        return
    if is_special(tokens[0]):
        raise ParseError(f"missing command before '{tokens[0]}'")
    _, i = parse_args(tokens, 0)
    while i < len(tokens):
        op = Operator.from_token(tokens[i])
        if op is None:
            raise ParseError(f"unexpected argument '{tokens[i]}'")
        i += 1
        if i >= len(tokens) or is_special(tokens[i]):
            what = "filename" if op.is_redirection else "command"
            raise ParseError(f"missing {what} after '{op.value}'")
        if op.is_redirection:
            i += 1
        else:
            _, i = parse_args(tokens, i)


# --- Formatting (debug / test aid) ---

def format_groups(tokens: list[str]) -> str:
    lines: list[str] = []
    i = 0
    while i < len(tokens):
        op = Operator.from_token(tokens[i])
        if op is not None:
            lines.append("OP   " + op.value)
            i += 1
            if op.is_redirection and i < len(tokens) and not is_special(tokens[i]):
                lines.append("FILE " + tokens[i])
                i += 1
            continue
        cmd, i = parse_args(tokens, i)
        lines.append("CMD  " + ' '.join(cmd.parts))
    return "\n".join(lines) if lines else "<empty>"
