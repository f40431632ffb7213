#!/usr/bin/env python3

# Entry of pipesh

from __future__ import annotations

import argparse
import os
import signal
import sys
from typing import Optional

try:
    import readline  # type: ignore
except Exception:  # pragma: no cover - fallback when readline unavailable
    readline = None

READLINE_ACTIVE = bool(readline)

PROMPT = "({pid}) $ "
EXIT_KEYWORD = "exit"

from command import ShellSession, execute_tokens, install_signal_relay  # local modules in the same folder
from groups import format_groups, tokenize


def format_prompt(template: str) -> str:
    cwd = os.path.basename(os.getcwd()) or "/"
    return template.format(pid=os.getpid(), cwd=cwd)


def get_prompt_template(override: Optional[str] = None) -> str:
    """Prompt from the command line, then $PIPESH_PROMPT, then the default."""
    if override:
        return override
    return os.environ.get("PIPESH_PROMPT") or PROMPT


def setup_readline() -> None:
    if not READLINE_ACTIVE or not sys.stdin.isatty():
        return
    try:
        readline.parse_and_bind("set editing-mode emacs")
        readline.parse_and_bind("Control-l: clear-screen")
    except Exception:
        pass


def repl(prompt: Optional[str] = None, report_status: bool = True, dry_run: bool = False) -> int:
    template = get_prompt_template(prompt)
    session = ShellSession(report_status=report_status)

    setup_readline()
    previous = install_signal_relay()
    try:
        while True:
            try:
                line = input(format_prompt(template))
            except EOFError:
                # Ctrl-D -> exit
                print()
                break

            try:
                tokens = tokenize(line)
            except ValueError as e:
                print(f"pipesh: syntax error: {e}", file=sys.stderr)
                continue

            if not tokens:
                continue
            if tokens[0] == EXIT_KEYWORD:
                break
            if dry_run:
                print(format_groups(tokens))
                continue

            try:
                execute_tokens(tokens, session)
            except ValueError as e:
                print(f"pipesh: syntax error: {e}", file=sys.stderr)
    finally:
        signal.signal(signal.SIGINT, previous)
    return 0


def parse_args(args=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="pipesh - a small shell with pipes and redirection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pipesh                        # Interactive shell
  pipesh -q                     # Do not report child exit status
  pipesh --prompt '{cwd} $ '    # Custom prompt ({pid} and {cwd} are expanded)

Programs must be given by absolute path, e.g. /bin/ls -l | /usr/bin/wc -l
Operators: >  >>  <  2>  &>  |   (separate them with spaces)
"""
    )

    parser.add_argument(
        "--prompt", "-p",
        metavar="TEMPLATE",
        help="Prompt template; {pid} and {cwd} are expanded (default: $PIPESH_PROMPT or '({pid}) $ ')",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Do not print the exit status of each command",
    )
    parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="Print how each line is grouped instead of running it",
    )

    return parser.parse_args(args)


def main() -> None:
    args = parse_args()
    sys.exit(repl(prompt=args.prompt, report_status=not args.quiet, dry_run=args.dry_run))


if __name__ == "__main__":
    main()
