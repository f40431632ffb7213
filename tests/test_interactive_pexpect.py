#!/usr/bin/env python3
"""Interactive loop tests driven through a pty with pexpect"""

import shutil
import sys
import time
from pathlib import Path

import pytest

pexpect = pytest.importorskip("pexpect")

ROOT = Path(__file__).resolve().parent.parent
PIPESH = ROOT / "src" / "pipesh.py"
PROMPT_RE = r"\(\d+\) \$ "


@pytest.fixture()
def child(tmp_path):
    proc = pexpect.spawn(sys.executable, [str(PIPESH)], timeout=10, cwd=str(tmp_path), encoding="utf-8")
    proc.expect(PROMPT_RE)
    yield proc
    if proc.isalive():
        proc.terminate(force=True)


def program(name):
    path = shutil.which(name)
    if path is None:
        pytest.skip(f"{name} not available")
    return path


class TestInteractiveLoop:

    def test_prompt_shows_shell_pid(self, child):
        child.sendline(program("true"))
        child.expect(r"Child \d+ exited with status 0")
        child.expect(r"\((\d+)\) \$ ")
        assert int(child.match.group(1)) == child.pid
        child.sendline("exit")
        child.expect(pexpect.EOF)

    def test_command_output_and_status(self, child):
        child.sendline(f"{program('echo')} hello from pipesh")
        child.expect("hello from pipesh")
        child.expect("exited with status 0")
        child.expect(PROMPT_RE)
        child.sendline("exit")
        child.expect(pexpect.EOF)
        child.close()
        assert child.exitstatus == 0

    def test_pipeline(self, child, tmp_path):
        (tmp_path / "in.txt").write_text("x\ny\n")
        child.sendline(f"{program('cat')} < in.txt | {program('wc')} -l")
        child.expect(r"\n\s*2\r?\n")
        child.expect("exited with status 0")
        child.sendline("exit")
        child.expect(pexpect.EOF)

    def test_ctrl_c_interrupts_foreground_command(self, child):
        child.sendline(f"{program('sleep')} 100")
        time.sleep(0.5)
        child.sendintr()
        child.expect("terminated by signal SIGINT")
        child.expect(PROMPT_RE)
        # the shell itself survives the interrupt
        child.sendline("exit")
        child.expect(pexpect.EOF)
        child.close()
        assert child.exitstatus == 0

    def test_syntax_error_keeps_shell_alive(self, child):
        child.sendline(f"{program('echo')} hi |")
        child.expect("syntax error: missing command after '\\|'")
        child.expect(PROMPT_RE)
        child.sendline("exit")
        child.expect(pexpect.EOF)

    def test_ctrl_d_exits(self, child):
        child.sendeof()
        child.expect(pexpect.EOF)
        child.close()
        assert child.exitstatus == 0
