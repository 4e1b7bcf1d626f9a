#!/usr/bin/env python3
"""
Launch a local ring of node processes and print the master's result.

Relays are started first; the master is only started once every relay has
reported that it is listening, so no node ever connects to a closed port.

Usage:
    python scripts/run_ring.py --term 3,4 --term 5,2
    python scripts/run_ring.py --term 2,3 --term 4,1 --term 0,5 --base-port 7100
    python scripts/run_ring.py --term 3,4 --term 5,2 --key-length 1024 --json-logs
"""

import argparse
import os
import queue
import subprocess
import sys
import threading
import time
from typing import List, Optional, Tuple

READY_MARKER = "Listening on"
RESULT_PREFIX = "The result is"


def parse_term(value: str) -> Tuple[int, int]:
    try:
        add_text, mul_text = value.split(",")
        return int(add_text), int(mul_text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Term '{value}' must look like ADD,MUL") from exc


class OutputPump(threading.Thread):
    """Echo a child's output with a prefix and queue each line for inspection."""

    def __init__(self, name: str, proc: subprocess.Popen) -> None:
        super().__init__(name=f"pump-{name}", daemon=True)
        self.label = name
        self.proc = proc
        self.lines: "queue.Queue[Optional[str]]" = queue.Queue()

    def run(self) -> None:
        assert self.proc.stdout is not None
        for line in self.proc.stdout:
            line = line.rstrip("\n")
            print(f"[{self.label}] {line}", flush=True)
            self.lines.put(line)
        self.lines.put(None)

    def wait_for(self, marker: str, timeout: float) -> Optional[str]:
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            try:
                line = self.lines.get(timeout=remaining)
            except queue.Empty:
                return None
            if line is None:
                return None
            if marker in line:
                return line


def node_command(args: argparse.Namespace, index: int, listen: str, successor: str, term: Tuple[int, int]) -> List[str]:
    add_term, mul_term = term
    cmd = [
        sys.executable,
        "-m",
        "homomorphic_ring.cli",
        "--bind",
        listen,
        "--next",
        successor,
        f"--add={add_term}",
        f"--mul={mul_term}",
        "--node-id",
        "master" if index == 0 else f"relay_{index}",
        "--key-framing",
        args.key_framing,
        "--connect-retries",
        str(args.connect_retries),
    ]
    if index == 0:
        cmd += ["--master", "--key-length", str(args.key_length)]
    if args.json_logs:
        cmd.append("--json-logs")
    return cmd


def start_node(cmd: List[str], label: str) -> Tuple[subprocess.Popen, OutputPump]:
    env = dict(os.environ, PYTHONUNBUFFERED="1")
    proc = subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        env=env,
    )
    pump = OutputPump(label, proc)
    pump.start()
    return proc, pump


def wait_for_exit(procs: List[subprocess.Popen], timeout: float) -> bool:
    """Wait for every process to exit; False if one is still running after timeout."""
    for proc in procs:
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            print(f"Node did not exit within {timeout}s: {' '.join(map(str, proc.args))}", file=sys.stderr)
            return False
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a local homomorphic ring")
    parser.add_argument("--term", action="append", type=parse_term, required=True, help="ADD,MUL for one node; first is the master")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--base-port", type=int, default=7100)
    parser.add_argument("--key-length", type=int, default=2048)
    parser.add_argument("--key-framing", default="self_delimiting", choices=["self_delimiting", "length_prefixed"])
    parser.add_argument("--connect-retries", type=int, default=0)
    parser.add_argument("--ready-timeout", type=float, default=30.0)
    parser.add_argument("--json-logs", action="store_true")
    args = parser.parse_args()

    if len(args.term) < 2:
        parser.error("a ring needs at least two --term values (master + one relay)")

    addresses = [f"{args.host}:{args.base_port + i}" for i in range(len(args.term))]
    procs: List[subprocess.Popen] = []
    try:
        for index in range(1, len(args.term)):
            label = f"relay_{index}"
            cmd = node_command(args, index, addresses[index], addresses[(index + 1) % len(addresses)], args.term[index])
            proc, pump = start_node(cmd, label)
            procs.append(proc)
            if pump.wait_for(READY_MARKER, args.ready_timeout) is None:
                print(f"{label} did not start listening within {args.ready_timeout}s", file=sys.stderr)
                return 1

        cmd = node_command(args, 0, addresses[0], addresses[1], args.term[0])
        master, master_pump = start_node(cmd, "master")
        procs.append(master)
        result_line = master_pump.wait_for(RESULT_PREFIX, args.ready_timeout + 600)
        if not wait_for_exit([master] + procs[:-1], args.ready_timeout):
            print("Ring failed; see node output above", file=sys.stderr)
            return 1
    finally:
        for proc in procs:
            if proc.poll() is None:
                proc.terminate()

    failed = [proc.args for proc in procs if proc.returncode not in (0, None)]
    if failed or result_line is None:
        print("Ring failed; see node output above", file=sys.stderr)
        return 1
    print(result_line.strip())
    return 0


if __name__ == "__main__":
    sys.exit(main())
