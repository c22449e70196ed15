"""Client that submits numbered tasks to the manager, one connection per task."""

from __future__ import annotations

import socket
import sys
import time
from collections.abc import Sequence

USAGE = "Usage: client <manager_ip> <manager_port> <number_of_tasks>"


def format_task(index: int) -> str:
    """Return the task text for the ``index``-th task."""
    return f"Task_{index}:Workload_{index}"


def send_tasks(host: str, port: int, count: int, delay: float = 0.1) -> list[str]:
    """Send ``count`` tasks to the manager and return those that were sent.

    A task whose connection fails is reported on standard error and skipped.
    """
    sent: list[str] = []
    for index in range(1, count + 1):
        task = format_task(index)
        try:
            conn = socket.create_connection((host, port))
        except OSError:
            print(f"Connection to manager failed for Task_{index}", file=sys.stderr)
            continue
        with conn:
            conn.sendall(task.encode())
        print(f"[CLIENT] Sent: {task}", flush=True)
        sent.append(task)
        if delay > 0:
            time.sleep(delay)
    return sent


def main(argv: Sequence[str] | None = None) -> int:
    """Command-line entry point: ``client <manager_ip> <manager_port> <number_of_tasks>``."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 3:
        print(USAGE, file=sys.stderr)
        return 1
    host = args[0]
    try:
        port = int(args[1])
        count = int(args[2])
    except ValueError:
        print(USAGE, file=sys.stderr)
        return 1
    send_tasks(host, port, count)
    return 0


if __name__ == "__main__":
    sys.exit(main())