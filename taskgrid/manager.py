"""Manager: queues tasks from clients, hands them to registered nodes, tracks completion."""

from __future__ import annotations

import signal
import socket
import sys
import threading
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from taskgrid.constants import BUFFER_SIZE, MANAGER_PORT
from taskgrid.logger import log_event

ACCEPT_TIMEOUT = 0.2
ASSIGN_INTERVAL = 0.2
NODE_POLL_INTERVAL = 0.5
CONNECT_TIMEOUT = 2.0
LOG_FILE = "manager.log"
DONE_PREFIX = "TASK_DONE "
SHUTDOWN_MESSAGE = "SHUTDOWN"


class TaskStatus(Enum):
    """Lifecycle state of a task."""

    QUEUED = "queued"
    ASSIGNED = "assigned"
    COMPLETED = "completed"


@dataclass
class TaskEntry:
    """A task known to the manager and the node it was handed to, if any."""

    task: str
    status: TaskStatus
    assigned_node: str = ""


@dataclass
class NodeInfo:
    """A registered node and the address it accepts tasks on."""

    node_id: str
    ip: str
    port: int
    available: bool = True


def parse_registration(message: str | bytes) -> tuple[str, int]:
    """Parse ``REGISTER <node_id> <port>`` and return ``(node_id, port)``.

    Raises ValueError if the message is not a well-formed registration.
    """
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    words = message.split()
    if len(words) < 3 or words[0] != "REGISTER":
        raise ValueError(f"not a registration message: {message!r}")
    try:
        port = int(words[2])
    except ValueError as exc:
        raise ValueError(f"invalid port in registration: {words[2]!r}") from exc
    return words[1], port


class _Tee:
    """A text stream that writes to several streams at once."""

    def __init__(self, *streams: TextIO):
        self._streams = streams

    def write(self, text: str) -> int:
        for stream in self._streams:
            stream.write(text)
        return len(text)

    def flush(self) -> None:
        for stream in self._streams:
            stream.flush()


class Manager:
    """Holds the task queue and node registry and serves clients and nodes."""

    def __init__(self, port: int = MANAGER_PORT):
        self.port = port
        self.nodes: dict[str, NodeInfo] = {}
        self.tasks: dict[str, TaskEntry] = {}
        self.stream: TextIO | None = None
        self.address: tuple[str, int] | None = None
        self.listening = threading.Event()
        self._queue: deque[str] = deque()
        self._lock = threading.RLock()
        self._stopped = threading.Event()

    @property
    def running(self) -> bool:
        return not self._stopped.is_set()

    @property
    def pending(self) -> list[str]:
        """Tasks waiting in the queue, in order."""
        with self._lock:
            return list(self._queue)

    def _log(self, level: str, message: str) -> None:
        log_event(level, message, self.stream)

    def register_node(self, node_id: str, ip: str, port: int) -> NodeInfo:
        """Add or replace a node in the registry."""
        node = NodeInfo(node_id, ip, port)
        with self._lock:
            self.nodes[node_id] = node
        self._log("INFO", f"Node {node_id} connected from {ip}:{port}")
        return node

    def receive_tasks(self, text: str | bytes) -> list[str]:
        """Queue every non-empty line of ``text`` that is not already completed."""
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")
        accepted: list[str] = []
        with self._lock:
            for line in text.split("\n"):
                if not line:
                    continue
                entry = self.tasks.get(line)
                if entry is not None and entry.status is TaskStatus.COMPLETED:
                    self._log("INFO", f"Ignoring already completed task: {line}")
                    continue
                self.tasks[line] = TaskEntry(line, TaskStatus.QUEUED)
                self._queue.append(line)
                accepted.append(line)
                self._log("INFO", f"Received task: {line}")
        return accepted

    def handle_node_message(self, node_id: str, text: str | bytes) -> list[str]:
        """Process ``TASK_DONE`` lines from a node; return the tasks marked completed."""
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")
        completed: list[str] = []
        for line in text.split("\n"):
            if line.startswith(DONE_PREFIX):
                task = line[len(DONE_PREFIX):]
                self.mark_completed(task, node_id)
                completed.append(task)
        return completed

    def mark_completed(self, task: str, node_id: str) -> TaskEntry:
        """Record ``task`` as completed by ``node_id``."""
        with self._lock:
            entry = self.tasks.get(task)
            if entry is None:
                entry = TaskEntry(task, TaskStatus.COMPLETED)
                self.tasks[task] = entry
            else:
                entry.status = TaskStatus.COMPLETED
        self._log("INFO", f"Manager: Task {task} marked as completed by {node_id}")
        return entry

    def node_disconnected(self, node_id: str) -> list[str]:
        """Requeue the unfinished tasks of a lost node and forget the node."""
        self._log("WARN", f"Node {node_id} disconnected unexpectedly.")
        requeued: list[str] = []
        with self._lock:
            for task_id, entry in self.tasks.items():
                if entry.assigned_node == node_id and entry.status is not TaskStatus.COMPLETED:
                    self._log("INFO", f"Reassigning task {task_id} from failed node {node_id}")
                    entry.status = TaskStatus.QUEUED
                    entry.assigned_node = ""
                    self._queue.append(task_id)
                    requeued.append(task_id)
            self.nodes.pop(node_id, None)
        return requeued

    def _send_to_node(self, node: NodeInfo, message: str) -> bool:
        try:
            with socket.create_connection((node.ip, node.port), timeout=CONNECT_TIMEOUT) as conn:
                conn.sendall(message.encode())
        except OSError:
            return False
        return True

    def assign_pending(self) -> list[tuple[str, str]]:
        """Hand queued tasks to available nodes; return the ``(task, node_id)`` pairs assigned.

        Stops at the first task that no node would take.
        """
        assigned: list[tuple[str, str]] = []
        with self._lock:
            while self._queue:
                task = self._queue[0]
                entry = self.tasks.get(task)
                if entry is not None and entry.status is TaskStatus.COMPLETED:
                    self._log("INFO", f"Skipping already completed task {task}")
                    self._queue.popleft()
                    continue
                target: NodeInfo | None = None
                for node_id in sorted(self.nodes):
                    node = self.nodes[node_id]
                    if not node.available:
                        continue
                    if not self._send_to_node(node, task):
                        self._log(
                            "ERROR",
                            f"Manager: Failed to connect to node {node_id} at port {node.port}",
                        )
                        continue
                    target = node
                    break
                if target is None:
                    break
                self._log("INFO", f"Assigned {task} to {target.node_id} at port {target.port}")
                self.tasks[task] = TaskEntry(task, TaskStatus.ASSIGNED, target.node_id)
                self._queue.popleft()
                assigned.append((task, target.node_id))
        return assigned

    def _assign_loop(self) -> None:
        while not self._stopped.wait(ASSIGN_INTERVAL):
            self.assign_pending()

    def _dispatch(self, conn: socket.socket) -> None:
        with conn:
            conn.settimeout(None)
            try:
                peek = conn.recv(BUFFER_SIZE, socket.MSG_PEEK)
            except OSError:
                return
            if peek.startswith(b"REGISTER"):
                self._serve_node(conn)
            else:
                self._serve_client(conn)

    def _serve_client(self, conn: socket.socket) -> None:
        try:
            data = conn.recv(BUFFER_SIZE)
        except OSError:
            return
        self.receive_tasks(data)

    def _serve_node(self, conn: socket.socket) -> None:
        try:
            data = conn.recv(BUFFER_SIZE)
            node_id, port = parse_registration(data)
            ip = conn.getpeername()[0]
        except (OSError, ValueError) as exc:
            self._log("ERROR", f"Manager: Invalid node registration: {exc}")
            return
        self.register_node(node_id, ip, port)
        self._log(
            "INFO",
            f"Manager: handling persistent connection for node {node_id} "
            f"(socket: {conn.fileno()}) to persistent handler.",
        )
        conn.settimeout(NODE_POLL_INTERVAL)
        while self.running:
            try:
                chunk = conn.recv(BUFFER_SIZE - 1)
            except TimeoutError:
                continue
            except OSError:
                chunk = b""
            if not chunk:
                self.node_disconnected(node_id)
                return
            self.handle_node_message(node_id, chunk)

    def serve_forever(self) -> None:
        """Listen for clients and nodes and assign tasks until shut down.

        Raises OSError if the listening socket cannot be set up.
        """
        self._log("INFO", "Manager starting...")
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        with server:
            server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server.bind(("", self.port))
            server.listen(10)
            server.settimeout(ACCEPT_TIMEOUT)
            self.address = server.getsockname()
            self._log("INFO", f"Manager listening on 127.0.0.1:{self.address[1]}")
            self.listening.set()
            assigner = threading.Thread(target=self._assign_loop, daemon=True)
            assigner.start()
            try:
                while self.running:
                    try:
                        conn, _ = server.accept()
                    except TimeoutError:
                        continue
                    except OSError:
                        continue
                    threading.Thread(target=self._dispatch, args=(conn,), daemon=True).start()
            finally:
                self._stopped.set()
                assigner.join()

    def shutdown(self) -> list[str]:
        """Stop serving and tell every registered node to shut down.

        Returns the ids of the nodes that were reached.
        """
        self._stopped.set()
        notified: list[str] = []
        with self._lock:
            nodes = list(self.nodes.values())
        for node in nodes:
            if self._send_to_node(node, SHUTDOWN_MESSAGE):
                notified.append(node.node_id)
        self._log("INFO", "Manager: Shutdown complete.")
        return notified


def main(argv: Sequence[str] | None = None) -> int:
    """Command-line entry point: ``manager [port]``."""
    args = list(sys.argv[1:] if argv is None else argv)
    port = MANAGER_PORT
    if len(args) == 1:
        try:
            port = int(args[0])
        except ValueError:
            print("Usage: manager [port]", file=sys.stderr)
            return 1
    with open(LOG_FILE, "a", encoding="utf-8") as log_file:
        manager = Manager(port)
        manager.stream = _Tee(sys.stdout, log_file)
        try:
            manager.serve_forever()
        except OSError as exc:
            print(f"bind failed: {exc}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            log_event(
                "INFO",
                f"Caught signal {signal.SIGINT.value}. Shutting down manager...",
                manager.stream,
            )
            manager.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())