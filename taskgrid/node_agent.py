"""Worker node: registers with the manager, executes tasks and reports completion."""

from __future__ import annotations

import signal
import socket
import sys
import threading
import time
from collections.abc import Sequence

from taskgrid.constants import BUFFER_SIZE
from taskgrid.logger import log_event

WHITESPACE = " \t\n\r"
ACCEPT_TIMEOUT = 0.2
USAGE = "Usage: node_agent <node_id> <manager_ip> <manager_port> <listen_port>"


def clean_task(text: str | bytes) -> str:
    """Strip spaces, tabs, carriage returns and newlines from both ends."""
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    return text.strip(WHITESPACE)


def done_message(task: str) -> str:
    """Return the completion notice sent to the manager for ``task``."""
    cleaned = clean_task(task)
    if not cleaned:
        raise ValueError("task is empty")
    return f"TASK_DONE {cleaned}\n"


def registration_message(node_id: str, port: int) -> str:
    """Return the message a node sends to register its task port."""
    return f"REGISTER {node_id} {port}"


class NodeAgent:
    """A node that accepts tasks on its own port and reports back to the manager."""

    task_duration = 1.0

    def __init__(self, node_id: str, manager_host: str, manager_port: int, listen_port: int):
        self.node_id = node_id
        self.manager_host = manager_host
        self.manager_port = manager_port
        self.listen_port = listen_port
        self.listening = threading.Event()
        self.address: tuple[str, int] | None = None
        self._stopped = threading.Event()
        self._manager: socket.socket | None = None
        self._send_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return not self._stopped.is_set()

    def _log(self, level: str, message: str) -> None:
        log_event(level, message)

    def connect(self) -> None:
        """Connect to the manager and register; raise ConnectionError on failure."""
        try:
            conn = socket.create_connection((self.manager_host, self.manager_port))
        except OSError as exc:
            self._log("ERROR", f"Node {self.node_id}: Could not connect to manager.")
            raise ConnectionError(
                f"could not connect to manager at {self.manager_host}:{self.manager_port}"
            ) from exc
        self._manager = conn
        self._log(
            "INFO",
            f"Node {self.node_id}: Connected to manager at "
            f"{self.manager_host}:{self.manager_port}",
        )
        conn.sendall(registration_message(self.node_id, self.listen_port).encode())
        self._log("INFO", f"Node {self.node_id}: Sent registration message to manager.")

    def handle_task_message(self, raw: str | bytes) -> bool:
        """Act on one message from the manager; return False once told to shut down."""
        task = clean_task(raw)
        if task == "SHUTDOWN":
            self._log("INFO", f"Node {self.node_id}: Received shutdown signal from manager.")
            self._stopped.set()
            return False
        if task:
            self.execute_task(task)
        return True

    def execute_task(self, task: str) -> None:
        """Run a task and notify the manager once it is done."""
        self._log("INFO", f"Node {self.node_id}: Received task: {task}")
        time.sleep(self.task_duration)
        self._log("INFO", f"Node {self.node_id}: Completed task: {task}")
        if not clean_task(task) or self._manager is None:
            return
        with self._send_lock:
            try:
                self._manager.sendall(done_message(task).encode())
            except OSError:
                pass

    def listen(self) -> None:
        """Accept task connections until stopped or told to shut down."""
        try:
            listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError:
            self._log("ERROR", f"Node {self.node_id}: Failed to create task listener socket.")
            return
        with listener:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                listener.bind(("", self.listen_port))
            except OSError:
                self._log("ERROR", f"Node {self.node_id}: Bind failed on task port.")
                return
            listener.listen(5)
            listener.settimeout(ACCEPT_TIMEOUT)
            self.address = listener.getsockname()
            self._log(
                "INFO",
                f"Node {self.node_id}: Listening for tasks on port {self.address[1]}...",
            )
            self.listening.set()
            while self.running:
                try:
                    conn, _ = listener.accept()
                except TimeoutError:
                    continue
                except OSError:
                    time.sleep(0.1)
                    continue
                with conn:
                    conn.settimeout(None)
                    try:
                        data = conn.recv(BUFFER_SIZE - 1)
                    except OSError:
                        continue
                    if not data:
                        continue
                    if not self.handle_task_message(data):
                        break

    def _close_manager(self) -> None:
        with self._send_lock:
            if self._manager is not None:
                self._manager.close()
                self._manager = None

    def run(self) -> None:
        """Register with the manager and serve tasks until shutdown."""
        self._log("INFO", f"NodeAgent {self.node_id}: initialized.")
        try:
            self.connect()
            self.listen()
            self._log("INFO", f"Node {self.node_id}: Shutdown complete.")
        finally:
            self._close_manager()

    def stop(self) -> None:
        """Stop serving and close the connection to the manager."""
        self._stopped.set()
        self._close_manager()


def main(argv: Sequence[str] | None = None) -> int:
    """Command-line entry point: ``node_agent <node_id> <manager_ip> <manager_port> <listen_port>``."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 4:
        print(USAGE, file=sys.stderr)
        return 1
    node_id, manager_host = args[0], args[1]
    try:
        manager_port = int(args[2])
        listen_port = int(args[3])
    except ValueError:
        print(USAGE, file=sys.stderr)
        return 1
    agent = NodeAgent(node_id, manager_host, manager_port, listen_port)
    try:
        agent.run()
    except ConnectionError:
        return 1
    except KeyboardInterrupt:
        log_event("INFO", f"Caught signal {signal.SIGINT.value}. Shutting down node...")
        log_event("INFO", f"Node {node_id}: Shutting down...")
        agent.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())