import socket
import threading

import pytest

from taskgrid.node_agent import (
    NodeAgent,
    clean_task,
    done_message,
    main,
    registration_message,
)


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _recv_exact(conn, size):
    data = b""
    while len(data) < size:
        chunk = conn.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


@pytest.fixture
def manager():
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(5)
    server.settimeout(5)
    yield server
    server.close()


def _connected_agent(manager, node_id="n1", listen_port=0):
    agent = NodeAgent(node_id, "127.0.0.1", manager.getsockname()[1], listen_port)
    agent.task_duration = 0
    agent.connect()
    conn, _ = manager.accept()
    conn.settimeout(5)
    expected = registration_message(node_id, listen_port).encode()
    assert _recv_exact(conn, len(expected)) == expected
    return agent, conn


def test_clean_task_strips_whitespace():
    assert clean_task("  \tTask_1:Workload_1\r\n") == "Task_1:Workload_1"
    assert clean_task(b"\nSHUTDOWN \n") == "SHUTDOWN"
    assert clean_task(" \r\n\t ") == ""


def test_done_message():
    assert done_message(" Task_1:Workload_1\n") == "TASK_DONE Task_1:Workload_1\n"


def test_done_message_rejects_empty():
    with pytest.raises(ValueError):
        done_message(" \n")


def test_registration_message():
    assert registration_message("node1", 6001) == "REGISTER node1 6001"


def test_connect_failure_raises():
    agent = NodeAgent("n1", "127.0.0.1", _free_port(), 0)
    with pytest.raises(ConnectionError):
        agent.connect()


def test_handle_task_reports_completion(manager):
    agent, conn = _connected_agent(manager)
    with conn:
        assert agent.handle_task_message(b"Task_1:Workload_1\n") is True
        expected = done_message("Task_1:Workload_1").encode()
        assert _recv_exact(conn, len(expected)) == expected
        agent.stop()


def test_handle_shutdown_stops_agent(manager):
    agent, conn = _connected_agent(manager)
    with conn:
        assert agent.running is True
        assert agent.handle_task_message("SHUTDOWN\n") is False
        assert agent.running is False
        agent.stop()


def test_blank_message_is_ignored(manager):
    agent, conn = _connected_agent(manager)
    with conn:
        assert agent.handle_task_message(" \r\n") is True
        agent.stop()
        assert conn.recv(64) == b""


def test_listen_executes_tasks_until_shutdown(manager):
    agent, conn = _connected_agent(manager)
    with conn:
        thread = threading.Thread(target=agent.listen)
        thread.start()
        assert agent.listening.wait(5)
        port = agent.address[1]
        with socket.create_connection(("127.0.0.1", port)) as sender:
            sender.sendall(b"Task_7:Workload_7\n")
        expected = done_message("Task_7:Workload_7").encode()
        assert _recv_exact(conn, len(expected)) == expected
        with socket.create_connection(("127.0.0.1", port)) as sender:
            sender.sendall(b"SHUTDOWN")
        thread.join(5)
        assert not thread.is_alive()
        assert agent.running is False
        agent.stop()


def test_stop_ends_listen():
    agent = NodeAgent("n2", "127.0.0.1", _free_port(), 0)
    thread = threading.Thread(target=agent.listen)
    thread.start()
    assert agent.listening.wait(5)
    agent.stop()
    thread.join(5)
    assert not thread.is_alive()


def test_run_registers_and_closes_on_shutdown(manager):
    agent = NodeAgent("n3", "127.0.0.1", manager.getsockname()[1], 0)
    thread = threading.Thread(target=agent.run)
    thread.start()
    conn, _ = manager.accept()
    conn.settimeout(5)
    with conn:
        expected = registration_message("n3", 0).encode()
        assert _recv_exact(conn, len(expected)) == expected
        assert agent.listening.wait(5)
        with socket.create_connection(("127.0.0.1", agent.address[1])) as sender:
            sender.sendall(b"SHUTDOWN\n")
        thread.join(5)
        assert not thread.is_alive()
        assert conn.recv(64) == b""


def test_main_wrong_argument_count(capsys):
    assert main(["n1", "127.0.0.1", "5000"]) == 1
    assert "Usage:" in capsys.readouterr().err


def test_main_rejects_non_numeric_port(capsys):
    assert main(["n1", "127.0.0.1", "manager", "6001"]) == 1
    assert "<listen_port>" in capsys.readouterr().err


def test_main_connection_failure(capsys):
    assert main(["n1", "127.0.0.1", str(_free_port()), "0"]) == 1
    assert "Could not connect to manager." in capsys.readouterr().out