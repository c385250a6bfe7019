import subprocess

import pytest

from conftest import requires_git, wait_until_sync


def request(ws, event, data=None):
    ws.send_json({"event": event, "data": data if data is not None else {}})
    return ws.receive_json()


def receive_until(ws, predicate, limit=200):
    for _ in range(limit):
        message = ws.receive_json()
        if predicate(message):
            return message
    raise AssertionError("expected message never arrived")


def test_file_round_trip(client, workspace):
    with client.websocket_connect("/ws") as ws:
        assert request(ws, "create-file", {"path": "src/app.py"}) == {
            "event": "file-created", "data": {"path": "src/app.py"},
        }
        assert request(ws, "write-file", {"path": "src/app.py", "content": "x = 1\n"}) == {
            "event": "file-saved", "data": {"path": "src/app.py"},
        }

        reply = request(ws, "read-file", {"path": "src/app.py"})

    assert reply["event"] == "file-content"
    assert reply["data"] == {"path": "src/app.py", "content": "x = 1\n", "encoding": "utf8"}
    assert (workspace / "src" / "app.py").read_text() == "x = 1\n"


def test_rename_and_list(client, workspace):
    (workspace / "a").mkdir()
    (workspace / "a" / "b.txt").write_text("b")

    with client.websocket_connect("/ws") as ws:
        renamed = request(ws, "rename-file", {"oldPath": "a/b.txt", "newPath": "c/d.txt"})
        listing = request(ws, "list-directory", {"path": "c"})

    assert renamed == {"event": "file-renamed", "data": {"oldPath": "a/b.txt", "newPath": "c/d.txt"}}
    assert listing["event"] == "directory-listing"
    assert [i["name"] for i in listing["data"]["items"]] == ["d.txt"]


def test_delete_directory_needs_recursive(client, workspace):
    (workspace / "dir").mkdir()
    (workspace / "dir" / "keep.txt").write_text("k")

    with client.websocket_connect("/ws") as ws:
        refused = request(ws, "delete-file", {"path": "dir"})
        deleted = request(ws, "delete-file", {"path": "dir", "recursive": True})

    assert refused == {"event": "error", "data": {"message": "Cannot delete directory without recursive flag"}}
    assert deleted == {"event": "file-deleted", "data": {"path": "dir"}}
    assert not (workspace / "dir").exists()


def test_access_denied_keeps_connection_open(client):
    with client.websocket_connect("/ws") as ws:
        denied = request(ws, "read-file", {"path": "../../etc/passwd"})
        listing = request(ws, "list-directory", {"path": ""})

    assert denied == {"event": "error", "data": {"message": "Access denied"}}
    assert listing["event"] == "directory-listing"


def test_unknown_event(client):
    with client.websocket_connect("/ws") as ws:
        reply = request(ws, "format-disk")

    assert reply == {"event": "error", "data": {"message": "Unknown event: format-disk"}}


def test_invalid_payload(client):
    with client.websocket_connect("/ws") as ws:
        reply = request(ws, "read-file", {})

    assert reply["event"] == "error"
    assert reply["data"]["message"].startswith("Invalid payload")
    assert "path" in reply["data"]["message"]


def test_malformed_frame(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        reply = ws.receive_json()

    assert reply["event"] == "error"


def test_search_files(client, workspace):
    (workspace / "a.txt").write_text("l1\nl2\nneedle\nl4\nl5\nl6\nneedle")

    with client.websocket_connect("/ws") as ws:
        reply = request(ws, "search-files", {"query": "needle"})

    assert reply["event"] == "search-results"
    assert reply["data"]["query"] == "needle"
    (result,) = reply["data"]["results"]
    assert [m["line"] for m in result["matches"]] == [3, 7]


def test_run_task_events(client):
    with client.websocket_connect("/ws") as ws:
        completed = request(ws, "run-task", {"command": "echo ok"})
        failed = request(ws, "run-task", {"cwd": "."})
        denied = request(ws, "run-task", {"command": "ls", "cwd": "../.."})

    assert completed == {
        "event": "task-completed",
        "data": {"command": "echo ok", "stdout": "ok\n", "stderr": "", "exitCode": 0},
    }
    assert failed["event"] == "task-error"
    assert failed["data"]["command"] is None
    assert denied == {"event": "error", "data": {"message": "Access denied"}}


def test_terminal_session(client):
    with client.websocket_connect("/ws") as ws:
        created = request(ws, "create-terminal", {"id": "term-1", "cols": 80, "rows": 24})
        assert created == {"event": "terminal-created", "data": {"id": "term-1"}}

        ws.send_json({"event": "terminal-input", "data": {"id": "term-1", "input": "echo ws-$((2+3))\n"}})
        output = []

        def saw_result(message):
            if message["event"] == "terminal-data":
                output.append(message["data"]["data"])
            return "ws-5" in "".join(output)

        receive_until(ws, saw_result)

        ws.send_json({"event": "close-terminal", "data": {"id": "term-1"}})
        exited = receive_until(ws, lambda m: m["event"] == "terminal-exit")

    assert exited["data"] == {"id": "term-1"}


def test_disconnect_kills_terminals(client):
    terminals = client.app.state.terminal_manager

    with client.websocket_connect("/ws") as ws:
        request(ws, "create-terminal", {"id": "left-open"})
        assert len(terminals) == 1

    wait_until_sync(lambda: len(terminals) == 0)


@pytest.mark.parametrize("event", ["terminal-input", "resize-terminal", "close-terminal"])
def test_terminal_events_for_unknown_id_are_silent(client, event):
    payload = {"id": "ghost", "input": "ls\n", "cols": 10, "rows": 10}

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": event, "data": payload})
        reply = request(ws, "list-directory", {"path": ""})

    assert reply["event"] == "directory-listing"


def test_binary_frame_keeps_connection_and_terminals(client):
    terminals = client.app.state.terminal_manager

    with client.websocket_connect("/ws") as ws:
        request(ws, "create-terminal", {"id": "bin"})

        ws.send_bytes(b"\x00\x01")
        error = receive_until(ws, lambda m: m["event"] == "error")

        ws.send_json({"event": "list-directory", "data": {"path": ""}})
        listing = receive_until(ws, lambda m: m["event"] == "directory-listing")

        assert len(terminals) == 1

    assert error["data"] == {"message": "Malformed message: expected JSON"}
    assert listing["data"]["path"] == ""


def test_running_task_does_not_block_other_events(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "run-task", "data": {"command": "sleep 5"}})
        reply = request(ws, "list-directory", {"path": ""})

    assert reply["event"] == "directory-listing"


def test_disconnect_during_task_kills_terminals(client):
    terminals = client.app.state.terminal_manager
    connections = client.app.state.connection_manager

    with client.websocket_connect("/ws") as ws:
        request(ws, "create-terminal", {"id": "t"})
        ws.send_json({"event": "run-task", "data": {"command": "sleep 30"}})
        ws.send_json({"event": "list-directory", "data": {"path": ""}})
        receive_until(ws, lambda m: m["event"] == "directory-listing")

    wait_until_sync(lambda: len(terminals) == 0 and len(connections) == 0)


def test_oversized_resize_is_rejected(client):
    terminals = client.app.state.terminal_manager

    with client.websocket_connect("/ws") as ws:
        request(ws, "create-terminal", {"id": "wide"})
        ws.send_json({"event": "resize-terminal", "data": {"id": "wide", "cols": 70000, "rows": 24}})
        error = receive_until(ws, lambda m: m["event"] == "error")

        assert terminals.get("wide").running

    assert error["data"]["message"].startswith("Invalid payload")
    assert "cols" in error["data"]["message"]


@requires_git
def test_git_events(client, workspace):
    for args in (
        ["init", "-q"],
        ["config", "user.email", "dev@example.com"],
        ["config", "user.name", "Dev"],
        ["config", "commit.gpgsign", "false"],
    ):
        subprocess.run(["git", *args], cwd=workspace, check=True)
    (workspace / "notes.txt").write_text("n")

    with client.websocket_connect("/ws") as ws:
        dirty = request(ws, "git-status", {"cwd": "."})
        committed = request(ws, "git-commit", {"cwd": ".", "message": "add notes", "files": ["notes.txt"]})
        clean = request(ws, "git-status", {})

    assert dirty["event"] == "git-status-result"
    assert dirty["data"] == {"status": "?? notes.txt\n", "cwd": "."}
    assert committed["event"] == "git-commit-result"
    assert committed["data"]["cwd"] == "."
    assert "add notes" in committed["data"]["result"]
    assert clean == {"event": "git-status-result", "data": {"status": "", "cwd": None}}
