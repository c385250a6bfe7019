import os
import signal


def test_health(client, workspace, settings):
    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["workspace"] == str(workspace)
    assert body["port"] == settings.port
    assert body["activeTerminals"] == 0
    assert body["uptime"] >= 0
    assert body["timestamp"].endswith("Z")


def test_download_file(client, workspace):
    (workspace / "src").mkdir()
    (workspace / "src" / "main.py").write_text("print('hi')\n")

    resp = client.get("/files/src/main.py")

    assert resp.status_code == 200
    assert resp.text == "print('hi')\n"


def test_download_missing_file(client):
    resp = client.get("/files/missing.txt")

    assert resp.status_code == 404
    assert resp.json() == {"error": "File not found"}


def test_list_files(client, workspace):
    (workspace / "dir").mkdir()
    (workspace / "dir" / "a.txt").write_text("abc")

    flat = client.get("/api/files").json()["items"]
    deep = client.get("/api/files", params={"recursive": "true"}).json()["items"]

    assert [i["name"] for i in flat] == ["dir"]
    assert [i["path"] for i in deep] == ["dir", "dir/a.txt"]
    assert deep[1]["size"] == 3
    assert "modifiedAt" in deep[1]


def test_list_files_outside_workspace(client):
    resp = client.get("/api/files", params={"path": "../"})

    assert resp.status_code == 403
    assert resp.json() == {"error": "Access denied"}


def test_list_missing_directory(client):
    resp = client.get("/api/files", params={"path": "nope"})

    assert resp.status_code == 404
    assert "error" in resp.json()


def test_search(client, workspace):
    (workspace / "a.txt").write_text("one\ntwo needle\nthree")

    resp = client.get("/api/search", params={"query": "needle"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["query"] == "needle"
    assert body["cwd"] is None
    assert body["results"] == [{
        "file": "a.txt",
        "matches": [{"line": 2, "content": "two needle", "preview": "two needle"}],
    }]


def test_search_invalid_regex(client):
    resp = client.get("/api/search", params={"query": "x", "include": "("})

    assert resp.status_code == 500
    assert "error" in resp.json()


def test_run_task_foreground(client):
    resp = client.post("/api/tasks/run", json={"command": "echo hi; exit 2"})

    assert resp.status_code == 200
    assert resp.json() == {"status": "completed", "stdout": "hi\n", "stderr": "", "exitCode": 2}


def test_run_task_background(client):
    resp = client.post("/api/tasks/run", json={"command": "sleep 5", "background": True})

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "started"
    assert isinstance(body["pid"], int)
    os.killpg(body["pid"], signal.SIGKILL)


def test_run_task_outside_workspace(client):
    resp = client.post("/api/tasks/run", json={"command": "ls", "cwd": "../"})

    assert resp.status_code == 403
    assert resp.json() == {"error": "Access denied"}


def test_run_task_requires_command(client):
    resp = client.post("/api/tasks/run", json={})

    assert resp.status_code == 422
    assert "command" in resp.json()["error"]


def test_git_status_outside_repository(client):
    resp = client.get("/api/git/status")

    assert resp.status_code == 500
    assert "error" in resp.json()
