from __future__ import annotations

import json
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path

import pytest
from typer.testing import CliRunner

from response_dumper.main import app

runner = CliRunner()

USERS_DUMPER = '''
from response_dumper.dumper import Dumper
from response_dumper.registry import define, dump


@define("Users")
class UsersDumper(Dumper):
    @dump("index", status_codes=[200])
    def index(self):
        self.get("/users")

    @dump("create", status_codes=[201, 422])
    def create(self):
        self.post("/users", body={"name": "Ada"})
        self.post("/users", body={})
'''

BROKEN_DUMPER = '''
from response_dumper.dumper import Dumper
from response_dumper.registry import define, dump


@define("Broken")
class BrokenDumper(Dumper):
    @dump("index", status_codes=[200])
    def index(self):
        self.get("/missing")
'''


def _start_test_server() -> tuple[HTTPServer, threading.Thread]:
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802 - HTTP handler requirement
            if self.path == "/users":
                self._reply(200, b'[{"id": 1, "name": "Ada"}]', cookies=("a=1", "b=2"))
            else:
                self._reply(404, b'{"error": "not found"}')

        def do_POST(self) -> None:  # noqa: N802
            length = int(self.headers.get("Content-Length", 0))
            payload = json.loads(self.rfile.read(length) or b"{}")
            if payload.get("name"):
                self._reply(201, json.dumps({"id": 2, **payload}).encode("utf-8"))
            else:
                self._reply(422, b'{"error": "name required"}')

        def _reply(self, status: int, body: bytes, cookies: tuple[str, ...] = ()) -> None:
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            for cookie in cookies:
                self.send_header("Set-Cookie", cookie)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: object) -> None:  # pragma: no cover - silence logs
            return

    server = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, thread


@pytest.fixture
def base_url():
    server, thread = _start_test_server()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    thread.join(timeout=2)


def _project(tmp_path: Path, **dumpers: str) -> Path:
    root = tmp_path / "app"
    for name, source in dumpers.items():
        target = root / "dumpers" / f"{name}_dumper.py"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(source, encoding="utf-8")
    return root


def test_dump_writes_fixtures(tmp_path: Path, base_url: str) -> None:
    root = _project(tmp_path, users=USERS_DUMPER)
    dumps = tmp_path / "dumps"

    result = runner.invoke(
        app,
        ["--root", str(root), "--dumps-dir", str(dumps), "--output-format", "plain"],
        env={"RESPONSE_DUMPER_BASE_URL": base_url},
    )

    assert result.exit_code == 0, result.output
    index = json.loads((dumps / "users" / "index" / "0.json").read_text(encoding="utf-8"))
    assert index["request"] == {"method": "GET", "url": f"{base_url}/users", "body": ""}
    assert index["response"]["status"] == 200
    assert index["response"]["statusText"] == "OK"
    assert index["response"]["headers"]["Content-Type"] == "application/json"
    assert index["response"]["headers"]["Set-Cookie"] == "a=1, b=2"
    assert index["response"]["body"] == '[{"id": 1, "name": "Ada"}]'

    created = json.loads((dumps / "users" / "create" / "0.json").read_text(encoding="utf-8"))
    rejected = json.loads((dumps / "users" / "create" / "1.json").read_text(encoding="utf-8"))
    assert created["request"]["body"] == '{"name": "Ada"}'
    assert created["response"]["status"] == 201
    assert rejected["response"]["status"] == 422
    assert rejected["response"]["statusText"] == HTTPStatus(422).phrase


def test_dump_reports_failures_and_exits_non_zero(tmp_path: Path, base_url: str) -> None:
    root = _project(tmp_path, users=USERS_DUMPER, broken=BROKEN_DUMPER)
    dumps = tmp_path / "dumps"

    result = runner.invoke(
        app,
        [
            "--root",
            str(root),
            "--dumps-dir",
            str(dumps),
            "--output-format",
            "plain",
            "--exclude-response-headers",
        ],
        env={"RESPONSE_DUMPER_BASE_URL": base_url},
    )

    assert result.exit_code == 1
    assert "Broken.index received" in result.output
    assert "unexpected status code 404 Not Found (expected 200)" in result.output
    assert not (dumps / "broken").exists()
    users_index = json.loads((dumps / "users" / "index" / "0.json").read_text(encoding="utf-8"))
    assert "headers" not in users_index["response"]


def test_dump_with_filename_keeps_other_output(tmp_path: Path, base_url: str) -> None:
    root = _project(tmp_path, users=USERS_DUMPER, broken=BROKEN_DUMPER)
    dumps = tmp_path / "dumps"
    other = dumps / "posts" / "index" / "0.json"
    other.parent.mkdir(parents=True)
    other.write_text("{}", encoding="utf-8")

    result = runner.invoke(
        app,
        ["dumpers/users_dumper.py", "--root", str(root), "--dumps-dir", str(dumps), "--verbose"],
        env={"RESPONSE_DUMPER_BASE_URL": base_url, "CONSOLE_OUTPUT_FORMAT": "plain"},
    )

    assert result.exit_code == 0, result.output
    assert "Users.index ." in result.output
    assert "Broken" not in result.output
    assert other.exists()
    assert (dumps / "users" / "create" / "1.json").exists()


def test_dump_with_seed_prints_it(tmp_path: Path, base_url: str) -> None:
    root = _project(tmp_path, users=USERS_DUMPER)

    result = runner.invoke(
        app,
        ["--root", str(root), "--dumps-dir", str(tmp_path / "dumps"), "--order", "42"],
        env={"RESPONSE_DUMPER_BASE_URL": base_url, "CONSOLE_OUTPUT_FORMAT": "plain"},
    )

    assert result.exit_code == 0, result.output
    assert "Randomized with seed 42" in result.output


def test_invalid_order_is_rejected(tmp_path: Path) -> None:
    root = _project(tmp_path, users=USERS_DUMPER)
    dumps = tmp_path / "dumps"

    result = runner.invoke(app, ["--root", str(root), "--dumps-dir", str(dumps), "--order", "soon"])

    assert result.exit_code == 2
    assert not dumps.exists()


def test_unloadable_dumper_aborts_run(tmp_path: Path) -> None:
    root = _project(tmp_path, broken="raise ImportError('missing app')\n")
    dumps = tmp_path / "dumps"

    result = runner.invoke(app, ["--root", str(root), "--dumps-dir", str(dumps)])

    assert result.exit_code == 2
    assert not dumps.exists()
