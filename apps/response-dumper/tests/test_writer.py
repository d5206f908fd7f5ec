from __future__ import annotations

import json
from pathlib import Path

import pytest

from response_dumper.dumper import Dumper
from response_dumper.models import ExchangeRecord, WorkItem
from response_dumper.registry import DumperRegistry, dump
from response_dumper.writer import FixtureWriter, slugify


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Users", "users"),
        ("AdminUsers", "admin_users"),
        ("APIKeys", "api_keys"),
        ("Admin::Users", "admin/users"),
        ("billing invoices", "billing_invoices"),
    ],
)
def test_slugify(name: str, expected: str) -> None:
    assert slugify(name) == expected


def _item() -> WorkItem:
    registry = DumperRegistry()

    @registry.define("Admin::Users")
    class AdminUsersDumper(Dumper):
        @dump("create", status_codes=[201, 422])
        def create(self):
            pass

    definition = registry.definitions[0]
    return WorkItem(definition, definition.blocks[0])


def test_writer_writes_one_file_per_exchange(tmp_path: Path) -> None:
    exchanges = [
        ExchangeRecord(
            method="POST",
            url="http://app.test/admin/users",
            request_body=b'{"name": "Ada"}',
            status=201,
            status_text="Created",
            headers={"Content-Type": "application/json"},
            body=b'{"id": 7}',
        ),
        ExchangeRecord(
            method="POST",
            url="http://app.test/admin/users",
            request_body=b"{}",
            status=422,
            status_text="Unprocessable Entity",
        ),
    ]
    writer = FixtureWriter(tmp_path)

    written = writer.write(_item(), exchanges)

    target = tmp_path / "admin" / "users" / "create"
    assert written == [target / "0.json", target / "1.json"]
    first = json.loads((target / "0.json").read_text(encoding="utf-8"))
    assert first == {
        "request": {"method": "POST", "url": "http://app.test/admin/users", "body": '{"name": "Ada"}'},
        "response": {
            "status": 201,
            "statusText": "Created",
            "headers": {"Content-Type": "application/json"},
            "body": '{"id": 7}',
        },
    }
    second = json.loads((target / "1.json").read_text(encoding="utf-8"))
    assert second["response"]["headers"] == {}
    assert (target / "0.json").read_text(encoding="utf-8").startswith('{\n  "request": {')


def test_failed_write_leaves_no_partial_fixtures(tmp_path: Path) -> None:
    class FlakyWriter(FixtureWriter):
        def _write_fixture(self, destination, payload):
            if destination.name == "1.json":
                raise OSError("disk full")
            super()._write_fixture(destination, payload)

    exchange = ExchangeRecord(method="GET", url="http://app.test/", request_body=b"", status=201, status_text="Created")

    with pytest.raises(OSError):
        FlakyWriter(tmp_path).write(_item(), [exchange, exchange])

    assert not (tmp_path / "admin" / "users" / "create").exists()
