import json

import pytest

from quotesync import NetworkError, Origin, Record, SyncScheduler
from quotesync import cli


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "cli.db")


def test_add_list_and_categories(db, capsys):
    assert cli.main(["--db", db, "add", "Hello there.", "Greeting"]) == 0
    assert capsys.readouterr().out.strip().startswith("local-")

    assert cli.main(["--db", db, "list", "--category", "Greeting"]) == 0
    assert capsys.readouterr().out.splitlines() == ['[Greeting] "Hello there."']

    assert cli.main(["--db", db, "select", "Greeting"]) == 0
    capsys.readouterr()
    assert cli.main(["--db", db, "categories"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert "  all" in lines
    assert "* Greeting" in lines


def test_validation_error_exits_non_zero(db, capsys):
    assert cli.main(["--db", db, "add", "   ", "Greeting"]) == 1
    assert "error:" in capsys.readouterr().err


def test_export_and_merge_import(db, tmp_path, capsys):
    out = tmp_path / "export.json"
    assert cli.main(["--db", db, "export", str(out)]) == 0
    exported = json.loads(out.read_text())
    assert len(exported) == 3

    extra = tmp_path / "extra.json"
    extra.write_text(json.dumps([{"text": "Imported.", "category": "Extra"}]))
    assert cli.main(["--db", db, "import", str(extra), "--merge"]) == 0
    assert "Imported 1 quotes" in capsys.readouterr().out

    assert cli.main(["--db", db, "export"]) == 0
    assert len(json.loads(capsys.readouterr().out)) == 4


def test_config_file_supplies_store_path(tmp_path, capsys):
    config = tmp_path / "quotesync.yaml"
    config.write_text(f"store_path: {tmp_path / 'from_config.db'}\n")
    assert cli.main(["--config", str(config), "random"]) == 0
    assert capsys.readouterr().out.startswith('"')
    assert (tmp_path / "from_config.db").exists()


def test_invalid_config_exits_non_zero(tmp_path, capsys):
    config = tmp_path / "bad.yaml"
    config.write_text("fetch_limit: 0\n")
    assert cli.main(["--config", str(config), "list"]) == 1
    assert "invalid configuration" in capsys.readouterr().err


def test_sync_prints_report(db, gateway, monkeypatch, capsys):
    gateway.batch = [Record(text="From the server.", category="Server", id="1", origin=Origin.REMOTE)]
    monkeypatch.setattr(cli, "create_scheduler", lambda config, store, session=None: SyncScheduler(store, gateway))

    assert cli.main(["--db", db, "sync"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["trigger"] == "manual"
    assert report["changes"]["added"] == 1

    gateway.fetch_error = NetworkError("offline")
    assert cli.main(["--db", db, "sync"]) == 2
    assert json.loads(capsys.readouterr().out)["fetch_error"] == "offline"
