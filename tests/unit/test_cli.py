"""
Unit tests for the seedsync command line tool.
"""

import json
from unittest.mock import patch

import pytest

from seedsync.cli import build_parser, load_declaration, main
from seedsync.exceptions import MalformedDeclarationError, MissingKeyError
from tests.conftest import make_event


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    monkeypatch.delenv("SEED_CONFIG_FILE", raising=False)
    monkeypatch.delenv("PUSHGATEWAY_URL", raising=False)
    monkeypatch.delenv("VAULT_ADDR", raising=False)
    with patch("seedsync.cli.configure_logging"):
        yield


@pytest.fixture
def items_file(tmp_path):
    path = tmp_path / "seed.yaml"
    path.write_text(
        "- Id: '0'\n"
        "  Name: Foo\n"
        "- Id: '1'\n"
        "  Name: Bar\n"
    )
    return str(path)


class TestLoadDeclaration:
    """Test declaration file formats."""

    def test_yaml_list(self, items_file):
        assert load_declaration(items_file, "Id").keys == ["0", "1"]

    def test_items_json_text(self, tmp_path):
        """Test a file holding the event-style Items string."""
        path = tmp_path / "props.json"
        path.write_text(json.dumps({"Items": json.dumps([{"Id": "a"}])}))

        assert load_declaration(str(path), "Id").keys == ["a"]

    def test_items_list(self, tmp_path):
        path = tmp_path / "props.yaml"
        path.write_text("Items:\n  - Id: b\n")

        assert load_declaration(str(path), "Id").keys == ["b"]

    def test_unparsable_file(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("- [unclosed\n")

        with pytest.raises(MalformedDeclarationError):
            load_declaration(str(path), "Id")

    def test_missing_key(self, items_file):
        with pytest.raises(MissingKeyError):
            load_declaration(items_file, "Key")


class TestMain:
    """Test command dispatch."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_parser_requires_event(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["dispatch"])

    def test_reconcile_then_status(self, items_file, capsys):
        """Test reconciling a file and listing the owned records."""
        assert main(["--backend", "memory", "reconcile", "--table", "MyTable1", "--items", items_file]) == 0
        result = json.loads(capsys.readouterr().out)
        assert result["written"] == 2
        assert result["purged"] == 0

        assert main(["--backend", "memory", "status", "--table", "MyTable1"]) == 0
        status = json.loads(capsys.readouterr().out)
        assert status["owned_count"] == 2
        assert [r["Id"] for r in status["records"]] == ["0", "1"]
        assert "CF_MANAGED" not in status["records"][0]

    def test_dispatch_event_file(self, tmp_path, capsys):
        path = tmp_path / "event.json"
        path.write_text(json.dumps(make_event("Create", [{"Id": "0"}])))

        assert main(["--backend", "memory", "dispatch", "--event", str(path)]) == 0
        assert json.loads(capsys.readouterr().out) == {"status": "SUCCESS", "data": {}}

    def test_dispatch_failure_returns_error(self, tmp_path, capsys):
        """Test a failed event prints the FAILED payload and exits non-zero."""
        path = tmp_path / "event.json"
        path.write_text(json.dumps(make_event("Foo")))

        assert main(["--backend", "memory", "dispatch", "--event", str(path)]) == 1
        assert json.loads(capsys.readouterr().out) == {"status": "FAILED", "data": {}}

    def test_missing_items_file(self, tmp_path):
        assert main([
            "--backend", "memory", "reconcile", "--table", "T", "--items", str(tmp_path / "absent.yaml")
        ]) == 1
