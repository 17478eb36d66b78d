"""Tests for the management CLI."""

import json
from pathlib import Path

import pytest
from sqlalchemy import create_engine, inspect

from cli import get_alembic_config, main
from core.config import clear_settings_cache
from tests.factories import certificate_design, design_document, image_node

RECIPIENT = {
    "recipient_name": "Ada Lovelace",
    "recipient_email": "ada@example.com",
    "recipient_data": {"course": "Cloud 101"},
}


def _write_json(path: Path, data) -> str:
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


@pytest.mark.unit
class TestRenderCommand:
    def test_prints_payload_json(self, tmp_path: Path, capsys):
        design = _write_json(tmp_path / "design.json", certificate_design())
        recipient = _write_json(tmp_path / "recipient.json", RECIPIENT)

        assert main(["render", design, recipient]) == 0

        payload = json.loads(capsys.readouterr().out)
        texts = [e["content"] for e in payload["elements"] if e["type"] == "text"]
        assert texts == ["Certificate for Ada Lovelace", "Completed Cloud 101"]

    def test_accepts_stored_design_record(self, tmp_path: Path, capsys):
        design = _write_json(
            tmp_path / "design.json",
            {
                "id": "design-1",
                "name": "Diploma",
                "design_data": certificate_design(),
                "settings": {"orientation": "portrait"},
            },
        )
        recipient = _write_json(tmp_path / "recipient.json", RECIPIENT)

        assert main(["render", design, recipient]) == 0

        payload = json.loads(capsys.readouterr().out)
        assert payload["metadata"]["design_id"] == "design-1"
        assert payload["layout"]["orientation"] == "portrait"

    def test_prints_html(self, tmp_path: Path, capsys):
        design = _write_json(tmp_path / "design.json", certificate_design())
        recipient = _write_json(tmp_path / "recipient.json", RECIPIENT)

        assert main(["render", design, recipient, "--html"]) == 0

        out = capsys.readouterr().out
        assert out.startswith("<!DOCTYPE html>")
        assert "Certificate for Ada Lovelace" in out

    def test_html_resolves_relative_assets(self, tmp_path: Path, capsys):
        design = _write_json(
            tmp_path / "design.json", design_document(image_node(src="img/seal.png"))
        )
        recipient = _write_json(tmp_path / "recipient.json", RECIPIENT)

        options = ["--html", "--asset-base-url", "https://x.test/"]
        assert main(["render", design, recipient, *options]) == 0

        assert 'src="https://x.test/img/seal.png"' in capsys.readouterr().out

    def test_empty_design(self, tmp_path: Path, capsys):
        design = _write_json(tmp_path / "design.json", {})
        recipient = _write_json(tmp_path / "recipient.json", RECIPIENT)

        assert main(["render", design, recipient]) == 1
        assert capsys.readouterr().out == ""

    def test_invalid_recipient(self, tmp_path: Path):
        design = _write_json(tmp_path / "design.json", certificate_design())
        recipient = _write_json(
            tmp_path / "recipient.json", {"recipient_name": "Ada", "recipient_email": "x"}
        )

        assert main(["render", design, recipient]) == 2

    def test_missing_file(self, tmp_path: Path):
        recipient = _write_json(tmp_path / "recipient.json", RECIPIENT)
        assert main(["render", str(tmp_path / "nope.json"), recipient]) == 2

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "Certificate Studio CLI" in capsys.readouterr().out


@pytest.mark.integration
class TestMigrateCommand:
    def test_alembic_config_points_at_scripts(self):
        cfg = get_alembic_config("sqlite+aiosqlite:///x.db")
        assert cfg.get_main_option("script_location").endswith("alembic")
        assert cfg.get_main_option("sqlalchemy.url") == "sqlite+aiosqlite:///x.db"

    def test_upgrade_creates_schema(self, tmp_path: Path, monkeypatch):
        db_path = tmp_path / "migrated.db"
        monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
        clear_settings_cache()

        assert main(["migrate"]) == 0

        engine = create_engine(f"sqlite:///{db_path}")
        try:
            tables = set(inspect(engine).get_table_names())
        finally:
            engine.dispose()
        assert {"designs", "campaigns", "certificates", "alembic_version"} <= tables
