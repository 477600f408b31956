from __future__ import annotations

import asyncio
import json
import logging

import pytest
import yaml

from analysis_worker.db.database import get_db
from analysis_worker.db.repositories import SqliteCallStore
from analysis_worker.main import build_parser, main
from analysis_worker.store.base import ENABLED_FLAG_KEY, WORKER_CONFIG_KEY
from analysis_worker.utils.logging_config import ROOT_LOGGER_NAME


@pytest.fixture
def settings_path(tmp_path, monkeypatch):
    monkeypatch.delenv("ANALYSIS_WORKER_ENV", raising=False)
    path = tmp_path / "settings.yaml"
    path.write_text(
        yaml.dump(
            {
                "store": {"db_path": str(tmp_path / "data" / "calls.db")},
                "logging": {"level": "minimal", "log_dir": str(tmp_path / "logs")},
            }
        )
    )
    yield str(path)
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def _read_settings(db_path: str) -> dict:
    async def _read():
        async with get_db(db_path) as db:
            store = SqliteCallStore(db)
            return {
                ENABLED_FLAG_KEY: await store.get_setting(ENABLED_FLAG_KEY),
                WORKER_CONFIG_KEY: await store.get_setting(WORKER_CONFIG_KEY),
            }

    return asyncio.run(_read())


def test_parser_commands() -> None:
    parser = build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["resume"])
    assert parser.parse_args(["run"]).command == "run"
    parsed = parser.parse_args(["config", "--disabled", "--batch-size", "3"])
    assert parsed.enabled is False
    assert parsed.batch_size == 3
    assert parser.parse_args(["config"]).enabled is None
    with pytest.raises(SystemExit):
        parser.parse_args(["config", "--enabled", "--disabled"])


def test_missing_settings_file_exits_2(tmp_path) -> None:
    assert main(["--settings", str(tmp_path / "nope.yaml"), "stats"]) == 2


def test_seed_stats_and_config(settings_path, tmp_path, make_row) -> None:
    seed_file = tmp_path / "calls.json"
    seed_file.write_text(json.dumps({"calls": [make_row("a"), make_row("b", duration=10)]}))

    assert main(["--settings", settings_path, "seed", str(seed_file)]) == 0
    assert main(["--settings", settings_path, "stats"]) == 0
    assert main(["--settings", settings_path, "config", "--enabled", "--interval", "60"]) == 0

    stored = _read_settings(str(tmp_path / "data" / "calls.db"))
    assert stored[ENABLED_FLAG_KEY] == "true"
    assert json.loads(stored[WORKER_CONFIG_KEY])["interval"] == 60.0


def test_seed_imports_prior_analyses(settings_path, tmp_path, make_row) -> None:
    seed_file = tmp_path / "calls.json"
    seed_file.write_text(
        json.dumps(
            {
                "calls": [make_row("a"), make_row("b")],
                "analyses": [{"call_id": "a", "final_grade": 6.5, "scorecard_used": "demo"}],
            }
        )
    )
    assert main(["--settings", settings_path, "seed", str(seed_file)]) == 0

    async def _analyzed():
        async with get_db(str(tmp_path / "data" / "calls.db")) as db:
            return await SqliteCallStore(db).list_analyzed_ids()

    analyzed = asyncio.run(_analyzed())
    assert [row["call_id"] for row in analyzed] == ["a"]


def test_seed_analysis_without_call_id_exits_1(settings_path, tmp_path, make_row) -> None:
    seed_file = tmp_path / "calls.json"
    seed_file.write_text(json.dumps({"calls": [make_row("a")], "analyses": [{"final_grade": 6.5}]}))
    assert main(["--settings", settings_path, "seed", str(seed_file)]) == 1


def test_invalid_config_value_exits_2(settings_path) -> None:
    assert main(["--settings", settings_path, "config", "--batch-size", "0"]) == 2


def test_seed_missing_file_exits_2(settings_path, tmp_path) -> None:
    assert main(["--settings", settings_path, "seed", str(tmp_path / "missing.json")]) == 2


def test_history_without_events(settings_path) -> None:
    assert main(["--settings", settings_path, "history"]) == 0
