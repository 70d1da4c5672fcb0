"""Tests for the triage database and artifacts."""

import json
from datetime import datetime, timezone

from autotriage.storage import TriageDatabase, TriageRecord, save_artifact


class TestTriageDatabase:
    """Tests for TriageDatabase."""

    def test_missing_file_is_empty(self, tmp_path):
        db = TriageDatabase.load(tmp_path / "missing.json")
        assert len(db) == 0

    def test_invalid_json_is_empty(self, tmp_path, capsys):
        path = tmp_path / "db.json"
        path.write_text("{not json")
        db = TriageDatabase.load(path)
        assert len(db) == 0
        assert "Failed to load" in capsys.readouterr().err

    def test_loads_legacy_keys(self, tmp_path):
        path = tmp_path / "db.json"
        path.write_text(
            json.dumps(
                {
                    "1": {"lastTriaged": "2024-01-01T00:00:00Z", "summary": "s", "thoughts": "t"},
                    "2": {"reason": "r", "reactions": 3},
                    "3": "garbage",
                }
            )
        )
        db = TriageDatabase.load(path)

        assert db.get(1) == TriageRecord(last_triaged="2024-01-01T00:00:00Z", summary="s", reasoning="t")
        assert db.get(2).reasoning == "r"
        assert db.get(2).reactions == 3
        assert 3 not in db

    def test_update_and_save_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "db.json"
        db = TriageDatabase(path)
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        db.update(42, summary="Crash on startup", reasoning="I saw a stack trace", reactions=2, now=now)
        assert db.save(enabled=True)

        data = json.loads(path.read_text())
        assert data == {
            "42": {
                "lastTriaged": "2024-05-01T12:00:00Z",
                "summary": "Crash on startup",
                "reasoning": "I saw a stack trace",
                "reactions": 2,
            }
        }

    def test_update_keeps_previous_reactions(self):
        db = TriageDatabase()
        db.update(1, "s", "r", reactions=5)
        record = db.update(1, "s2", "r2")
        assert record.reactions == 5
        assert record.summary == "s2"

    def test_update_placeholders(self):
        record = TriageDatabase().update(1, "", "")
        assert record.summary == "no summary"
        assert record.reasoning == "no reasoning"

    def test_dry_run_does_not_save(self, tmp_path):
        path = tmp_path / "db.json"
        db = TriageDatabase(path)
        db.update(1, "s", "r")
        assert not db.save(enabled=False)
        assert not path.exists()


class TestSaveArtifact:
    """Tests for save_artifact function."""

    def test_prefixed_by_issue(self, tmp_path):
        path = save_artifact(tmp_path, 42, "timeline.json", "[]")
        assert path == tmp_path / "42-timeline.json"
        assert path.read_text() == "[]"

    def test_shared_system_prompt(self, tmp_path):
        path = save_artifact(tmp_path, 0, "prompt-system.md", "prompt")
        assert path == tmp_path / "prompt-system.md"

    def test_disabled(self):
        assert save_artifact(None, 1, "x.txt", "x") is None

    def test_failure_is_swallowed(self, tmp_path, capsys):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        assert save_artifact(blocker, 1, "x.txt", "x") is None
        assert "Failed to save artifact" in capsys.readouterr().err
