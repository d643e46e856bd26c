"""Unit tests for reporters module."""
from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

from qa_types import GameTestResult
from reporters import JSONReporter, ReportFormat


class TestJSONReporter:
    """Tests for JSON reporter."""

    def test_format(self):
        assert JSONReporter().format == ReportFormat.JSON

    def test_generates_valid_json(self, temp_dir: Path, sample_game_result: GameTestResult):
        reporter = JSONReporter()
        report_path = reporter.generate(sample_game_result, temp_dir)

        assert report_path.exists()
        assert report_path.suffix == ".json"
        assert report_path.name.startswith("pong-")

        data = json.loads(report_path.read_text())
        assert len(data["games"]) == 1
        assert data["summary"] == {"total": 1, "passed": 1, "failed": 0, "errored": 0}

    def test_json_structure(self, temp_dir: Path, sample_game_result: GameTestResult):
        report_path = JSONReporter().generate(sample_game_result, temp_dir)
        game = json.loads(report_path.read_text())["games"][0]

        assert game["game"]["id"] == "pong"
        assert game["game"]["tags"] == ["arcade", "smoke"]
        assert game["result"]["status"] == "pass"
        assert game["result"]["playability_score"] == 82
        assert game["result"]["game_type"] == "canvas"
        assert game["result"]["duration_seconds"] == 30.0
        assert game["start_detection"]["strategy"] == "dom"
        assert game["start_detection"]["coordinates"] == {"x": 640.0, "y": 360.0}
        assert game["adaptive_loop"]["completion_reason"] == "max_actions"
        assert game["adaptive_loop"]["actions"][1]["target"] == {"x": 100.0, "y": 200.0}
        assert game["issues"][0]["severity"] == "minor"
        assert game["console_errors"] == ["Uncaught TypeError: x is undefined"]

    def test_scripted_result_has_no_loop(self, temp_dir: Path, sample_game_result: GameTestResult):
        scripted = replace(sample_game_result, loop_result=None, start_outcome=None)
        game = json.loads(JSONReporter().generate(scripted, temp_dir).read_text())["games"][0]

        assert game["adaptive_loop"] is None
        assert game["start_detection"] is None

    def test_suite_report(self, temp_dir: Path, sample_game_result: GameTestResult):
        failed = replace(sample_game_result, status="fail", playability_score=20, summary="Black screen")
        errored = replace(sample_game_result, status="error", playability_score=0)

        report_path = JSONReporter().generate_suite([sample_game_result, failed, errored], temp_dir)
        data = json.loads(report_path.read_text())

        summary = data["summary"]
        assert summary["total"] == 3
        assert summary["passed"] == 1
        assert summary["failed"] == 1
        assert summary["errored"] == 1
        assert summary["pass_rate"] == 33.33
        assert summary["avg_playability_score"] == 34.0
        assert [g["status"] for g in data["failed_games"]] == ["fail", "error"]

    def test_creates_output_dir(self, temp_dir: Path, sample_game_result: GameTestResult):
        output_dir = temp_dir / "nested" / "reports"
        report_path = JSONReporter().generate(sample_game_result, output_dir)
        assert report_path.parent == output_dir
