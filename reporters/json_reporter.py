"""JSON report generator for game QA runs."""
from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from qa_types import GameTestResult, LoopResult
from reporters.base import BaseReporter, ReportFormat

REPORT_VERSION = "1.0"


class JSONReporter(BaseReporter):
    """Generate machine-readable JSON reports."""

    @property
    def format(self) -> ReportFormat:
        return ReportFormat.JSON

    def _loop_to_dict(self, loop: LoopResult) -> Dict[str, Any]:
        return {
            "completion_reason": loop.completion_reason.value,
            "success": loop.success,
            "state_checks": loop.state_checks,
            "estimated_cost": round(loop.estimated_cost, 4),
            "actions": [a.to_dict() for a in loop.actions],
        }

    def _result_to_dict(self, result: GameTestResult) -> Dict[str, Any]:
        """Convert GameTestResult to JSON-serializable dict."""
        game = result.game
        return {
            "game": {
                "id": game.id,
                "url": game.url,
                "name": game.name,
                "genre": game.genre,
                "tags": sorted(game.tags),
            },
            "result": {
                "status": result.status,
                "playability_score": result.playability_score,
                "summary": result.summary,
                "game_type": result.game_type.value,
                "browser": result.browser_type,
                "started_at": result.started_at.isoformat(),
                "finished_at": result.finished_at.isoformat(),
                "duration_seconds": round(result.duration_seconds, 2),
                "estimated_cost": round(result.estimated_cost, 4),
            },
            "start_detection": result.start_outcome.to_dict() if result.start_outcome else None,
            "adaptive_loop": self._loop_to_dict(result.loop_result) if result.loop_result else None,
            "issues": [issue.model_dump() for issue in result.issues],
            "console_errors": result.console_errors,
            "screenshots": [str(p) for p in result.screenshots],
        }

    def generate(self, result: GameTestResult, output_dir: Path) -> Path:
        """Generate JSON report for a single game result."""
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.utcnow().strftime("%Y%m%d-%H%M%S")
        target = output_dir / f"{result.game.id}-{timestamp}.json"

        report_data = {
            "generated_at": datetime.utcnow().isoformat(),
            "report_version": REPORT_VERSION,
            "games": [self._result_to_dict(result)],
            "summary": {
                "total": 1,
                "passed": 1 if result.status == "pass" else 0,
                "failed": 1 if result.status == "fail" else 0,
                "errored": 1 if result.status == "error" else 0,
            },
        }

        target.write_text(json.dumps(report_data, indent=2), encoding="utf-8")
        return target

    def generate_suite(self, results: List[GameTestResult], output_dir: Path) -> Path:
        """Generate combined JSON report for multiple game results."""
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.utcnow().strftime("%Y%m%d-%H%M%S")
        target = output_dir / f"suite-{timestamp}.json"

        passed = sum(1 for r in results if r.status == "pass")
        errored = sum(1 for r in results if r.status == "error")
        failed = len(results) - passed - errored
        pass_rate = (passed / len(results) * 100) if results else 0.0

        scores = [r.playability_score for r in results]
        durations = [r.duration_seconds for r in results]
        total_cost = sum(r.estimated_cost for r in results)

        report_data = {
            "generated_at": datetime.utcnow().isoformat(),
            "report_version": REPORT_VERSION,
            "games": [self._result_to_dict(r) for r in results],
            "summary": {
                "total": len(results),
                "passed": passed,
                "failed": failed,
                "errored": errored,
                "pass_rate": round(pass_rate, 2),
                "avg_playability_score": round(sum(scores) / len(scores), 1) if scores else 0,
                "total_duration_seconds": round(sum(durations), 2),
                "estimated_cost": round(total_cost, 4),
            },
            "failed_games": [
                {"id": r.game.id, "status": r.status, "summary": r.summary}
                for r in results if r.status != "pass"
            ],
        }

        target.write_text(json.dumps(report_data, indent=2), encoding="utf-8")
        return target
