"""CLI-friendly suite runner for browser game QA."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Set

from agent import GameQAAgent
from config import QAConfig, load_config
from exceptions import ConfigurationError, GameLoadError, GameQAError, GameValidationError
from game_loader import discover_games, game_from_url
from qa_types import GameDefinition, GameTestResult, SuiteResult
from reporters import JSONReporter
from schemas import Issue


class GameQARunner:
    """High-level runner; every game gets its own agent run and browser."""

    def __init__(
        self,
        config: QAConfig,
        agent: Optional[GameQAAgent] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.logger = logger or logging.getLogger("gameqa")
        self.agent = agent or GameQAAgent(config, logger=self.logger)
        self.reporter = JSONReporter()

    def _error_result(self, game: GameDefinition, message: str) -> GameTestResult:
        now = datetime.utcnow()
        return GameTestResult(
            game=game,
            status="error",
            playability_score=0,
            started_at=now,
            finished_at=now,
            issues=[Issue(severity="critical", description=message, source="runtime")],
            summary=message,
            browser_type=self.config.browser.browser,
        )

    async def run_game(self, game: GameDefinition) -> GameTestResult:
        """Run a single game; escaping exceptions become an error result."""
        try:
            result = await self.agent.run_game(game)
        except Exception as exc:
            self.logger.error(f"Game {game.id} crashed: {exc}", exc_info=True)
            result = self._error_result(game, f"Runner exception: {exc}")
        self._generate_report(result)
        return result

    async def run_sequential(self, games: Sequence[GameDefinition]) -> List[GameTestResult]:
        """Run games one after another."""
        results: List[GameTestResult] = []
        for i, game in enumerate(games, 1):
            self.logger.info(f"=== Running game {game.id} ({i}/{len(games)}) ===")
            results.append(await self.run_game(game))
        return results

    async def run_parallel(
        self,
        games: Sequence[GameDefinition],
        max_workers: int = 4,
    ) -> List[GameTestResult]:
        """Run games concurrently with limited concurrency."""
        semaphore = asyncio.Semaphore(max_workers)

        async def run_with_limit(game: GameDefinition, index: int) -> GameTestResult:
            async with semaphore:
                self.logger.info(f"=== Starting game {game.id} ({index}/{len(games)}) ===")
                return await self.run_game(game)

        tasks = [run_with_limit(game, i + 1) for i, game in enumerate(games)]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        final_results: List[GameTestResult] = []
        for game, result in zip(games, results):
            if isinstance(result, Exception):
                self.logger.error(f"Game {game.id} failed with exception: {result}")
                final_results.append(self._error_result(game, f"Exception: {result}"))
            else:
                final_results.append(result)
        return final_results

    async def run_all(self, games: Sequence[GameDefinition]) -> SuiteResult:
        """Run all games with configured parallelism."""
        start_time = datetime.utcnow()

        if self.config.parallel_workers > 1:
            self.logger.info(f"Testing {len(games)} games with {self.config.parallel_workers} parallel workers")
            results = await self.run_parallel(games, self.config.parallel_workers)
        else:
            results = await self.run_sequential(games)

        suite = SuiteResult(results=results, started_at=start_time, finished_at=datetime.utcnow())
        if results:
            path = self.reporter.generate_suite(results, self.config.reporting.reports_folder)
            self.logger.info(f"Suite JSON report: {path}")
        return suite

    def _generate_report(self, result: GameTestResult) -> None:
        path = self.reporter.generate(result, self.config.reporting.reports_folder)
        self.logger.info(f"JSON report: {path}")


def collect_games(args: argparse.Namespace) -> List[GameDefinition]:
    """Games from positional URLs plus an optional manifest file or directory."""
    games = [game_from_url(url) for url in args.urls]

    if args.games:
        include_tags: Optional[Set[str]] = set(args.tag) if args.tag else None
        exclude_tags: Optional[Set[str]] = set(args.exclude_tag) if args.exclude_tag else None
        games.extend(
            discover_games(
                Path(args.games),
                only_ids=args.game if args.game else None,
                include_tags=include_tags,
                exclude_tags=exclude_tags,
                include_skipped=args.include_skipped,
                sort_by_priority=args.sort_by_priority,
            )
        )
    return games


async def run_from_cli_args(args: argparse.Namespace, logger: logging.Logger) -> int:
    """Entry point shared by the CLI script."""
    try:
        games = collect_games(args)
    except (GameLoadError, GameValidationError) as exc:
        logger.error(str(exc))
        return 1

    if not games:
        logger.warning("No games to test: pass URLs or --games")
        return 0

    config_path = Path(args.config) if args.config else None
    cli_overrides = {
        "browser": args.browser,
        "headful": args.headful or None,
        "parallel": args.parallel,
        "verbose": args.verbose or None,
        "adaptive": args.adaptive or None,
        "budget": args.budget,
        "max_actions": args.max_actions,
        "duration_ms": args.duration_ms,
        "model": args.model,
        "base_url": args.base_url,
    }
    cli_overrides = {k: v for k, v in cli_overrides.items() if v is not None}

    try:
        config = load_config(config_path, cli_overrides)
    except ConfigurationError as exc:
        logger.error(f"Failed to load config: {exc}")
        return 1

    if args.reports_dir:
        config.reporting.reports_folder = Path(args.reports_dir)

    logger.info(f"Loaded {len(games)} game(s)")
    if config.verbose:
        logger.info(f"Browser: {config.browser.browser}, Headless: {config.browser.headless}")
        logger.info(f"Mode: {'adaptive' if config.adaptive.enabled else 'scripted'}, budget ${config.adaptive.max_budget:.2f}")
        logger.info(f"Parallel workers: {config.parallel_workers}")

    runner = GameQARunner(config=config, logger=logger)
    suite = await runner.run_all(games)

    print("\n" + "=" * 60)
    print("GAME QA SUMMARY")
    print("=" * 60)
    print(f"Total:   {suite.total}")
    print(f"Passed:  {suite.passed}")
    print(f"Failed:  {suite.failed}")
    print(f"Errored: {suite.errored}")
    print(f"Pass Rate: {suite.pass_rate:.1f}%")
    print(f"Duration: {suite.duration_seconds:.1f}s")
    print("=" * 60)

    if suite.failed_games:
        print("\nFailed Games:")
        for result in suite.failed_games:
            print(f"  - {result.game.id} [{result.status}] score {result.playability_score}: {result.summary[:80]}")

    return 1 if suite.failed_games else 0


def _build_arg_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Automated QA for browser games: start, play and score playability.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s https://example.com/pong            # Test one game
  %(prog)s --games games/ --tag arcade         # Test games from manifests
  %(prog)s URL --adaptive --budget 0.30        # Model-driven play with a budget
  %(prog)s --games games.yaml --parallel 4     # Four games at a time
        """,
    )

    parser.add_argument("urls", nargs="*", help="Game URLs to test")

    game_group = parser.add_argument_group("Game Selection")
    game_group.add_argument(
        "--games",
        help="Manifest file or directory of YAML/JSON game manifests",
    )
    game_group.add_argument(
        "--game",
        action="append",
        help="Specific game ID to run (can be used multiple times)",
    )
    game_group.add_argument(
        "--tag",
        action="append",
        help="Only run games with this tag (can be used multiple times)",
    )
    game_group.add_argument(
        "--exclude-tag",
        action="append",
        help="Exclude games with this tag (can be used multiple times)",
    )
    game_group.add_argument(
        "--include-skipped",
        action="store_true",
        help="Include games marked as skip=true",
    )
    game_group.add_argument(
        "--sort-by-priority",
        action="store_true",
        help="Sort games by priority (1=highest first)",
    )

    browser_group = parser.add_argument_group("Browser Options")
    browser_group.add_argument(
        "--browser",
        choices=["chromium", "firefox", "webkit"],
        help="Browser engine to use (default: chromium)",
    )
    browser_group.add_argument(
        "--headful",
        action="store_true",
        help="Run browser in headful mode (show GUI)",
    )

    model_group = parser.add_argument_group("Model Options")
    model_group.add_argument("--model", help="Vision model name (default: GAMEQA_MODEL or gpt-4o)")
    model_group.add_argument("--base-url", help="OpenAI-compatible API base URL")

    exec_group = parser.add_argument_group("Execution Options")
    exec_group.add_argument(
        "--adaptive",
        action="store_true",
        help="Play with the adaptive recommendation loop",
    )
    exec_group.add_argument(
        "--budget",
        type=float,
        metavar="USD",
        help="Maximum estimated spend per game (default: 0.50)",
    )
    exec_group.add_argument(
        "--max-actions",
        type=int,
        metavar="N",
        help="Maximum adaptive loop actions (default: 20)",
    )
    exec_group.add_argument(
        "--duration-ms",
        type=int,
        metavar="MS",
        help="Maximum gameplay duration in milliseconds",
    )
    exec_group.add_argument(
        "--parallel",
        type=int,
        metavar="N",
        help="Number of games tested concurrently (default: 1)",
    )
    exec_group.add_argument(
        "--config",
        help="Path to config file (default: gameqa.json if exists)",
    )

    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "--reports-dir",
        help="Directory for saving reports (default: reports)",
    )
    output_group.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )
    output_group.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-essential output",
    )

    return parser


def main() -> None:
    """Main entry point."""
    parser = _build_arg_parser()
    args = parser.parse_args()

    if args.quiet:
        log_level = logging.WARNING
    elif args.verbose:
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format="[%(levelname)s] %(message)s" if not args.verbose else "[%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger("gameqa")

    try:
        exit_code = asyncio.run(run_from_cli_args(args, logger))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = 130
    except GameQAError as exc:
        logger.error(f"Error: {exc}")
        exit_code = 1
    except Exception as exc:
        logger.exception(f"Unexpected error: {exc}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
