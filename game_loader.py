"""Filesystem-backed loader for game manifests."""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set
from urllib.parse import urlparse

import yaml

from exceptions import GameLoadError, GameValidationError
from qa_types import GameDefinition


def _as_list(value: Any) -> List[str]:
    """Convert value to list of strings."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item) for item in value]
    if isinstance(value, str):
        return [value]
    raise GameLoadError(f"Expected string or list, got {type(value).__name__}")


def _as_set(value: Any) -> Set[str]:
    """Convert value to set of strings."""
    if value is None:
        return set()
    if isinstance(value, (list, set, tuple)):
        return {str(item) for item in value}
    if isinstance(value, str):
        return {value}
    raise GameLoadError(f"Expected string, list, or set, got {type(value).__name__}")


def _parse_game(data: Dict[str, Any], fallback_id: str) -> GameDefinition:
    """Parse a dictionary into a GameDefinition."""
    if not isinstance(data, dict):
        raise GameLoadError("Game entry must be a mapping")

    game_id = str(data.get("id") or fallback_id)
    url = data.get("url") or data.get("game_url")
    if not url:
        raise GameValidationError("Game is missing a 'url' field", game_id=game_id, field="url")
    if urlparse(str(url)).scheme not in {"http", "https", "file"}:
        raise GameValidationError(f"Unsupported URL: {url}", game_id=game_id, field="url")

    controls = data.get("expected_controls") or data.get("controls")
    if isinstance(controls, list):
        controls = ", ".join(str(c) for c in controls)

    priority = int(data.get("priority", 5))
    priority = min(10, max(1, priority))

    return GameDefinition(
        id=game_id,
        url=str(url),
        name=data.get("name") or data.get("title"),
        genre=data.get("genre"),
        expected_controls=controls,
        keys=_as_list(data.get("keys")),
        notes=data.get("notes"),
        tags=_as_set(data.get("tags")),
        skip=bool(data.get("skip", False)),
        skip_reason=data.get("skip_reason"),
        priority=priority,
    )


def game_from_url(url: str) -> GameDefinition:
    """Ad-hoc definition for a URL given on the command line."""
    parsed = urlparse(url)
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", f"{parsed.netloc}{parsed.path}").strip("-").lower()
    return _parse_game({"id": slug or "game", "url": url}, fallback_id="game")


def load_game_file(path: Path) -> List[GameDefinition]:
    """Load a manifest file (YAML or JSON) holding one game or a ``games`` list."""
    try:
        raw = path.read_text(encoding="utf-8")
        if path.suffix.lower() in {".yml", ".yaml"}:
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
        if isinstance(data, dict) and "games" in data:
            entries = data["games"] or []
            if not isinstance(entries, list):
                raise GameLoadError("'games' must be a list", file_path=str(path))
            return [_parse_game(entry, fallback_id=f"{path.stem}-{i + 1}") for i, entry in enumerate(entries)]
        return [_parse_game(data, fallback_id=path.stem)]
    except (GameLoadError, GameValidationError):
        raise
    except Exception as exc:
        raise GameLoadError(f"Failed to load game file: {exc}", file_path=str(path)) from exc


def discover_games(
    games_path: Path,
    only_ids: Optional[Iterable[str]] = None,
    include_tags: Optional[Set[str]] = None,
    exclude_tags: Optional[Set[str]] = None,
    include_skipped: bool = False,
    sort_by_priority: bool = False,
) -> List[GameDefinition]:
    """
    Load games from a manifest file or a directory of manifests.

    Args:
        games_path: Manifest file, or directory containing YAML/JSON manifests
        only_ids: If provided, only load games with these IDs
        include_tags: If provided, only include games with at least one of these tags
        exclude_tags: If provided, exclude games with any of these tags
        include_skipped: If True, include games marked as skip=true
        sort_by_priority: If True, sort games by priority (1=highest first)
    """
    games_path = games_path.expanduser().resolve()

    if not games_path.exists():
        raise GameLoadError(f"Games path does not exist: {games_path}")

    if games_path.is_file():
        all_files = [games_path]
    else:
        yaml_files = sorted(games_path.glob("*.yaml")) + sorted(games_path.glob("*.yml"))
        json_files = sorted(games_path.glob("*.json"))
        all_files = yaml_files + json_files

    id_filter = set(only_ids or [])
    found: List[GameDefinition] = []
    seen: Set[str] = set()

    for path in all_files:
        for game in load_game_file(path):
            if game.id in seen:
                raise GameValidationError(f"Duplicate game id in {path.name}", game_id=game.id, field="id")
            seen.add(game.id)

            if id_filter and game.id not in id_filter:
                continue
            if game.skip and not include_skipped:
                continue
            if not game.matches_filter(include_tags, exclude_tags):
                continue
            found.append(game)

    if id_filter:
        missing = id_filter - {g.id for g in found}
        if missing:
            raise GameLoadError(f"Games not found: {', '.join(sorted(missing))}")

    if sort_by_priority:
        found.sort(key=lambda g: g.priority)

    return found
