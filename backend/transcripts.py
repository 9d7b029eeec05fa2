"""
JSONL transcript storage.

Each session is stored as ``<sessionId>.jsonl`` with one turn per line, either
directly in the root directory or in a project directory one level below it.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError

from core.models import Turn, parse_turn

logger = logging.getLogger(__name__)

TRANSCRIPT_SUFFIX = ".jsonl"


def normalize_session_id(value: str) -> str:
    """Strip a trailing .jsonl so file names can be used as session ids."""
    if value.lower().endswith(TRANSCRIPT_SUFFIX):
        return value[: -len(TRANSCRIPT_SUFFIX)]
    return value


def normalize_entry(entry: Any) -> dict[str, Any] | None:
    """
    Normalize one transcript line.

    Returns None for entries that are not turns (non-objects, missing type,
    ``summary`` records).
    """
    if not isinstance(entry, dict):
        return None
    entry_type = entry.get("type")
    if not isinstance(entry_type, str) or entry_type.lower() == "summary":
        return None
    normalized = dict(entry)
    if "sessionId" in normalized and "session_id" not in normalized:
        normalized["session_id"] = normalized.pop("sessionId")
    return normalized


def parse_transcript(content: str) -> list[Turn]:
    """Parse JSONL content, skipping blank and invalid lines."""
    turns: list[Turn] = []
    for line_number, raw in enumerate(content.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        try:
            entry = normalize_entry(json.loads(line))
            if entry is None:
                continue
            turns.append(parse_turn(entry))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.debug("Skipping invalid transcript line %d: %s", line_number, e)
    return turns


class TranscriptStore:
    """Reads and appends JSONL session transcripts under one root."""

    def __init__(self, root: Path | str):
        self.root = Path(root).expanduser()

    def locate(self, session_id: str) -> Path | None:
        """Find the transcript file of a session, or None if it has none."""
        name = f"{normalize_session_id(session_id)}{TRANSCRIPT_SUFFIX}"
        direct = self.root / name
        if direct.is_file():
            return direct
        if not self.root.is_dir():
            return None
        for project_dir in sorted(p for p in self.root.iterdir() if p.is_dir()):
            candidate = project_dir / name
            if candidate.is_file():
                return candidate
        return None

    def path_for(self, session_id: str) -> Path:
        """Path to write a session's transcript to."""
        return self.locate(session_id) or self.root / f"{normalize_session_id(session_id)}{TRANSCRIPT_SUFFIX}"

    def exists(self, session_id: str) -> bool:
        return self.locate(session_id) is not None

    def load(self, session_id: str) -> list[Turn]:
        path = self.locate(session_id)
        if path is None:
            return []
        return parse_transcript(path.read_text(encoding="utf-8"))

    def append(self, session_id: str, turns: Iterable[Turn]) -> None:
        lines = [turn.model_dump_json(exclude_none=True) for turn in turns]
        if not lines:
            return
        path = self.path_for(session_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            for line in lines:
                f.write(line + "\n")

    def last_modified(self, session_id: str) -> float | None:
        path = self.locate(session_id)
        return path.stat().st_mtime if path is not None else None

    def list_session_ids(self) -> list[str]:
        """Every session with a transcript, most recently modified first."""
        if not self.root.is_dir():
            return []
        paths = list(self.root.glob(f"*{TRANSCRIPT_SUFFIX}"))
        paths += list(self.root.glob(f"*/*{TRANSCRIPT_SUFFIX}"))
        paths.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return [normalize_session_id(p.name) for p in paths]
