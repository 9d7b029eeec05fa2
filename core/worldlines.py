"""
Worldline (branch family) resolution.

Every branch is stored as a ``BranchRecord``. A worldline is the set of
sessions descended from one root session; the root has no record of its own.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Protocol

from pydantic import ValidationError

from .exceptions import InvalidOperationError
from .models import BranchRecord, BranchResult, NavigationGroup, WorldlineSibling

logger = logging.getLogger(__name__)

BRANCH_RECORD_SUFFIX = ".branch.json"


class BranchStore(Protocol):
    """Durable storage for branch records."""

    def load(self, session_id: str) -> BranchRecord | None:
        ...

    def save(self, record: BranchRecord) -> None:
        ...

    def list_records(self) -> list[BranchRecord]:
        ...


class InMemoryBranchStore:
    def __init__(self) -> None:
        self._records: dict[str, BranchRecord] = {}

    def load(self, session_id: str) -> BranchRecord | None:
        return self._records.get(session_id)

    def save(self, record: BranchRecord) -> None:
        self._records[record.sessionId] = record

    def list_records(self) -> list[BranchRecord]:
        return list(self._records.values())


class JsonFileBranchStore:
    """Stores each record as ``<sessionId>.branch.json`` in one directory."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory).expanduser()

    def _path(self, session_id: str) -> Path:
        return self.directory / f"{session_id}{BRANCH_RECORD_SUFFIX}"

    def _read(self, path: Path) -> BranchRecord | None:
        try:
            return BranchRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Skipping unreadable branch record %s: %s", path, e)
            return None

    def load(self, session_id: str) -> BranchRecord | None:
        path = self._path(session_id)
        if not path.exists():
            return None
        return self._read(path)

    def save(self, record: BranchRecord) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(record.sessionId).write_text(record.model_dump_json(indent=2), encoding="utf-8")

    def list_records(self) -> list[BranchRecord]:
        if not self.directory.is_dir():
            return []
        records = []
        for path in sorted(self.directory.glob(f"*{BRANCH_RECORD_SUFFIX}")):
            record = self._read(path)
            if record is not None:
                records.append(record)
        return records


class WorldlineResolver:
    """
    Computes sibling relationships within a worldline.

    Args:
        store: Branch record storage
        last_modified: Optional lookup of a session's last modification time
    """

    def __init__(
        self,
        store: BranchStore,
        last_modified: Callable[[str], float | None] | None = None,
    ):
        self.store = store
        self._last_modified = last_modified

    def record_branch(self, result: BranchResult, created_at: float | None = None) -> BranchRecord:
        """
        Persist a completed branch.

        The worldline id is inherited from the parent's own record, or is the
        parent's id when the parent is a root.

        Raises:
            InvalidOperationError: If the branch never received a session id
        """
        if not result.newSessionId:
            raise InvalidOperationError("Cannot record a branch without a session id")

        parent = self.store.load(result.parentSessionId)
        record = BranchRecord(
            sessionId=result.newSessionId,
            parentSessionId=result.parentSessionId,
            branchPointMessageUuid=result.branchPointMessageUuid,
            branchPointParentUuid=result.branchPointParentUuid,
            worldlineId=parent.worldlineId if parent else result.parentSessionId,
            createdAt=created_at if created_at is not None else time.time(),
        )
        self.store.save(record)
        logger.info(
            "Recorded branch %s of %s (worldline %s)",
            record.sessionId,
            record.parentSessionId,
            record.worldlineId,
        )
        return record

    def worldline_id_of(self, session_id: str) -> str:
        record = self.store.load(session_id)
        return record.worldlineId if record else session_id

    def _modified(self, session_id: str) -> float | None:
        return self._last_modified(session_id) if self._last_modified else None

    def siblings_of(self, session_id: str) -> list[WorldlineSibling]:
        """
        Every session of ``session_id``'s worldline, root first.

        Entries are sorted by creation time; the synthetic root entry has no
        parent and no branch point.
        """
        worldline_id = self.worldline_id_of(session_id)
        siblings = [
            WorldlineSibling(
                sessionId=worldline_id,
                createdAt=0,
                lastModifiedAt=self._modified(worldline_id),
            )
        ]
        for record in self.store.list_records():
            if record.worldlineId != worldline_id or record.sessionId == worldline_id:
                continue
            siblings.append(
                WorldlineSibling(
                    sessionId=record.sessionId,
                    parentSessionId=record.parentSessionId,
                    branchPointMessageUuid=record.branchPointMessageUuid,
                    branchPointParentUuid=record.branchPointParentUuid,
                    createdAt=record.createdAt,
                    lastModifiedAt=self._modified(record.sessionId),
                )
            )
        siblings.sort(key=lambda s: s.createdAt)
        return siblings

    def branches_at_message(self, session_id: str, message_uuid: str) -> list[WorldlineSibling]:
        return [s for s in self.siblings_of(session_id) if s.branchPointMessageUuid == message_uuid]

    def navigation_groups(self, session_id: str) -> list[NavigationGroup]:
        """
        Group the worldline by the history point the branches share.

        Branches are keyed by ``branchPointParentUuid`` (present in both the
        parent and the branch), falling back to ``branchPointMessageUuid``.
        The parent session is put first in each group so "stay on parent" is
        always an option.
        """
        siblings = self.siblings_of(session_id)
        by_id = {s.sessionId: s for s in siblings}
        groups: dict[str, list[WorldlineSibling]] = {}

        for sibling in siblings:
            key = sibling.branchPointParentUuid or sibling.branchPointMessageUuid
            if key:
                groups.setdefault(key, []).append(sibling)

        for members in groups.values():
            parent = by_id.get(members[0].parentSessionId or "")
            if parent is not None and not any(m.sessionId == parent.sessionId for m in members):
                members.insert(0, parent)

        return [NavigationGroup(anchorUuid=key, sessions=members) for key, members in groups.items()]
