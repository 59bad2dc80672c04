"""File-backed documentation snapshots and version history.

Layout under the store root::

    snapshots/<version>.json   list of Documentation records
    history.json               list of VersionRecord, oldest first
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel

from api_autodoc.builder.base import Documentation
from api_autodoc.version.changes import ChangeAnalysis, ChangeSet, coerce_documentation
from api_autodoc.version.git import GitInfo

logger = logging.getLogger("api_autodoc.version.store")

_VERSION = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")


class StoreError(Exception):
    """The store holds a file that cannot be read back."""


class VersionRecord(BaseModel):
    version: str
    api_version: str
    major: int
    minor: int
    patch: int
    bump_type: str = "patch"
    bump_reason: str = ""
    changes: ChangeSet = ChangeSet()
    git_commit_hash: str | None = None
    git_branch: str | None = None
    total_endpoints: int = 0
    endpoints_added: int = 0
    endpoints_modified: int = 0
    endpoints_removed: int = 0
    previous_version: str | None = None
    release_date: str = ""


def parse_version(version: str) -> tuple[int, int, int]:
    match = _VERSION.match(version.strip()) if version else None
    if not match:
        raise ValueError(f"Invalid version: {version!r}")
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


class SnapshotStore:
    def __init__(self, root: Path | str):
        self.root = Path(root)
        self.snapshot_dir = self.root / "snapshots"
        self.history_file = self.root / "history.json"

    def save(
        self,
        version: str,
        docs: Iterable[Documentation],
        analysis: ChangeAnalysis | None = None,
        previous_version: str | None = None,
        git: GitInfo | None = None,
    ) -> VersionRecord:
        """Persist a snapshot and append its record to the history."""
        major, minor, patch = parse_version(version)
        docs = list(docs)
        analysis = analysis or ChangeAnalysis()

        self.snapshot_dir.mkdir(parents=True, exist_ok=True)
        snapshot_path = self.snapshot_dir / f"{version}.json"
        snapshot_path.write_text(
            json.dumps([doc.model_dump() for doc in docs], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

        record = VersionRecord(
            version=version,
            api_version=f"v{major}",
            major=major,
            minor=minor,
            patch=patch,
            bump_type=analysis.bump_type,
            bump_reason=analysis.bump_reason,
            changes=analysis.changes,
            git_commit_hash=git.current_commit_hash() if git else None,
            git_branch=git.current_branch() if git else None,
            total_endpoints=len(docs),
            endpoints_added=len(analysis.changes.new_endpoints),
            endpoints_modified=len(analysis.changes.modified_endpoints),
            endpoints_removed=len(analysis.changes.deprecated_endpoints),
            previous_version=previous_version,
            release_date=datetime.now(timezone.utc).isoformat(),
        )

        # A re-released version replaces its old record
        history = [r for r in self.history() if r.version != version]
        history.append(record)
        self.history_file.write_text(
            json.dumps([r.model_dump() for r in history], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        logger.info("Saved snapshot %s (%d endpoints)", version, len(docs))
        return record

    def load(self, version: str) -> list[Documentation]:
        snapshot_path = self.snapshot_dir / f"{version}.json"
        if not snapshot_path.exists():
            raise FileNotFoundError(f"No snapshot for version {version}: {snapshot_path}")

        data = self._read_json(snapshot_path)
        if not isinstance(data, list):
            raise StoreError(f"Snapshot {snapshot_path} is not a list")

        docs = []
        for entry in data:
            doc = coerce_documentation(entry)
            if doc is None:
                logger.warning("Skipping malformed entry in %s", snapshot_path)
                continue
            docs.append(doc)
        return docs

    def history(self) -> list[VersionRecord]:
        if not self.history_file.exists():
            return []
        data = self._read_json(self.history_file)
        if not isinstance(data, list):
            raise StoreError(f"History {self.history_file} is not a list")
        return [VersionRecord.model_validate(entry) for entry in data]

    def latest(self) -> VersionRecord | None:
        history = self.history()
        return history[-1] if history else None

    def changelog(self, from_version: str | None = None, to_version: str | None = None) -> list[VersionRecord]:
        """Records with from_version <= version <= to_version, oldest first."""
        low = parse_version(from_version) if from_version else None
        high = parse_version(to_version) if to_version else None

        result = []
        for record in self.history():
            current = (record.major, record.minor, record.patch)
            if low is not None and current < low:
                continue
            if high is not None and current > high:
                continue
            result.append(record)
        return result

    @staticmethod
    def _read_json(path: Path):
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except ValueError as e:
            raise StoreError(f"Invalid JSON in {path}: {e}") from e
