from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


CHANGESET_STATUSES = {"changed", "empty", "unresolved"}


@dataclass(frozen=True)
class ChangeSet:
    status: str  # changed|empty|unresolved
    branch: str
    paths: frozenset[str] = frozenset()
    merge_base: str | None = None
    reason: str | None = None

    @classmethod
    def changed(cls, branch: str, merge_base: str, paths: set[str] | frozenset[str]) -> "ChangeSet":
        return cls(status="changed", branch=branch, paths=frozenset(paths), merge_base=merge_base)

    @classmethod
    def empty(cls, branch: str) -> "ChangeSet":
        return cls(status="empty", branch=branch)

    @classmethod
    def unresolved(cls, branch: str, reason: str) -> "ChangeSet":
        return cls(status="unresolved", branch=branch, reason=reason)

    def contains(self, path: str) -> bool:
        return self.status == "changed" and path in self.paths

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["paths"] = sorted(self.paths)
        return out


@dataclass(frozen=True)
class FindReport:
    searched_path: str
    branch: str | None
    files: list[str]
    repositories: dict[str, ChangeSet] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def summary(self) -> dict[str, int]:
        counts = {k: 0 for k in sorted(CHANGESET_STATUSES)}
        for changes in self.repositories.values():
            counts[changes.status] = counts.get(changes.status, 0) + 1
        counts["files"] = len(self.files)
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "searched_path": str(Path(self.searched_path).resolve()),
            "branch": self.branch,
            "summary": self.summary(),
            "repositories": {
                root: {
                    "status": changes.status,
                    "merge_base": changes.merge_base,
                    "changed_files": len(changes.paths),
                    "reason": changes.reason,
                }
                for root, changes in sorted(self.repositories.items())
            },
            "warnings": list(self.warnings),
            "files": list(self.files),
        }
