from __future__ import annotations

from pathlib import Path
import logging

from findrule_git.git_scope import GitRunner, check_branch, find_repo_root, resolve_changes
from findrule_git.models import ChangeSet

logger = logging.getLogger(__name__)


def normalize_candidate(path: Path | str) -> str:
    """Canonicalize the directory part of ``path`` but keep its file name.

    A symlinked file stays itself instead of turning into its target, which
    matches how git reports it.
    """
    p = Path(path).absolute()
    return str(p.parent.resolve() / p.name)


class ChangeCache:
    """Change sets for every repository seen during one traversal."""

    def __init__(
        self,
        branch: str,
        runner: GitRunner | None = None,
        include_uncommitted: bool = False,
    ):
        self.branch = branch
        self.runner = runner or GitRunner()
        self.include_uncommitted = include_uncommitted
        self.changes: dict[Path, ChangeSet] = {}
        self.dir_roots: dict[Path, Path] = {}
        self.resolutions = 0

    def root_for(self, directory: Path) -> Path:
        known: Path | None = None
        walked: list[Path] = []
        for candidate in (directory, *directory.parents):
            known = self.dir_roots.get(candidate)
            if known is not None:
                break
            walked.append(candidate)
            # a .git entry marks a checkout boundary, e.g. a submodule
            if (candidate / ".git").exists():
                break

        if known is None:
            known = find_repo_root(directory, self.runner)
            self.dir_roots[known] = known

        for seen in walked:
            if seen == known or known in seen.parents:
                self.dir_roots[seen] = known
        return known

    def changes_for(self, root: Path) -> ChangeSet:
        changes = self.changes.get(root)
        if changes is None:
            self.resolutions += 1
            logger.debug("resolving changes in %s since %s", root, self.branch)
            changes = resolve_changes(
                root,
                self.branch,
                self.runner,
                include_uncommitted=self.include_uncommitted,
            )
            self.changes[root] = changes
        return changes

    def member(self, path: Path | str) -> bool:
        candidate = normalize_candidate(path)
        root = self.root_for(Path(candidate).parent)
        return self.changes_for(root).contains(candidate)


class ChangedSinceBranch:
    """Predicate: has the file changed since HEAD diverged from ``branch``?

    Each traversal gets its own ChangeCache through ``start``; ``finish``
    throws it away. One instance holds one cache at a time, so the same
    instance must not drive two traversals concurrently.

    On a detached HEAD a local branch name such as ``main`` may not exist;
    pass the remote-qualified name (``origin/main``) instead.
    """

    def __init__(
        self,
        branch: str,
        runner: GitRunner | None = None,
        include_uncommitted: bool = False,
    ):
        check_branch(branch)
        self.branch = branch.strip()
        self.runner = runner or GitRunner()
        self.include_uncommitted = include_uncommitted
        self.cache: ChangeCache | None = None
        self.last_repositories: dict[str, ChangeSet] = {}

    def _new_cache(self) -> ChangeCache:
        return ChangeCache(self.branch, self.runner, include_uncommitted=self.include_uncommitted)

    def start(self, *roots: Path) -> None:
        cache = self._new_cache()
        # fail fast when the traversal is rooted outside any checkout
        for root in roots:
            cache.root_for(Path(normalize_candidate(root)))
        self.cache = cache

    def finish(self) -> None:
        self.last_repositories = self.repositories()
        self.cache = None

    def member(self, path: Path | str) -> bool:
        if self.cache is None:
            self.cache = self._new_cache()
        return self.cache.member(path)

    __call__ = member

    def repositories(self) -> dict[str, ChangeSet]:
        if self.cache is None:
            return dict(self.last_repositories)
        return {str(root): changes for root, changes in self.cache.changes.items()}
