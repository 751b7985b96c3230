from __future__ import annotations

import fnmatch
from pathlib import Path
from typing import Callable, Iterable, Iterator

from findrule_git.git_scope import GitRunner
from findrule_git.predicate import ChangedSinceBranch

Predicate = Callable[[Path], bool]

DEFAULT_EXCLUDES = [".git", ".git/**", "**/.git", "**/.git/**"]


def _is_excluded(path: Path, root: Path, exclude_patterns: list[str] | None) -> bool:
    if not exclude_patterns:
        return False

    rel = path.relative_to(root).as_posix()
    for pattern in exclude_patterns:
        p = pattern.strip()
        if not p:
            continue
        if fnmatch.fnmatch(rel, p):
            return True
    return False


class Rule:
    """A chain of predicates evaluated against every entry under a directory.

    Predicates are plain ``path -> bool`` callables. A predicate may also
    define ``start(*roots)`` and ``finish()``; they run once around a whole
    :meth:`iter` call, however many directories it is given, with
    ``finish`` guaranteed even on error.

        Rule().file().extension(".py").changed_in_git_since_branch("origin/main").in_(".")
    """

    def __init__(self) -> None:
        self.predicates: list[Predicate] = []
        self.exclude_patterns: list[str] = list(DEFAULT_EXCLUDES)

    def add(self, predicate: Predicate) -> "Rule":
        self.predicates.append(predicate)
        return self

    def file(self) -> "Rule":
        return self.add(lambda p: p.is_file())

    def directory(self) -> "Rule":
        return self.add(lambda p: p.is_dir())

    def name(self, *patterns: str) -> "Rule":
        globs = [p for p in patterns if p]
        return self.add(lambda p: any(fnmatch.fnmatch(p.name, g) for g in globs))

    def extension(self, *extensions: str) -> "Rule":
        wanted = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions if e}
        return self.add(lambda p: p.suffix.lower() in wanted)

    def exclude(self, *patterns: str) -> "Rule":
        self.exclude_patterns.extend(p for p in patterns if p)
        return self

    def changed_in_git_since_branch(
        self,
        branch: str,
        runner: GitRunner | None = None,
        include_uncommitted: bool = False,
    ) -> "Rule":
        """Only files changed since the current branch forked from ``branch``.

        With a detached HEAD (e.g. under a CI build) say ``origin/main``
        rather than ``main``: git has no local branches to resolve then.
        """
        return self.add(ChangedSinceBranch(branch, runner=runner, include_uncommitted=include_uncommitted))

    def _matches(self, path: Path) -> bool:
        return all(predicate(path) for predicate in self.predicates)

    def _walk(self, root: Path) -> Iterator[Path]:
        for path in sorted(root.rglob("*")):
            if _is_excluded(path, root, self.exclude_patterns):
                continue
            if self._matches(path):
                yield path

    def iter(self, *dirs: Path | str) -> Iterator[Path]:
        roots = [Path(d) for d in dirs]
        hooked = [p for p in self.predicates if hasattr(p, "start")]
        started: list[Predicate] = []
        try:
            for predicate in hooked:
                predicate.start(*roots)
                started.append(predicate)
            for root in roots:
                yield from self._walk(root)
        finally:
            for predicate in started:
                finish = getattr(predicate, "finish", None)
                if finish is not None:
                    finish()

    def in_(self, *dirs: Path | str) -> list[Path]:
        return list(self.iter(*dirs))


def find_changed_files(
    root: Path,
    branch: str,
    extensions: Iterable[str] | None = None,
    exclude_patterns: list[str] | None = None,
    runner: GitRunner | None = None,
    include_uncommitted: bool = False,
) -> list[Path]:
    rule = Rule().file()
    exts = [e for e in (extensions or []) if e]
    if exts:
        rule.extension(*exts)
    rule.exclude(*(exclude_patterns or []))
    rule.changed_in_git_since_branch(branch, runner=runner, include_uncommitted=include_uncommitted)
    return rule.in_(root)
