from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import logging
import os
import subprocess

from findrule_git.models import ChangeSet

logger = logging.getLogger(__name__)

# stderr fragments git prints when a ref cannot be resolved
UNKNOWN_REF_MARKERS = (
    "not a valid object name",
    "unknown revision",
    "bad revision",
    "not a valid commit name",
    "ambiguous argument",
)

# status letters whose record carries a single path
SINGLE_PATH_STATUSES = {"A", "M", "T"}
# status letters whose record carries old and new path
TWO_PATH_STATUSES = {"R", "C"}


class GitScopeError(RuntimeError):
    pass


class NotARepositoryError(GitScopeError):
    pass


class GitInvocationError(GitScopeError):
    def __init__(self, args_list: list[str], returncode: int, stderr: str):
        self.args_list = list(args_list)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or f"exit status {returncode}"
        super().__init__(f"git {' '.join(args_list)} failed: {detail}")


@dataclass(frozen=True)
class GitResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitRunner:
    """Runs git subcommands in an explicit working directory.

    The process-wide working directory is never touched, so calls stay
    independent of whatever else the host process does with ``os.chdir``.
    """

    def __init__(self, git: str = "git"):
        self.git = git

    def run(self, args: list[str], cwd: Path) -> GitResult:
        cmd = [self.git, *args]
        logger.debug("running %s in %s", cmd, cwd)
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(cwd),
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise GitScopeError("git is not installed or not available in PATH") from exc

        return GitResult(
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )


def _start_dir(start: Path) -> Path:
    if start.is_dir():
        return start
    if start.exists():
        return start.parent
    raise NotARepositoryError(f"{start} does not exist, so it is not inside a git repository")


def find_repo_root(start: Path, runner: GitRunner | None = None) -> Path:
    runner = runner or GitRunner()
    directory = _start_dir(Path(start))
    args = ["rev-parse", "--show-toplevel"]
    result = runner.run(args, directory)

    if not result.ok:
        stderr = result.stderr.strip()
        if "not a git repository" in stderr.lower():
            raise NotARepositoryError(f"{directory} is not inside a git repository. {stderr}".strip())
        raise GitInvocationError(args, result.returncode, result.stderr)

    top = result.stdout.strip()
    if not top:
        # bare repositories and the inside of .git report no work tree
        raise NotARepositoryError(f"{directory} is not inside a git repository work tree")
    return Path(top).resolve()


def check_branch(branch: str) -> None:
    if not branch or not branch.strip():
        raise ValueError("branch must be a non-empty git reference")
    if branch.strip().startswith("-"):
        raise ValueError(f"branch '{branch}' looks like a command-line option, not a git reference")


def has_commits(root: Path, runner: GitRunner) -> bool:
    return runner.run(["rev-parse", "--verify", "--quiet", "HEAD"], root).ok


def find_merge_base(root: Path, branch: str, runner: GitRunner) -> str | ChangeSet:
    """Return the merge base of HEAD and ``branch``.

    When git reports several merge bases only the first is used. Soft
    failures come back as a ChangeSet instead of a SHA: ``empty`` for a
    repository with no commits, ``unresolved`` (plus a logged warning) for
    a ref git does not know or one sharing no history with HEAD.
    """
    args = ["merge-base", "--all", "HEAD", branch]
    result = runner.run(args, root)

    if result.ok:
        for line in result.stdout.splitlines():
            sha = line.strip()
            if sha:
                return sha

    if not has_commits(root, runner):
        logger.debug("%s has no commits yet; nothing to diff against", root)
        return ChangeSet.empty(branch)

    stderr = result.stderr.strip()
    if result.ok or (result.returncode == 1 and not stderr):
        reason = f"Branch '{branch}' has no common ancestor with HEAD in {root}"
    elif any(marker in stderr.lower() for marker in UNKNOWN_REF_MARKERS):
        reason = f"Branch '{branch}' is not a valid reference in {root}: {stderr}"
    else:
        raise GitInvocationError(args, result.returncode, result.stderr)

    logger.warning("%s; no files will match", reason)
    return ChangeSet.unresolved(branch, reason)


def parse_name_status(output: str) -> list[str]:
    """Return repo-relative paths from ``git diff -z --name-status`` output.

    Fields are NUL-separated: a status, then one path, or old and new path
    for renames/copies. Deletions are skipped and renames/copies keep only
    their destination.
    """
    paths: list[str] = []
    fields = output.split("\0")
    i = 0
    while i < len(fields):
        status = fields[i].strip()
        i += 1
        if not status:
            continue
        kind = status[:1]
        width = 2 if kind in TWO_PATH_STATUSES else 1
        record = fields[i:i + width]
        i += width
        if len(record) < width:
            logger.debug("skipping truncated diff record: %r", [status, *record])
            continue

        if kind == "D":
            continue
        if kind in TWO_PATH_STATUSES or kind in SINGLE_PATH_STATUSES:
            paths.append(record[-1])
        else:
            logger.debug("skipping unrecognized diff record: %r", [status, *record])
    return paths


def normalize_path(root: Path, rel: str) -> str:
    return os.path.normpath(os.path.join(str(root), rel))


def changed_paths(
    root: Path,
    merge_base: str,
    runner: GitRunner,
    include_uncommitted: bool = False,
) -> set[str]:
    # -z turns off path quoting, so names with quotes or backslashes come through verbatim
    args = [
        "diff",
        "-z",
        "--name-status",
        "-M",
        "--diff-filter=ACMRT",
        merge_base,
    ]
    if not include_uncommitted:
        args.append("HEAD")
    args.append("--")

    result = runner.run(args, root)
    if not result.ok:
        raise GitInvocationError(args, result.returncode, result.stderr)

    return {normalize_path(root, rel) for rel in parse_name_status(result.stdout)}


def resolve_changes(
    root: Path,
    branch: str,
    runner: GitRunner | None = None,
    include_uncommitted: bool = False,
) -> ChangeSet:
    check_branch(branch)
    runner = runner or GitRunner()

    base = find_merge_base(root, branch, runner)
    if isinstance(base, ChangeSet):
        return base

    paths = changed_paths(root, base, runner, include_uncommitted=include_uncommitted)
    logger.debug("%d file(s) changed in %s since %s (%s)", len(paths), root, branch, base)
    return ChangeSet.changed(branch, base, paths)


def resolve(
    start: Path,
    branch: str,
    runner: GitRunner | None = None,
    include_uncommitted: bool = False,
) -> tuple[Path, ChangeSet]:
    """Find the repository enclosing ``start`` and what changed on it since ``branch``.

    With a detached HEAD (typical under CI) a bare branch name such as
    ``main`` may not exist locally; pass ``origin/main`` instead.
    """
    runner = runner or GitRunner()
    root = find_repo_root(start, runner)
    return root, resolve_changes(root, branch, runner, include_uncommitted=include_uncommitted)
