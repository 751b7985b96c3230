from __future__ import annotations

from pathlib import Path
import logging
import typer

from findrule_git.config import load_config, load_env_file
from findrule_git.finder import Rule
from findrule_git.git_scope import GitScopeError
from findrule_git.models import FindReport
from findrule_git.predicate import ChangedSinceBranch, normalize_candidate
from findrule_git.reporters import OUTPUT_FORMATS, render_listing, write_json_report

app = typer.Typer(help="findrule-git: list files changed since the branch forked from another")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.callback()
def main() -> None:
    """findrule-git command group."""


@app.command("list")
def list_changed(
    path: str = typer.Argument(".", help="Directory to search (inside a git checkout)"),
    branch: str | None = typer.Option(None, "--branch", "-b", help="Reference branch, e.g. origin/main"),
    config: str | None = typer.Option(None, help="Config YAML path (default: <path>/.findrule-git.yml)"),
    ext: list[str] = typer.Option([], "--ext", help="Only files with this extension (repeatable)"),
    exclude: list[str] = typer.Option([], "--exclude", help="Glob of paths to skip, relative to PATH (repeatable)"),
    uncommitted: bool = typer.Option(False, "--uncommitted", help="Also match uncommitted working-tree changes"),
    fmt: str = typer.Option("text", "--format", help="Output format: text|null|json"),
    relative: bool = typer.Option(False, help="Print paths relative to PATH"),
    json_out: str | None = typer.Option(None, help="Optional JSON report output path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log git invocations"),
) -> None:
    _setup_logging(verbose)

    root = Path(path).resolve()
    if not root.is_dir():
        typer.secho(f"Not a directory: {root}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)
    if fmt not in OUTPUT_FORMATS:
        typer.secho(f"Unknown format '{fmt}'", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    load_env_file(Path.cwd() / ".env")
    load_env_file(root / ".env")

    try:
        cfg = load_config(config, root=root)
    except (FileNotFoundError, ValueError) as exc:
        typer.secho(f"Invalid config: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    target = branch or cfg.branch
    if not target:
        typer.secho("No branch given: pass --branch or set FINDRULE_GIT_BRANCH", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    changed = ChangedSinceBranch(target, include_uncommitted=uncommitted or cfg.include_uncommitted)
    rule = Rule().file().exclude(*cfg.exclude_paths, *exclude)
    extensions = list(ext) or cfg.extensions
    if extensions:
        rule.extension(*extensions)
    rule.add(changed)

    try:
        files = [normalize_candidate(p) for p in rule.iter(root)]
    except GitScopeError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    repositories = changed.repositories()
    report = FindReport(
        searched_path=str(root),
        branch=target,
        files=files,
        repositories=repositories,
        warnings=[c.reason for c in repositories.values() if c.reason],
    )

    output = render_listing(report, fmt=fmt, relative=relative)
    if output:
        typer.echo(output, nl=fmt != "null")

    if json_out:
        write_json_report(report, Path(json_out))


if __name__ == "__main__":
    app()
