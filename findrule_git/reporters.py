from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from findrule_git import __version__
from findrule_git.models import FindReport


OUTPUT_FORMATS = {"text", "null", "json"}


def _display(path: str, root: Path, relative: bool) -> str:
    if not relative:
        return path
    try:
        return Path(path).relative_to(root).as_posix()
    except ValueError:
        return path


def build_json_report(report: FindReport) -> dict[str, Any]:
    out = report.to_dict()
    out["tool"] = {"name": "findrule-git", "version": __version__}
    return out


def render_listing(report: FindReport, fmt: str = "text", relative: bool = False) -> str:
    if fmt not in OUTPUT_FORMATS:
        raise ValueError(f"Unknown output format '{fmt}' (expected one of {', '.join(sorted(OUTPUT_FORMATS))})")

    if fmt == "json":
        return json.dumps(build_json_report(report), indent=2)

    root = Path(report.searched_path).resolve()
    names = [_display(f, root, relative) for f in report.files]
    if fmt == "null":
        return "".join(f"{n}\0" for n in names)
    return "\n".join(names)


def write_json_report(report: FindReport, path: Path) -> None:
    path.write_text(json.dumps(build_json_report(report), indent=2))
