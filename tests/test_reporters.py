import json
from pathlib import Path

import pytest

from findrule_git import __version__
from findrule_git.models import ChangeSet, FindReport
from findrule_git.reporters import build_json_report, render_listing, write_json_report


def _report(root: Path) -> FindReport:
    root = root.resolve()
    return FindReport(
        searched_path=str(root),
        branch="origin/main",
        files=[str(root / "a.py"), str(root / "pkg" / "b.py")],
        repositories={
            str(root): ChangeSet.changed("origin/main", "abc", {str(root / "a.py"), str(root / "pkg" / "b.py")}),
            "/elsewhere": ChangeSet.unresolved("origin/main", "Branch 'origin/main' is not a valid reference"),
        },
        warnings=["Branch 'origin/main' is not a valid reference"],
    )


def test_text_listing_relative(tmp_path: Path):
    out = render_listing(_report(tmp_path), relative=True)
    assert out == "a.py\npkg/b.py"


def test_null_listing_is_nul_terminated(tmp_path: Path):
    out = render_listing(_report(tmp_path), fmt="null")
    assert out.endswith("\0")
    assert out.count("\0") == 2
    assert out.split("\0")[0] == str(tmp_path.resolve() / "a.py")


def test_json_report_summary(tmp_path: Path):
    data = build_json_report(_report(tmp_path))
    assert data["tool"]["version"] == __version__
    assert data["summary"] == {"changed": 1, "empty": 0, "unresolved": 1, "files": 2}
    repo = data["repositories"][str(tmp_path.resolve())]
    assert repo["status"] == "changed"
    assert repo["changed_files"] == 2


def test_write_json_report(tmp_path: Path):
    out = tmp_path / "report.json"
    write_json_report(_report(tmp_path), out)
    assert json.loads(out.read_text())["branch"] == "origin/main"


def test_unknown_format(tmp_path: Path):
    with pytest.raises(ValueError):
        render_listing(_report(tmp_path), fmt="xml")


def test_changeset_membership_by_status():
    assert ChangeSet.changed("main", "abc", {"/r/a.py"}).contains("/r/a.py")
    assert not ChangeSet.empty("main").contains("/r/a.py")
    assert not ChangeSet.unresolved("main", "nope").contains("/r/a.py")
    assert ChangeSet.changed("main", "abc", {"/r/b.py", "/r/a.py"}).to_dict()["paths"] == ["/r/a.py", "/r/b.py"]
