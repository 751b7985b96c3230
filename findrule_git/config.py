from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import os
import yaml


CONFIG_FILENAME = ".findrule-git.yml"

DEFAULT_CONFIG = {
    "exclude_paths": [
        ".git/**",
        "node_modules/**",
        ".venv/**",
        "venv/**",
        "__pycache__/**",
    ],
}

TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class FindConfig:
    branch: str | None = None
    exclude_paths: list[str] = field(default_factory=list)
    extensions: list[str] = field(default_factory=list)
    include_uncommitted: bool = False


def load_env_file(path: Path) -> None:
    """Load simple KEY=VALUE pairs from a .env file without overriding existing env."""
    if not path.exists() or not path.is_file():
        return

    for raw in path.read_text(errors="ignore").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_list(value, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ValueError(f"Config '{key}' must be a list")
    return [str(x) for x in value]


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY


def load_config(path: str | Path | None, root: Path | None = None) -> FindConfig:
    """Build a FindConfig from defaults, then the YAML file, then FINDRULE_GIT_* env.

    Without an explicit ``path`` the file is looked up as ``.findrule-git.yml``
    under ``root``; its absence is not an error.
    """
    data: dict = {}
    config_path: Path | None = None
    if path:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
    elif root is not None and (root / CONFIG_FILENAME).is_file():
        config_path = root / CONFIG_FILENAME

    if config_path is not None:
        data = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")

    exclude_paths = list(DEFAULT_CONFIG["exclude_paths"])
    exclude_paths.extend(_as_list(data.get("exclude_paths"), "exclude_paths"))

    branch = data.get("branch")
    include_uncommitted = _as_bool(data.get("include_uncommitted", False))

    env_branch = (os.getenv("FINDRULE_GIT_BRANCH") or "").strip()
    if env_branch:
        branch = env_branch
    env_uncommitted = os.getenv("FINDRULE_GIT_UNCOMMITTED")
    if env_uncommitted:
        include_uncommitted = _as_bool(env_uncommitted)

    return FindConfig(
        branch=str(branch) if branch else None,
        exclude_paths=exclude_paths,
        extensions=_as_list(data.get("extensions"), "extensions"),
        include_uncommitted=include_uncommitted,
    )
