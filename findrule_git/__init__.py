"""findrule-git: find files changed in git since a branch diverged."""

__version__ = "0.1.0"
