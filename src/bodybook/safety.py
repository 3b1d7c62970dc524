from __future__ import annotations

import sys
from pathlib import Path

from .entries import backup_path_for

REPO_OVERRIDE_FLAG = "--allow-repo-data-path"


def find_git_root(start: Path) -> Path | None:
    """Nearest directory at or above `start` holding a .git dir or worktree file."""
    start = Path(start).expanduser().resolve()
    for folder in (start, *start.parents):
        if (folder / ".git").exists():
            return folder
    return None


def journal_files(data_path: Path) -> list[Path]:
    # the backup sits next to the data file, so both land in the same checkout
    return [data_path, backup_path_for(data_path)]


def assert_safe_data_path(data_path: Path, allow_repo_data_path: bool) -> None:
    # journal data is private: keep it out of anything that might get pushed
    if allow_repo_data_path:
        return
    checkout = find_git_root(Path(data_path).parent)
    if checkout is None:
        return

    print("🚫 Refusing to keep your journal inside a git checkout.", file=sys.stderr)
    for f in journal_files(Path(data_path)):
        print(f"   would write: {f}", file=sys.stderr)
    print(f"   checkout:    {checkout}", file=sys.stderr)
    print(f"   Fix: use ~/.config/bodybook/*.json or pass {REPO_OVERRIDE_FLAG}", file=sys.stderr)
    raise SystemExit(2)
