from __future__ import annotations

import sys
from pathlib import Path


def _bootstrap_paths() -> Path:
    """Ensure project root is on sys.path for package imports."""
    project_root = Path(__file__).resolve().parents[1]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))
    return project_root


def main() -> None:
    """Launch ClanBot directly via its runner."""
    _bootstrap_paths()

    from clan_bot.runner import run_clan_bot

    run_clan_bot()


if __name__ == "__main__":
    main()
