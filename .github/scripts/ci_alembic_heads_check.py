"""CI gate: the Alembic migration graph must be a single chain.

A second root (down_revision = None) or a forked head makes `alembic upgrade
head` ambiguous. New migrations chain off the current head.

Usage:
  python .github/scripts/ci_alembic_heads_check.py
"""
from __future__ import annotations

import sys
from pathlib import Path

api_root = Path(__file__).resolve().parents[2] / "apps" / "api"
sys.path.insert(0, str(api_root))

from alembic.config import Config
from alembic.script import ScriptDirectory

ROOT_REVISION = "001_initial_schema"


def main() -> int:
    cfg = Config(str(api_root / "alembic.ini"))
    cfg.set_main_option("script_location", str(api_root / "alembic"))

    script = ScriptDirectory.from_config(cfg)
    heads = sorted(script.get_heads())
    revisions = list(script.walk_revisions())
    roots = sorted(r.revision for r in revisions if r.down_revision is None)

    if len(heads) != 1:
        print("MIGRATION HEAD CHECK FAILED")
        print(f"  Expected exactly one head, found {len(heads)}: {heads}")
        print("  Fix: point the newest migration's down_revision at the other head.")
        return 1

    if roots != [ROOT_REVISION]:
        print("MIGRATION ROOT CHECK FAILED")
        print(f"  Expected the only root to be {ROOT_REVISION}, found: {roots}")
        print("  Fix: new migrations must chain off the current head, not use down_revision = None.")
        return 1

    print(f"Migration integrity check: OK (head {heads[0]}, {len(revisions)} total)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
