from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from kiosk_pop.db.base import session_scope  # noqa: E402
from kiosk_pop.pop.rollup import refresh_plays_daily  # noqa: E402


def main() -> int:
    with session_scope() as session:
        ok = refresh_plays_daily(session)
    print(f"plays_daily refresh {'succeeded' if ok else 'failed'}")
    return 0 if ok else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rebuild the plays_daily rollup (nightly job).")
    parser.add_argument("--verbose", action="store_true", help="Log at INFO level.")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    sys.exit(main())
