from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from kiosk_pop.db.base import session_scope  # noqa: E402
from kiosk_pop.services.ingestion import ProofOfPlayImporter, get_ingestion_config  # noqa: E402

_CONTENT_TYPES = {
    ".csv": "text/csv",
    ".html": "text/html",
    ".htm": "text/html",
    ".json": "application/json",
}


def main(path: Path, org_id: str, content_type: str | None) -> None:
    body = path.read_bytes()
    content_type = content_type or _CONTENT_TYPES.get(path.suffix.lower())
    with session_scope() as session:
        importer = ProofOfPlayImporter(session, org_id=org_id, config=get_ingestion_config())
        result = importer.import_payload(body, content_type)
    print(
        f"Import complete: format={result.format.value} parsed={result.parsed} "
        f"inserted={result.inserted} dropped={result.dropped} "
        f"lastPlayedAt={result.last_played_at_iso} reasons={dict(result.drop_reasons)}"
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import a Proof-of-Play report file for one org.")
    parser.add_argument("path", type=Path, help="CSV, HTML or JSON report file.")
    parser.add_argument("--org-id", type=str, required=True, help="Internal org id to import into.")
    parser.add_argument("--content-type", type=str, default=None, help="Override the detected content type.")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    main(path=args.path, org_id=args.org_id, content_type=args.content_type)
