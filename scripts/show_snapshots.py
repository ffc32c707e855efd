"""
Print what the tracker currently has stored for each case.

Uses Postgres when DATABASE_URL is set (with version history), otherwise the
JSON files under STATE_DIR.

Usage:
  python -m scripts.show_snapshots                 # all CASE_IDS
  python -m scripts.show_snapshots IOE0000000000 --history 5
"""
from __future__ import annotations

import argparse
import json
import os

from dotenv import load_dotenv

from core.db.snapshots import FileSnapshotStore, PostgresSnapshotStore, SnapshotError


def main() -> None:
    load_dotenv(override=True)
    parser = argparse.ArgumentParser(description="Show stored case snapshots.")
    parser.add_argument("case_ids", nargs="*")
    parser.add_argument("--history", type=int, default=0, help="Postgres only: show N saved versions")
    args = parser.parse_args()

    case_ids = args.case_ids or [c.strip() for c in os.getenv("CASE_IDS", "").split(",") if c.strip()]
    if not case_ids:
        raise SystemExit("Pass case ids or set CASE_IDS.")

    database_url = os.getenv("DATABASE_URL")
    if database_url:
        store = PostgresSnapshotStore(database_url)
    else:
        store = FileSnapshotStore(os.getenv("STATE_DIR", "state"))

    for case_id in case_ids:
        print(f"== {case_id}")
        if args.history and database_url:
            for row in store.history(case_id, limit=args.history):
                print(f"-- version {row['id']} @ {row['fetched_at']}")
                print(json.dumps(row["document"], indent=2, sort_keys=True))
            continue
        try:
            doc = store.load(case_id)
        except SnapshotError as exc:
            print(f"(unreadable: {exc})")
            continue
        print(doc.to_json() if doc is not None else "(no snapshot yet)")


if __name__ == "__main__":
    main()
