from __future__ import annotations

import argparse
import os

from dotenv import load_dotenv

from app.db.session import init_db


def main() -> None:
    load_dotenv(override=False)
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", default="wishlist.db", help="Path to sqlite db file (default: wishlist.db)")
    args = parser.parse_args()

    database_url = os.getenv("DATABASE_URL", "").strip() or None
    init_db(database_url, args.db)
    if database_url:
        print("Initialized DB using DATABASE_URL")
    else:
        print(f"Initialized DB at {args.db}")


if __name__ == "__main__":
    main()
