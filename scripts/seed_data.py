"""
Create the tables and load the pilot catalog (action types and quests).

Usage: python scripts/seed_data.py   (DATABASE_URL selects the target database)
"""
import logging
import sys

from playearth.core.db import SessionLocal, create_tables
from playearth.services.catalog import seed_catalog


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    create_tables()
    with SessionLocal() as db:
        actions, quests = seed_catalog(db)
    print(f"seeded {actions} action types and {quests} quests")
    return 0


if __name__ == "__main__":
    sys.exit(main())
