"""Create a user in the configured DB.

Usage:
  python scripts/create_user.py --email alice@example.com --password '...' --name Alice --role user

NOTE: This is intended for local/dev and for creating extra admins.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from social_scheduler.auth.crud import create_user
from social_scheduler.config import load_config
from social_scheduler.db import Database, init_db
from social_scheduler.errors import SchedulerError
from social_scheduler.models import ROLES


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--name", required=True)
    ap.add_argument("--role", choices=list(ROLES), default="user")
    args = ap.parse_args()

    cfg = load_config()
    db = Database(str(cfg.DB_DSN), connect_timeout=cfg.DB_CONNECT_TIMEOUT_SECONDS)
    try:
        init_db(db)
        with db.connection() as conn:
            u = create_user(conn, email=args.email, password=args.password, name=args.name, role=args.role)
    except SchedulerError as e:
        print(f"Could not create user: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
