import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from social_scheduler.config import load_config
from social_scheduler.db import Database, init_db, redact_dsn


def main() -> None:
    cfg = load_config()
    db = Database(str(cfg.DB_DSN), connect_timeout=cfg.DB_CONNECT_TIMEOUT_SECONDS)
    try:
        init_db(db)
    finally:
        db.close()

    print(f"DB initialized: {redact_dsn(str(cfg.DB_DSN))}")


if __name__ == "__main__":
    main()
