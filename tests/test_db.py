import pytest

from social_scheduler.db import Database, PoolState, _qmark_to_pct, detect_dialect, init_db, redact_dsn
from social_scheduler.errors import Internal


def test_detect_dialect():
    assert detect_dialect("postgresql://u:p@localhost/db") == "postgres"
    assert detect_dialect("postgres://u:p@localhost/db") == "postgres"
    assert detect_dialect("sqlite:///tmp/x.sqlite") == "sqlite"
    assert detect_dialect("./scheduler.sqlite") == "sqlite"


def test_redact_dsn_hides_password():
    assert redact_dsn("postgresql://app:hunter2@db:5432/x") == "postgresql://app:***@db:5432/x"
    assert redact_dsn("./scheduler.sqlite") == "./scheduler.sqlite"


def test_qmark_to_pct_leaves_quoted_marks():
    sql = "SELECT * FROM posts WHERE title='?' AND user_id=? AND note='it''s ?'"
    assert _qmark_to_pct(sql) == "SELECT * FROM posts WHERE title='?' AND user_id=%s AND note='it''s ?'"


def test_connects_lazily_and_caches(tmp_path):
    db = Database(str(tmp_path / "a.sqlite"))
    assert db.state is PoolState.UNINITIALIZED

    with db.connection() as conn:
        conn.execute("SELECT 1")
    assert db.state is PoolState.READY
    first = db._sqlite

    with db.connection():
        pass
    assert db._sqlite is first
    db.close()
    assert db.state is PoolState.UNINITIALIZED


def test_recreates_unusable_connection(tmp_path):
    db = Database(str(tmp_path / "a.sqlite"))
    init_db(db)
    stale = db._sqlite
    stale.close()

    with db.connection() as conn:
        assert conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"] == 0
    assert db._sqlite is not stale
    assert db.state is PoolState.READY
    db.close()


def test_failed_connect_returns_to_uninitialized(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")
    db = Database(str(blocker / "a.sqlite"))

    with pytest.raises(Internal) as exc:
        with db.connection():
            pass
    assert exc.value.code == "database_unavailable"
    assert db.state is PoolState.UNINITIALIZED


def test_rolls_back_on_error(tmp_path):
    db = Database(str(tmp_path / "a.sqlite"))
    init_db(db)

    with pytest.raises(RuntimeError):
        with db.connection() as conn:
            conn.execute(
                "INSERT INTO users (user_id, email, name, password_hash, role, created_at, updated_at) "
                "VALUES ('u1', 'a@x.com', 'Ann', 'h', 'user', 't', 't')"
            )
            raise RuntimeError("boom")

    with db.connection() as conn:
        assert conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"] == 0
    db.close()


def test_init_db_is_idempotent(tmp_path):
    db = Database(str(tmp_path / "a.sqlite"))
    init_db(db)
    init_db(db)
    with db.connection() as conn:
        cols = {r["name"] for r in conn.execute("PRAGMA table_info(posts)").fetchall()}
    assert {"post_id", "user_id", "scheduled_at", "is_published", "media"} <= cols
    db.close()


def test_sqlite_url_prefix(tmp_path):
    path = tmp_path / "nested" / "b.sqlite"
    db = Database(f"sqlite:///{path}")
    init_db(db)
    db.close()
    assert path.exists()
