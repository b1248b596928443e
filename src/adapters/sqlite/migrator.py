import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)


class SQLiteMigrator:
    def __init__(self, db_path: str, migrations_dir: str | Path):
        self.db_path = db_path
        self.migrations_dir = Path(migrations_dir)

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _ensure_migration_table(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS _migrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                filename TEXT UNIQUE NOT NULL,
                applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
        """)

    def _get_applied_migrations(self, conn: sqlite3.Connection) -> set[str]:
        cursor = conn.execute("SELECT filename FROM _migrations")
        return {row[0] for row in cursor.fetchall()}

    def pending(self) -> list[str]:
        """Migration filenames not yet applied, in apply order."""
        conn = self._get_connection()
        try:
            self._ensure_migration_table(conn)
            applied = self._get_applied_migrations(conn)
        finally:
            conn.close()
        return [p.name for p in sorted(self.migrations_dir.glob("*.sql")) if p.name not in applied]

    def run_migrations(self) -> list[str]:
        """Apply all pending migrations. Returns the filenames applied."""
        conn = self._get_connection()
        applied_now: list[str] = []
        try:
            self._ensure_migration_table(conn)
            applied = self._get_applied_migrations(conn)

            for path in sorted(self.migrations_dir.glob("*.sql")):
                if path.name in applied:
                    continue
                logger.info("Applying migration: %s", path.name)
                self._apply_migration(conn, path)
                applied_now.append(path.name)
        finally:
            conn.close()
        return applied_now

    def _read_up_script(self, path: Path) -> str:
        # Convention: file starts with the Up part; anything after "-- Down" is ignored
        content = path.read_text()
        return content.split("-- Down")[0] if "-- Down" in content else content

    def _apply_migration(self, conn: sqlite3.Connection, path: Path) -> None:
        script = self._read_up_script(path)
        try:
            conn.executescript(script)
            conn.execute("INSERT INTO _migrations (filename) VALUES (?)", (path.name,))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise RuntimeError(f"Migration {path.name} failed: {e}") from e


MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def migrate(db_path: str, migrations_dir: str | Path = MIGRATIONS_DIR) -> list[str]:
    """Bring db_path up to date with the project migrations."""
    return SQLiteMigrator(db_path, migrations_dir).run_migrations()
