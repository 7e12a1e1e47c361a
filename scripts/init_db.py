from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import load_settings

from hr_record_store.database.bootstrap import apply_schema, ensure_database_exists, list_indexes, list_tables
from hr_record_store.database.connection import DBConfig, DatabaseConnection


def main() -> None:
    settings = load_settings()

    config = DBConfig.from_dict({**settings.DB_CONFIG, "url": getattr(settings, "DATABASE_URL", None)})
    ensure_database_exists(config)
    conn = DatabaseConnection.get_instance(config, echo=bool(getattr(settings, "SQL_ECHO", False)))
    apply_schema(conn)

    tables = list_tables(conn)
    index_count = sum(len(list_indexes(conn, t)) for t in tables)
    print(f"OK: schema ready -> {conn.engine.url.render_as_string(hide_password=True)} (tables={len(tables)}, indexes={index_count})")


if __name__ == "__main__":
    main()
