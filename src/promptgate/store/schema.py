"""SQL schema and migrations for the pipeline store."""

import logging
from sqlite3 import Connection

log = logging.getLogger(__name__)

SCHEMA_VERSION = 2

SCHEMA_SQL = """
-- Schema version for migrations
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS prompt_template (
    id TEXT PRIMARY KEY,                -- 8 hex chars
    name TEXT NOT NULL,                 -- logical identity
    version INTEGER NOT NULL,           -- monotonic per name
    task TEXT NOT NULL,                 -- category key
    body TEXT NOT NULL,
    default_parameters TEXT,            -- JSON object
    active INTEGER NOT NULL DEFAULT 0,  -- 0 or 1
    created_at TEXT NOT NULL,           -- ISO8601 UTC
    UNIQUE(name, version)
);
CREATE INDEX IF NOT EXISTS idx_template_task ON prompt_template(task);
CREATE INDEX IF NOT EXISTS idx_template_name_version
    ON prompt_template(name, version DESC);
-- At most one active version per name
CREATE UNIQUE INDEX IF NOT EXISTS idx_template_one_active
    ON prompt_template(name) WHERE active = 1;

CREATE TABLE IF NOT EXISTS golden_sample (
    id TEXT PRIMARY KEY,                -- "golden-<source id>"
    input TEXT NOT NULL,                -- JSON {title, description, skills}
    expected TEXT NOT NULL,             -- JSON {difficulty, prospects, fun}
    created_at TEXT NOT NULL
);

-- Append-only
CREATE TABLE IF NOT EXISTS evaluation_report (
    id TEXT PRIMARY KEY,
    timestamp TEXT NOT NULL,
    chosen_template TEXT,               -- JSON {name, version} or NULL
    aggregate TEXT NOT NULL,            -- JSON
    recommendations TEXT NOT NULL,      -- JSON array
    candidates TEXT,                    -- JSON array
    report_ideas TEXT                   -- JSON array
);
CREATE INDEX IF NOT EXISTS idx_evaluation_report_timestamp
    ON evaluation_report(timestamp DESC);

CREATE TABLE IF NOT EXISTS report_draft (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    category TEXT NOT NULL,
    audience TEXT NOT NULL,
    insights TEXT,                      -- JSON array
    sources TEXT,                       -- JSON array
    body TEXT NOT NULL,
    estimated_demand INTEGER NOT NULL DEFAULT 5,
    status TEXT NOT NULL,               -- draft/review/approved/published/rejected
    created_by TEXT NOT NULL,           -- system/human
    evaluation_id TEXT REFERENCES evaluation_report(id),
    created_at TEXT NOT NULL,
    reviewed_at TEXT,
    reviewer TEXT,
    comment TEXT,
    published_at TEXT,
    published_by TEXT
);
CREATE INDEX IF NOT EXISTS idx_report_draft_status ON report_draft(status);
CREATE INDEX IF NOT EXISTS idx_report_draft_evaluation_id
    ON report_draft(evaluation_id);

CREATE TABLE IF NOT EXISTS report (
    id TEXT PRIMARY KEY,
    draft_id TEXT NOT NULL UNIQUE REFERENCES report_draft(id),
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    category TEXT NOT NULL,
    audience TEXT NOT NULL,
    insights TEXT,
    sources TEXT,
    body TEXT NOT NULL,
    estimated_demand INTEGER NOT NULL DEFAULT 5,
    published_by TEXT NOT NULL,
    published_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_report_published_at ON report(published_at DESC);
"""


def _migrate_v1_to_v2(conn: Connection) -> None:
    """Migrate schema from v1 to v2: single-active index and report ideas."""
    # Repair any name left with several active rows before adding the index
    conn.execute(
        """
        UPDATE prompt_template SET active = 0
        WHERE active = 1 AND version < (
            SELECT MAX(p.version) FROM prompt_template p
            WHERE p.name = prompt_template.name AND p.active = 1
        )
        """
    )
    conn.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_template_one_active "
        "ON prompt_template(name) WHERE active = 1"
    )
    cursor = conn.execute("PRAGMA table_info(evaluation_report)")
    columns = {row[1] for row in cursor.fetchall()}
    if "report_ideas" not in columns:
        conn.execute("ALTER TABLE evaluation_report ADD COLUMN report_ideas TEXT")


def get_schema_version(conn: Connection) -> int:
    """Get the current schema version from the database.

    Returns 0 if schema_version table doesn't exist or is empty.
    """
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
    )
    if cursor.fetchone() is None:
        return 0

    cursor = conn.execute(
        "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
    )
    row = cursor.fetchone()
    return row[0] if row else 0


def init_schema(conn: Connection) -> None:
    """Initialize the database schema."""
    conn.executescript(SCHEMA_SQL)
    cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
    if cursor.fetchone() is None:
        conn.execute("INSERT INTO schema_version VALUES (?)", (SCHEMA_VERSION,))
    conn.commit()


def migrate_if_needed(conn: Connection) -> None:
    """Run any pending migrations to bring schema up to date."""
    current_version = get_schema_version(conn)

    if current_version == 0:
        init_schema(conn)
        return

    while current_version < SCHEMA_VERSION:
        if current_version == 1:
            _migrate_v1_to_v2(conn)
        log.info("Migrated pipeline schema to v%d", current_version + 1)
        current_version += 1
        conn.execute("UPDATE schema_version SET version = ?", (current_version,))
        conn.commit()
