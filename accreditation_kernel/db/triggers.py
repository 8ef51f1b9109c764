"""
Module: accreditation_kernel.db.triggers
Responsibility: Installing, removing and verifying the database-level
    append-only triggers on the audit tables (layer 2 of 2).  This is the
    complement to the ORM listeners in db/immutability.py.
Architecture position: Kernel > DB.  MUST NOT import from models/, services/,
    repositories/, domain/, or outer layers.

Invariants enforced:
    - accreditation_history rows: no UPDATE, no DELETE.
    - accreditation_scans rows: no UPDATE, no DELETE.

Failure modes:
    - SQLite RAISE(ABORT) / PostgreSQL RAISE EXCEPTION on any violation,
      surfaced by SQLAlchemy as IntegrityError or OperationalError /
      InternalError depending on driver.
    - ValueError for a dialect with no trigger definitions.

Audit relevance:
    Raw SQL, bulk statements and direct console access bypass the ORM
    listeners.  These triggers keep the history and scan streams append-only
    even then.
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

APPEND_ONLY_TABLES = ("accreditation_history", "accreditation_scans")

ALL_TRIGGER_NAMES = [
    "trg_accreditation_history_no_update",
    "trg_accreditation_history_no_delete",
    "trg_accreditation_scans_no_update",
    "trg_accreditation_scans_no_delete",
]


def _sqlite_install_statements() -> list[str]:
    statements = []
    for table in APPEND_ONLY_TABLES:
        for operation in ("UPDATE", "DELETE"):
            name = f"trg_{table}_no_{operation.lower()}"
            statements.append(
                f"CREATE TRIGGER IF NOT EXISTS {name} "
                f"BEFORE {operation} ON {table} "
                f"BEGIN SELECT RAISE(ABORT, '{table} is append-only'); END"
            )
    return statements


def _postgres_install_statements() -> list[str]:
    statements = [
        """
        CREATE OR REPLACE FUNCTION accreditation_reject_audit_mutation()
        RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION '% is append-only', TG_TABLE_NAME;
        END;
        $$ LANGUAGE plpgsql
        """
    ]
    for table in APPEND_ONLY_TABLES:
        for operation in ("UPDATE", "DELETE"):
            name = f"trg_{table}_no_{operation.lower()}"
            statements.append(f"DROP TRIGGER IF EXISTS {name} ON {table}")
            statements.append(
                f"CREATE TRIGGER {name} BEFORE {operation} ON {table} "
                f"FOR EACH ROW EXECUTE FUNCTION accreditation_reject_audit_mutation()"
            )
    return statements


def _drop_statements(dialect: str) -> list[str]:
    if dialect == "sqlite":
        return [f"DROP TRIGGER IF EXISTS {name}" for name in ALL_TRIGGER_NAMES]
    statements = []
    for table in APPEND_ONLY_TABLES:
        for operation in ("update", "delete"):
            statements.append(f"DROP TRIGGER IF EXISTS trg_{table}_no_{operation} ON {table}")
    statements.append("DROP FUNCTION IF EXISTS accreditation_reject_audit_mutation()")
    return statements


def _install_statements(dialect: str) -> list[str]:
    if dialect == "sqlite":
        return _sqlite_install_statements()
    if dialect == "postgresql":
        return _postgres_install_statements()
    raise ValueError(f"No append-only trigger definitions for dialect {dialect!r}")


def install_append_only_triggers(engine: Engine) -> None:
    """
    Install the append-only triggers (idempotent).

    Preconditions: Tables must exist (call after metadata.create_all()).
    """
    with engine.connect() as conn:
        for statement in _install_statements(engine.dialect.name):
            conn.execute(text(statement))
        conn.commit()


def uninstall_append_only_triggers(engine: Engine) -> None:
    """
    Remove the append-only triggers.

    Only for test teardown and migrations that must rewrite audit rows.
    """
    with engine.connect() as conn:
        for statement in _drop_statements(engine.dialect.name):
            conn.execute(text(statement))
        conn.commit()


def get_installed_triggers(engine: Engine) -> list[str]:
    """Return the names of the append-only triggers currently installed."""
    trigger_list = ", ".join(f"'{name}'" for name in ALL_TRIGGER_NAMES)
    if engine.dialect.name == "sqlite":
        check_sql = (
            "SELECT name FROM sqlite_master WHERE type = 'trigger' "
            f"AND name IN ({trigger_list}) ORDER BY name"
        )
    else:
        check_sql = (
            f"SELECT tgname FROM pg_trigger WHERE tgname IN ({trigger_list}) "
            "ORDER BY tgname"
        )
    with engine.connect() as conn:
        return [row[0] for row in conn.execute(text(check_sql))]


def triggers_installed(engine: Engine) -> bool:
    """True iff every append-only trigger is present."""
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)
