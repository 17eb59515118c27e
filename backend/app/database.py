import sqlite3
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.config import settings


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(db_path: Path | None = None):
    path = db_path or settings.db_path
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


SCHEMA_SQL = """\
-- ============================================================
-- ROLES & USERS
-- ============================================================
CREATE TABLE IF NOT EXISTS roles (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL UNIQUE,
    permissions TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE TABLE IF NOT EXISTS users (
    id            TEXT PRIMARY KEY,
    name          TEXT NOT NULL,
    email         TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    role_id       TEXT REFERENCES roles(id),
    created_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_users_role ON users(role_id);

-- ============================================================
-- AUTH THROTTLE
-- ============================================================
CREATE TABLE IF NOT EXISTS auth_throttle (
    key             TEXT PRIMARY KEY,
    failed_attempts INTEGER NOT NULL,
    last_failed_at  REAL NOT NULL
);

-- ============================================================
-- CLIENTS & SERVICES
-- ============================================================
CREATE TABLE IF NOT EXISTS clients (
    id             TEXT PRIMARY KEY,
    name           TEXT NOT NULL,
    gmail          TEXT NOT NULL UNIQUE,
    starting_point TEXT NOT NULL,
    created_at     TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at     TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE TABLE IF NOT EXISTS services (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL UNIQUE,
    description TEXT NOT NULL,
    status      TEXT NOT NULL DEFAULT 'active' CHECK(status IN ('active','inactive')),
    usage_count INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

-- ============================================================
-- JOBS
-- ============================================================
CREATE TABLE IF NOT EXISTS jobs (
    id                  TEXT PRIMARY KEY,
    client_id           TEXT NOT NULL REFERENCES clients(id),
    created_by          TEXT NOT NULL REFERENCES users(id),
    assigned_person     TEXT NOT NULL REFERENCES users(id),
    service_type        TEXT NOT NULL,
    job_details         TEXT NOT NULL,
    special_description TEXT,
    client_name         TEXT NOT NULL,
    gmail               TEXT NOT NULL,
    starting_point      TEXT NOT NULL,
    document_passport   TEXT,
    document_id         TEXT,
    other_documents     TEXT NOT NULL DEFAULT '[]',
    status              TEXT NOT NULL DEFAULT 'pending'
                        CHECK(status IN ('pending','corrected','approved','rejected',
                                         'completed','cancelled')),
    rejection_reason    TEXT,
    rejection_document  TEXT,
    cancellation_reason TEXT,
    created_at          TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at          TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
CREATE INDEX IF NOT EXISTS idx_jobs_client ON jobs(client_id);
CREATE INDEX IF NOT EXISTS idx_jobs_assigned ON jobs(assigned_person);

CREATE TABLE IF NOT EXISTS resubmissions (
    id                    TEXT PRIMARY KEY,
    job_id                TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    position              INTEGER NOT NULL,
    resubmit_notes        TEXT,
    new_document_passport TEXT,
    new_document_id       TEXT,
    new_other_documents   TEXT,
    resubmitted_at        TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    UNIQUE (job_id, position)
);

CREATE TABLE IF NOT EXISTS timeline_entries (
    id          TEXT PRIMARY KEY,
    job_id      TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    position    INTEGER NOT NULL,
    status      TEXT NOT NULL,
    description TEXT NOT NULL,
    updated_by  TEXT REFERENCES users(id) ON DELETE SET NULL,
    timestamp   TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    UNIQUE (job_id, position)
);

CREATE INDEX IF NOT EXISTS idx_timeline_job ON timeline_entries(job_id);

-- ============================================================
-- OPERATIONS
-- ============================================================
CREATE TABLE IF NOT EXISTS company_details (
    id                          TEXT PRIMARY KEY,
    job_id                      TEXT NOT NULL UNIQUE REFERENCES jobs(id) ON DELETE CASCADE,
    company_name                TEXT NOT NULL,
    qfc_no                      TEXT,
    registered_address          TEXT,
    incorporation_date          TEXT,
    service_type                TEXT,
    engagement_letters          TEXT,
    main_purpose                TEXT,
    expiry_date                 TEXT,
    company_computer_card       TEXT,
    company_computer_card_expiry TEXT,
    tax_card                    TEXT,
    tax_card_expiry             TEXT,
    cr_extract                  TEXT,
    cr_extract_expiry           TEXT,
    scope_of_license            TEXT,
    scope_of_license_expiry     TEXT,
    article_of_associate        TEXT,
    certificate_of_incorporate  TEXT,
    kyc_active_status           TEXT NOT NULL DEFAULT 'yes' CHECK(kyc_active_status IN ('yes','no')),
    updated_by                  TEXT REFERENCES users(id) ON DELETE SET NULL,
    created_at                  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at                  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE TABLE IF NOT EXISTS person_details (
    id                      TEXT PRIMARY KEY,
    job_id                  TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    person_type             TEXT NOT NULL
                            CHECK(person_type IN ('director','shareholder','secretary','sef')),
    name                    TEXT NOT NULL,
    nationality             TEXT,
    visa_copy               TEXT,
    qid_no                  TEXT,
    qid_doc                 TEXT,
    qid_expiry              TEXT,
    national_address        TEXT,
    national_address_doc    TEXT,
    national_address_expiry TEXT,
    passport_no             TEXT,
    passport_doc            TEXT,
    passport_expiry         TEXT,
    mobile_no               TEXT,
    email                   TEXT,
    cv                      TEXT,
    updated_by              TEXT REFERENCES users(id) ON DELETE SET NULL,
    created_at              TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at              TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_person_details_job ON person_details(job_id, person_type);

CREATE TABLE IF NOT EXISTS kyc_documents (
    id            TEXT PRIMARY KEY,
    job_id        TEXT NOT NULL UNIQUE REFERENCES jobs(id) ON DELETE CASCADE,
    active_status TEXT NOT NULL DEFAULT 'yes' CHECK(active_status IN ('yes','no')),
    documents     TEXT NOT NULL DEFAULT '[]',
    updated_by    TEXT REFERENCES users(id) ON DELETE SET NULL,
    created_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

-- ============================================================
-- NOTIFICATIONS
-- ============================================================
CREATE TABLE IF NOT EXISTS notifications (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    description TEXT NOT NULL,
    type        TEXT NOT NULL CHECK(type IN ('job','role','user','system','security')),
    sub_type    TEXT,
    job_id      TEXT REFERENCES jobs(id) ON DELETE SET NULL,
    created_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE TABLE IF NOT EXISTS notification_recipients (
    notification_id TEXT NOT NULL REFERENCES notifications(id) ON DELETE CASCADE,
    user_id         TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    read            INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (notification_id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_notification_recipients_user ON notification_recipients(user_id, read);

-- ============================================================
-- MONTHLY PAYMENTS
-- ============================================================
CREATE TABLE IF NOT EXISTS monthly_payments (
    id                     TEXT PRIMARY KEY,
    job_id                 TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    job_type               TEXT NOT NULL,
    year                   INTEGER NOT NULL CHECK(year BETWEEN 2000 AND 2100),
    month                  INTEGER NOT NULL CHECK(month BETWEEN 0 AND 11),
    status                 TEXT NOT NULL DEFAULT 'Paid' CHECK(status IN ('Paid','Pending','Overdue')),
    total_amount           REAL NOT NULL DEFAULT 0,
    invoices               TEXT NOT NULL DEFAULT '[]',
    has_incorrect_invoices INTEGER NOT NULL DEFAULT 0,
    notes                  TEXT,
    created_by             TEXT REFERENCES users(id) ON DELETE SET NULL,
    created_at             TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at             TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    UNIQUE (job_id, year, month)
);

CREATE INDEX IF NOT EXISTS idx_monthly_payments_period ON monthly_payments(year, month);

-- ============================================================
-- KYC / BRA APPROVALS
-- ============================================================
CREATE TABLE IF NOT EXISTS approval_processes (
    id               TEXT PRIMARY KEY,
    job_id           TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    kind             TEXT NOT NULL CHECK(kind IN ('kyc','bra')),
    status           TEXT NOT NULL DEFAULT 'in_progress'
                     CHECK(status IN ('pending','in_progress','completed','rejected')),
    current_stage    TEXT NOT NULL DEFAULT 'lmro'
                     CHECK(current_stage IN ('lmro','dlmro','ceo','completed','rejected')),
    lmro_approval    TEXT NOT NULL DEFAULT '{}',
    dlmro_approval   TEXT NOT NULL DEFAULT '{}',
    ceo_approval     TEXT NOT NULL DEFAULT '{}',
    rejection_reason TEXT,
    rejected_by      TEXT REFERENCES users(id) ON DELETE SET NULL,
    rejected_at      TEXT,
    completed_at     TEXT,
    created_at       TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at       TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    UNIQUE (job_id, kind)
);

CREATE INDEX IF NOT EXISTS idx_approval_processes_kind ON approval_processes(kind, status);
"""


# Column additions for databases created by earlier releases; the schema above
# already carries every current column.
MIGRATIONS: list[str] = []


def init_db(db_path: Path | None = None):
    path = db_path or settings.db_path
    conn = sqlite3.connect(str(path))
    conn.executescript(SCHEMA_SQL)
    # Run migrations idempotently (ALTER TABLE fails silently if column exists)
    for migration in MIGRATIONS:
        try:
            conn.execute(migration)
            conn.commit()
        except sqlite3.OperationalError:
            pass  # column already exists
    conn.close()
