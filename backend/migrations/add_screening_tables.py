"""
Migration: Add screening order reconciliation tables.

Creates the tables the screening engine reads and writes:
1. rental_submissions - submission aggregate (skipped when the host app already has it)
2. rental_decisions - approve/deny decision, one per submission
3. rental_screening_orders - one row per vendor background check
4. landlord_screening_credentials - encrypted per-landlord vendor accounts

Also adds the polling columns to rental_screening_orders when the table
predates them.
"""
from sqlalchemy import create_engine, text
import os

# Use same DB URL pattern as main app
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/tenant_screening"
)

POLLING_COLUMNS = [
    ("last_status_check_at", "TIMESTAMP"),
    ("next_status_check_at", "TIMESTAMP"),
    ("poll_until", "TIMESTAMP"),
    ("consecutive_failures", "INTEGER NOT NULL DEFAULT 0"),
]


def table_exists(conn, table_name: str) -> bool:
    """Check if a table exists in the database."""
    result = conn.execute(text("""
        SELECT EXISTS (
            SELECT FROM information_schema.tables
            WHERE table_name = :table_name
        )
    """), {"table_name": table_name})
    return result.fetchone()[0]


def column_exists(conn, table_name: str, column_name: str) -> bool:
    result = conn.execute(text("""
        SELECT column_name
        FROM information_schema.columns
        WHERE table_name = :table_name AND column_name = :column_name
    """), {"table_name": table_name, "column_name": column_name})
    return result.fetchone() is not None


def run_migration():
    """Create screening tables and polling columns."""
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        # =================================================================
        # TABLE 1: rental_submissions
        # =================================================================
        if table_exists(conn, "rental_submissions"):
            print("rental_submissions table already exists")
        else:
            conn.execute(text("""
                CREATE TABLE rental_submissions (
                    id VARCHAR(36) PRIMARY KEY,
                    owner_id VARCHAR(36),
                    status VARCHAR(30) NOT NULL DEFAULT 'started',
                    submitted_at TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """))
            conn.execute(text("""
                CREATE INDEX idx_rental_submissions_owner ON rental_submissions(owner_id)
            """))
            print("Created rental_submissions table")

        # =================================================================
        # TABLE 2: rental_decisions
        # =================================================================
        if table_exists(conn, "rental_decisions"):
            print("rental_decisions table already exists")
        else:
            conn.execute(text("""
                CREATE TABLE rental_decisions (
                    id VARCHAR(36) PRIMARY KEY,
                    submission_id VARCHAR(36) NOT NULL UNIQUE REFERENCES rental_submissions(id) ON DELETE CASCADE,
                    decision VARCHAR(20) NOT NULL,
                    decided_by VARCHAR(36),
                    decided_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """))
            print("Created rental_decisions table")

        # =================================================================
        # TABLE 3: rental_screening_orders
        # =================================================================
        if table_exists(conn, "rental_screening_orders"):
            print("rental_screening_orders table already exists")
            for column_name, column_type in POLLING_COLUMNS:
                if column_exists(conn, "rental_screening_orders", column_name):
                    continue
                conn.execute(text(
                    f"ALTER TABLE rental_screening_orders ADD COLUMN {column_name} {column_type}"
                ))
                print(f"Added {column_name} column to rental_screening_orders")
        else:
            conn.execute(text("""
                CREATE TABLE rental_screening_orders (
                    id VARCHAR(36) PRIMARY KEY,
                    submission_id VARCHAR(36) NOT NULL REFERENCES rental_submissions(id) ON DELETE CASCADE,
                    person_id VARCHAR(36),
                    reference_number VARCHAR(100) NOT NULL UNIQUE,
                    invitation_id TEXT,
                    status VARCHAR(20) NOT NULL DEFAULT 'not_sent',
                    report_id TEXT,
                    report_url TEXT,
                    raw_status_xml TEXT,
                    raw_result_xml TEXT,
                    error_message TEXT,
                    last_status_check_at TIMESTAMP,
                    next_status_check_at TIMESTAMP,
                    poll_until TIMESTAMP,
                    consecutive_failures INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """))
            conn.execute(text("""
                CREATE INDEX idx_screening_orders_submission ON rental_screening_orders(submission_id)
            """))
            print("Created rental_screening_orders table")

        # Poll scan index; partial so terminal orders stay out of it
        conn.execute(text("""
            CREATE INDEX IF NOT EXISTS idx_screening_orders_next_check
            ON rental_screening_orders(next_status_check_at)
            WHERE next_status_check_at IS NOT NULL
        """))

        # =================================================================
        # TABLE 4: landlord_screening_credentials
        # =================================================================
        if table_exists(conn, "landlord_screening_credentials"):
            print("landlord_screening_credentials table already exists")
        else:
            conn.execute(text("""
                CREATE TABLE landlord_screening_credentials (
                    id VARCHAR(36) PRIMARY KEY,
                    user_id VARCHAR(36) NOT NULL UNIQUE,
                    encrypted_username TEXT NOT NULL,
                    encrypted_password TEXT NOT NULL,
                    encryption_iv TEXT NOT NULL,
                    default_invitation_id VARCHAR(100),
                    status VARCHAR(30) NOT NULL DEFAULT 'pending_verification',
                    last_verified_at TIMESTAMP,
                    last_error_message TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """))
            print("Created landlord_screening_credentials table")

        conn.commit()
        print("Screening tables migration complete")


if __name__ == "__main__":
    run_migration()
