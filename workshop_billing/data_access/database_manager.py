# workshop_billing/data_access/database_manager.py

import sqlite3
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from workshop_billing.config import DATABASE_PATH, DB_BUSY_TIMEOUT_SECONDS, LOGGING_CONFIG
from workshop_billing.constants import Frequency, DiscountType, PaymentMethod

logger = logging.getLogger(__name__)

TABLE_QUERIES = [
    ("settings", """
        CREATE TABLE IF NOT EXISTS settings (
            organization_id TEXT NOT NULL,
            key TEXT NOT NULL,
            value TEXT,
            PRIMARY KEY (organization_id, key)
        );
    """),
    ("vehicles", """
        CREATE TABLE IF NOT EXISTS vehicles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            organization_id TEXT NOT NULL,
            customer_name TEXT,
            make TEXT,
            model TEXT,
            year INTEGER
        );
    """),
    ("recurring_agreements", """
        CREATE TABLE IF NOT EXISTS recurring_agreements (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            organization_id TEXT NOT NULL,
            vehicle_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            frequency TEXT NOT NULL CHECK(frequency IN ({frequencies})),
            next_run_date TEXT NOT NULL, -- ISO date
            end_date TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            last_run_at TEXT, -- ISO datetime
            run_count INTEGER NOT NULL DEFAULT 0 CHECK(run_count >= 0),
            service_type TEXT NOT NULL,
            cost TEXT NOT NULL DEFAULT '0',
            tax_rate TEXT NOT NULL DEFAULT '0',
            invoice_notes TEXT,
            created_at TEXT,
            FOREIGN KEY (vehicle_id) REFERENCES vehicles(id) ON DELETE CASCADE
        );
    """.format(frequencies=', '.join(f"'{f.value}'" for f in Frequency))),
    ("recurring_parts", """
        CREATE TABLE IF NOT EXISTS recurring_parts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            agreement_id INTEGER NOT NULL,
            position INTEGER NOT NULL DEFAULT 0,
            name TEXT NOT NULL,
            part_number TEXT,
            quantity INTEGER NOT NULL CHECK(quantity >= 1),
            unit_price TEXT NOT NULL DEFAULT '0',
            FOREIGN KEY (agreement_id) REFERENCES recurring_agreements(id) ON DELETE CASCADE
        );
    """),
    ("recurring_labor", """
        CREATE TABLE IF NOT EXISTS recurring_labor (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            agreement_id INTEGER NOT NULL,
            position INTEGER NOT NULL DEFAULT 0,
            description TEXT NOT NULL,
            hours TEXT NOT NULL DEFAULT '0',
            rate TEXT NOT NULL DEFAULT '0',
            FOREIGN KEY (agreement_id) REFERENCES recurring_agreements(id) ON DELETE CASCADE
        );
    """),
    ("invoices", """
        CREATE TABLE IF NOT EXISTS invoices (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            organization_id TEXT NOT NULL,
            invoice_number TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            service_type TEXT,
            service_date TEXT NOT NULL,
            vehicle_id INTEGER,
            recurring_agreement_id INTEGER,
            cost TEXT NOT NULL DEFAULT '0',
            subtotal TEXT NOT NULL DEFAULT '0',
            discount_type TEXT NOT NULL DEFAULT '{no_discount}' CHECK(discount_type IN ({discount_types})),
            discount_value TEXT NOT NULL DEFAULT '0',
            discount_amount TEXT NOT NULL DEFAULT '0',
            tax_rate TEXT NOT NULL DEFAULT '0',
            tax_amount TEXT NOT NULL DEFAULT '0',
            total_amount TEXT NOT NULL DEFAULT '0',
            invoice_notes TEXT,
            created_at TEXT,
            FOREIGN KEY (vehicle_id) REFERENCES vehicles(id) ON DELETE SET NULL,
            FOREIGN KEY (recurring_agreement_id) REFERENCES recurring_agreements(id) ON DELETE SET NULL
        );
    """.format(
        no_discount=DiscountType.NONE.value,
        discount_types=', '.join(f"'{d.value}'" for d in DiscountType)
    )),
    ("invoice_parts", """
        CREATE TABLE IF NOT EXISTS invoice_parts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            invoice_id INTEGER NOT NULL,
            position INTEGER NOT NULL DEFAULT 0,
            name TEXT NOT NULL,
            part_number TEXT,
            quantity TEXT NOT NULL,
            unit_price TEXT NOT NULL,
            total TEXT NOT NULL,
            FOREIGN KEY (invoice_id) REFERENCES invoices(id) ON DELETE CASCADE
        );
    """),
    ("invoice_labor", """
        CREATE TABLE IF NOT EXISTS invoice_labor (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            invoice_id INTEGER NOT NULL,
            position INTEGER NOT NULL DEFAULT 0,
            description TEXT NOT NULL,
            hours TEXT NOT NULL,
            rate TEXT NOT NULL,
            total TEXT NOT NULL,
            FOREIGN KEY (invoice_id) REFERENCES invoices(id) ON DELETE CASCADE
        );
    """),
    ("payments", """
        CREATE TABLE IF NOT EXISTS payments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            invoice_id INTEGER NOT NULL,
            amount TEXT NOT NULL,
            payment_date TEXT NOT NULL,
            method TEXT NOT NULL CHECK(method IN ({methods})),
            note TEXT,
            created_at TEXT,
            FOREIGN KEY (invoice_id) REFERENCES invoices(id) ON DELETE CASCADE
        );
    """.format(methods=', '.join(f"'{pm.value}'" for pm in PaymentMethod))),
]

INDEX_QUERIES = [
    "CREATE INDEX IF NOT EXISTS idx_recurring_agreements_due ON recurring_agreements (is_active, next_run_date);",
    "CREATE INDEX IF NOT EXISTS idx_recurring_agreements_org ON recurring_agreements (organization_id);",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_invoices_org_number ON invoices (organization_id, invoice_number);",
    "CREATE INDEX IF NOT EXISTS idx_payments_invoice ON payments (invoice_id);",
]


class DatabaseManager:
    """
    Hands out sqlite connections.

    Connections are opened in autocommit mode; multi-statement work goes
    through transaction(), which takes the database write lock up front
    with BEGIN IMMEDIATE. That lock is held by the sqlite file itself, so
    it serializes writers across threads and across processes.
    """

    def __init__(self, db_path: str = DATABASE_PATH, timeout: float = DB_BUSY_TIMEOUT_SECONDS):
        self.db_path = db_path
        self.timeout = timeout
        self._local = threading.local()

    def connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
            conn.row_factory = sqlite3.Row  # Access columns by name
            conn.execute("PRAGMA foreign_keys = ON;")
            logger.debug(f"Database connection established to {self.db_path}")
            return conn
        except sqlite3.Error as e:
            logger.error(f"Error connecting to database {self.db_path}: {e}")
            raise

    def _stack(self) -> list:
        if not hasattr(self._local, "connections"):
            self._local.connections = []
        return self._local.connections

    def __enter__(self) -> sqlite3.Connection:
        conn = self.connect()
        self._stack().append(conn)
        return conn

    def __exit__(self, exc_type, exc_val, exc_tb):
        stack = self._stack()
        if stack:
            stack.pop().close()
            logger.debug("Database connection closed.")

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Runs the enclosed block as one all-or-nothing unit."""
        with self as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                    logger.debug("Transaction rolled back.")
                raise
            else:
                conn.execute("COMMIT")
                logger.debug("Transaction committed.")

    def execute_query(self, query, params=None, conn: Optional[sqlite3.Connection] = None):
        try:
            if conn is not None:
                return conn.execute(query, params or ())
            with self as own_conn:
                return own_conn.execute(query, params or ())
        except sqlite3.Error as e:
            logger.error(f"Query execution failed: {query} with params {params} - {e}")
            raise

    def fetch_one(self, query, params=None, conn: Optional[sqlite3.Connection] = None):
        try:
            if conn is not None:
                return conn.execute(query, params or ()).fetchone()
            with self as own_conn:
                return own_conn.execute(query, params or ()).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Fetch one failed: {query} with params {params} - {e}")
            raise

    def fetch_all(self, query, params=None, conn: Optional[sqlite3.Connection] = None):
        try:
            if conn is not None:
                return conn.execute(query, params or ()).fetchall()
            with self as own_conn:
                return own_conn.execute(query, params or ()).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Fetch all failed: {query} with params {params} - {e}")
            raise

    def create_tables(self):
        try:
            with self.transaction() as conn:
                logger.info(f"Attempting to execute {len(TABLE_QUERIES)} table creation SQL query(ies).")
                for query_index, (table_name, query) in enumerate(TABLE_QUERIES):
                    logger.debug(f"Executing SQL for: {table_name} (Query {query_index+1}/{len(TABLE_QUERIES)})")
                    try:
                        conn.execute(query)
                    except sqlite3.Error as e_exec:
                        logger.error(f"SQLite error creating table '{table_name}': {e_exec}\nProblematic SQL (first 200 chars):\n{query.strip()[:200]}...")
                        raise
                for index_query in INDEX_QUERIES:
                    conn.execute(index_query)
            logger.info("Database tables checked/created successfully.")
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize database schema: {e}", exc_info=True)
            raise


# Example usage (typically called once at application startup)
if __name__ == '__main__':
    import logging.config
    from workshop_billing.config import ensure_runtime_dirs
    ensure_runtime_dirs()
    logging.config.dictConfig(LOGGING_CONFIG)

    main_logger = logging.getLogger()
    db_manager = DatabaseManager()
    try:
        main_logger.info("Initializing database setup test...")
        db_manager.create_tables()
        with db_manager as conn:
            tables = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;").fetchall()
            table_names = [table[0] for table in tables]
            main_logger.info(f"Tables found in database ({len(table_names)}): {table_names}")
    except Exception as e:
        main_logger.error(f"An error occurred during database setup test: {e}", exc_info=True)
