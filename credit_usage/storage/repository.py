"""
Repository pattern for the credit ledger.

Handles account balances and the append-only credit usage log that backs
the per-day usage endpoint.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .db import DEFAULT_DB_PATH, get_connection
from .kv_store import initialize_kv_schema
from .models import CreditStatus, CreditUsageEvent

DEFAULT_SIGNUP_CREDITS = 500
MAX_USAGE_LOG_DAYS = 60


class CreditLedgerError(Exception):
    """Raised when a ledger operation cannot be applied."""
    code = "ERROR"

    def __init__(self, message: str, email: str):
        super().__init__(message)
        self.email = email


class AccountNotFoundError(CreditLedgerError):
    code = "NO_ACCOUNT"


class AccountInactiveError(CreditLedgerError):
    code = "INACTIVE"


class InsufficientCreditsError(CreditLedgerError):
    code = "INSUFFICIENT"


class CreditRepository:
    """Repository for credit balances and usage events.

    Emails are matched case-insensitively and stored lower-cased.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def register_account(
        self,
        email: str,
        account_id: Optional[str] = None,
        initial_credits: int = DEFAULT_SIGNUP_CREDITS
    ) -> CreditStatus:
        """Create an account if it doesn't exist yet.

        Registering an existing email returns its current status unchanged.

        Args:
            email: Account email
            account_id: Optional external account identifier
            initial_credits: Credits granted on creation

        Returns:
            Status of the new or existing account

        Raises:
            ValueError: If email is empty or initial_credits is negative
        """
        email = _normalize_email(email)
        if initial_credits < 0:
            raise ValueError("initial_credits cannot be negative")

        conn = get_connection(self.db_path)
        try:
            existing = _select_status(conn, email)
            if existing is not None:
                return existing
            conn.execute("""
                INSERT INTO credit_account
                (account_id, email, total_credits, consumed_credits, active)
                VALUES (?, ?, ?, 0, 1)
            """, (
                account_id or f"ACC-{int(time.time() * 1000)}",
                email,
                int(initial_credits)
            ))
            conn.commit()
            return _select_status(conn, email)
        finally:
            conn.close()

    def get_status(self, email: str) -> Optional[CreditStatus]:
        """Get the balance of an account, or None if it isn't registered."""
        conn = get_connection(self.db_path)
        try:
            return _select_status(conn, _normalize_email(email))
        finally:
            conn.close()

    def add_credits(self, email: str, amount: int) -> CreditStatus:
        """Add purchased credits to an account.

        Raises:
            ValueError: If amount is not positive
            AccountNotFoundError: If the account doesn't exist
        """
        email = _normalize_email(email)
        if amount <= 0:
            raise ValueError("amount must be > 0")

        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "UPDATE credit_account SET total_credits = total_credits + ? WHERE email = ?",
                (int(amount), email)
            )
            if cursor.rowcount == 0:
                raise AccountNotFoundError("Account not found", email)
            conn.commit()
            return _select_status(conn, email)
        finally:
            conn.close()

    def consume_credits(
        self,
        email: str,
        amount: int,
        occurred_at: Optional[datetime] = None
    ) -> CreditStatus:
        """Consume credits and record the usage event atomically.

        Args:
            email: Account email
            amount: Credits to consume
            occurred_at: Event time (defaults to now, UTC)

        Returns:
            Updated account status

        Raises:
            ValueError: If amount is not positive
            AccountNotFoundError: If the account doesn't exist
            AccountInactiveError: If the account is deactivated
            InsufficientCreditsError: If remaining credits < amount
        """
        email = _normalize_email(email)
        if amount <= 0:
            raise ValueError("amount must be > 0")
        occurred_at = occurred_at or datetime.now(timezone.utc)

        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN IMMEDIATE")
            status = _select_status(conn, email)
            if status is None:
                raise AccountNotFoundError("Account not found", email)
            if not status.active:
                raise AccountInactiveError("Account inactive", email)
            if status.remaining < amount:
                raise InsufficientCreditsError("Insufficient credits", email)

            conn.execute(
                "UPDATE credit_account SET consumed_credits = consumed_credits + ? WHERE email = ?",
                (int(amount), email)
            )
            _insert_event(conn, CreditUsageEvent(
                occurred_at=occurred_at,
                email=email,
                amount=int(amount),
                account_id=status.account_id
            ))
            conn.commit()
            return _select_status(conn, email)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def set_active(self, email: str, active: bool) -> CreditStatus:
        """Activate or deactivate an account.

        Raises:
            AccountNotFoundError: If the account doesn't exist
        """
        email = _normalize_email(email)
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "UPDATE credit_account SET active = ? WHERE email = ?",
                (1 if active else 0, email)
            )
            if cursor.rowcount == 0:
                raise AccountNotFoundError("Account not found", email)
            conn.commit()
            return _select_status(conn, email)
        finally:
            conn.close()

    def fetch_usage_log(
        self,
        days: int = 30,
        email: Optional[str] = None,
        account_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[Dict[str, object]]:
        """Aggregate consumed credits per UTC day.

        Returns a dense range ending today (UTC), one ``{"iso", "value"}``
        item per day, zero-filled where nothing was consumed.

        Args:
            days: Days to include, clamped to 1..60
            email: Optional filter for one account email
            account_id: Optional filter for one account id
            now: Reference time (defaults to now)

        Returns:
            List of per-day items in ascending date order
        """
        days = max(1, min(MAX_USAGE_LOG_DAYS, int(days)))
        now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        end = now.date()
        since = end - timedelta(days=days - 1)
        since_ts = datetime(since.year, since.month, since.day, tzinfo=timezone.utc)

        query = "SELECT occurred_at, amount FROM credit_usage_event WHERE occurred_at >= ?"
        params: List[object] = [since_ts.isoformat()]
        if email:
            query += " AND email = ?"
            params.append(_normalize_email(email))
        if account_id:
            query += " AND account_id = ?"
            params.append(account_id)
        query += " ORDER BY occurred_at ASC"

        conn = get_connection(self.db_path)
        try:
            by_day: Dict[str, int] = {}
            for occurred_at, amount in conn.execute(query, params).fetchall():
                day = datetime.fromisoformat(occurred_at).astimezone(timezone.utc).date().isoformat()
                by_day[day] = by_day.get(day, 0) + int(amount or 0)
        finally:
            conn.close()

        items = []
        current = since
        while current <= end:
            iso = current.isoformat()
            items.append({"iso": iso, "value": by_day.get(iso, 0)})
            current += timedelta(days=1)
        return items


# Global repository instance
_default_repository: Optional[CreditRepository] = None


def get_repository(db_path: str = DEFAULT_DB_PATH) -> CreditRepository:
    """Get a repository instance.

    Returns the shared instance when it was created for the same path,
    otherwise replaces it.

    Args:
        db_path: Path to SQLite database file

    Returns:
        An instance of CreditRepository
    """
    global _default_repository
    if _default_repository is None or _default_repository.db_path != db_path:
        _default_repository = CreditRepository(db_path)
    return _default_repository


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create ledger and key-value tables if they don't exist.

    credit_usage_event is an append-only ledger: no UPDATE or DELETE
    operations are ever performed on it.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS credit_account (
                account_id TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                total_credits INTEGER NOT NULL DEFAULT 0,
                consumed_credits INTEGER NOT NULL DEFAULT 0,
                active INTEGER NOT NULL DEFAULT 1
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS credit_usage_event (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                occurred_at TEXT NOT NULL,
                account_id TEXT,
                email TEXT NOT NULL,
                amount INTEGER NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_credit_usage_event_occurred_at
            ON credit_usage_event (occurred_at)
        """)
        conn.commit()
    finally:
        conn.close()
    initialize_kv_schema(db_path)


def _normalize_email(email: str) -> str:
    normalized = (email or "").strip().lower()
    if not normalized:
        raise ValueError("email is required and cannot be empty")
    return normalized


def _select_status(conn, email: str) -> Optional[CreditStatus]:
    row = conn.execute("""
        SELECT account_id, email, total_credits, consumed_credits, active
        FROM credit_account WHERE email = ?
    """, (email,)).fetchone()
    if row is None:
        return None
    return CreditStatus(
        account_id=row[0],
        email=row[1],
        total=row[2],
        used=row[3],
        active=bool(row[4])
    )


def _insert_event(conn, event: CreditUsageEvent) -> None:
    # Timestamps are stored in UTC so string comparison orders them
    occurred_at = event.occurred_at
    if occurred_at.tzinfo is None:
        occurred_at = occurred_at.replace(tzinfo=timezone.utc)
    conn.execute("""
        INSERT INTO credit_usage_event (occurred_at, account_id, email, amount)
        VALUES (?, ?, ?, ?)
    """, (
        occurred_at.astimezone(timezone.utc).isoformat(),
        event.account_id,
        event.email,
        event.amount
    ))
