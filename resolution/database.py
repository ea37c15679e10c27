"""
SQLite persistence layer for supplier resolution.

A single database file (data/suppliers.db) holding:

  suppliers              tenant-scoped canonical vendor records
  supplier_attributes    hashed addresses / contacts / bank accounts
  supplier_data_sources  provenance (which document contributed what)
  global_suppliers       one cross-tenant record per real-world company
  review_queue           medium-confidence matches awaiting a human

Every unit of work runs inside ``Database.transaction()``, which yields a
``SupplierStore`` bound to one connection. Rows leave this module only as
typed records; unique-index failures surface as ``UniqueViolation``.
"""
import json
import logging
import re
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from models.supplier import (
    GlobalSupplier,
    ReviewItem,
    Supplier,
    SupplierAttribute,
    SupplierDataSource,
    SupplierWithAttributes,
)
from resolution.errors import UniqueViolation

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS suppliers (
    id                  TEXT PRIMARY KEY,
    tenant_id           TEXT NOT NULL,
    company_number      TEXT,
    vat_number          TEXT,
    legal_name          TEXT NOT NULL,
    display_name        TEXT NOT NULL,
    slug                TEXT NOT NULL,
    status              TEXT NOT NULL DEFAULT 'active',   -- active | inactive | deleted
    global_supplier_id  TEXT REFERENCES global_suppliers (id),
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    deleted_at          TEXT
);

CREATE UNIQUE INDEX IF NOT EXISTS uq_suppliers_tenant_slug
    ON suppliers (tenant_id, slug);
-- Soft-deleted suppliers release their company number
CREATE UNIQUE INDEX IF NOT EXISTS uq_suppliers_tenant_company_number
    ON suppliers (tenant_id, company_number)
    WHERE company_number IS NOT NULL AND status != 'deleted';
CREATE INDEX IF NOT EXISTS idx_suppliers_tenant_status ON suppliers (tenant_id, status);
CREATE INDEX IF NOT EXISTS idx_suppliers_tenant_vat    ON suppliers (tenant_id, vat_number);
CREATE INDEX IF NOT EXISTS idx_suppliers_global        ON suppliers (global_supplier_id);

CREATE TABLE IF NOT EXISTS supplier_attributes (
    id              TEXT PRIMARY KEY,
    supplier_id     TEXT NOT NULL REFERENCES suppliers (id),
    attribute_type  TEXT NOT NULL,      -- address | phone | email | website | bank_account
    value           TEXT NOT NULL,      -- normalised JSON payload
    hash            TEXT NOT NULL,      -- SHA-256 of the canonical payload
    confidence      INTEGER NOT NULL DEFAULT 50,
    seen_count      INTEGER NOT NULL DEFAULT 1,
    is_primary      INTEGER NOT NULL DEFAULT 0,
    is_active       INTEGER NOT NULL DEFAULT 1,
    source_type     TEXT,
    source_id       TEXT,
    first_seen_at   TEXT NOT NULL,
    last_seen_at    TEXT NOT NULL,
    created_by      TEXT,
    UNIQUE (supplier_id, attribute_type, hash)
);

CREATE INDEX IF NOT EXISTS idx_attributes_supplier ON supplier_attributes (supplier_id, is_active);

CREATE TABLE IF NOT EXISTS supplier_data_sources (
    id                TEXT PRIMARY KEY,
    supplier_id       TEXT NOT NULL REFERENCES suppliers (id),
    source_type       TEXT NOT NULL,
    source_id         TEXT NOT NULL,
    occurrence_count  INTEGER NOT NULL DEFAULT 1,
    first_seen_at     TEXT NOT NULL,
    last_seen_at      TEXT NOT NULL,
    UNIQUE (supplier_id, source_type, source_id)
);

CREATE TABLE IF NOT EXISTS global_suppliers (
    id                   TEXT PRIMARY KEY,
    company_number       TEXT,
    vat_number           TEXT,
    canonical_name       TEXT NOT NULL,
    primary_domain       TEXT,
    logo_url             TEXT,
    logo_fetch_status    TEXT NOT NULL DEFAULT 'pending',  -- pending | success | not_found | failed
    logo_fetch_attempts  INTEGER NOT NULL DEFAULT 0,
    logo_fetched_at      TEXT,
    logo_last_failed_at  TEXT,
    created_at           TEXT NOT NULL,
    updated_at           TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS uq_global_company_number
    ON global_suppliers (company_number) WHERE company_number IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_global_vat    ON global_suppliers (vat_number);
CREATE INDEX IF NOT EXISTS idx_global_domain ON global_suppliers (primary_domain);

CREATE TABLE IF NOT EXISTS review_queue (
    id            TEXT PRIMARY KEY,
    scope         TEXT NOT NULL,        -- tenant | global
    tenant_id     TEXT,
    subject_ref   TEXT NOT NULL,
    candidate_id  TEXT NOT NULL,
    confidence    INTEGER NOT NULL,
    match_type    TEXT NOT NULL,
    payload       TEXT,
    status        TEXT NOT NULL DEFAULT 'pending',  -- pending | resolved | dismissed
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,
    UNIQUE (scope, subject_ref, candidate_id)
);

CREATE INDEX IF NOT EXISTS idx_review_status ON review_queue (status, created_at DESC);
"""

_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: (.+)$")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _unique_violation(exc: sqlite3.IntegrityError) -> Optional[UniqueViolation]:
    """'UNIQUE constraint failed: suppliers.tenant_id, suppliers.slug' -> UniqueViolation."""
    match = _UNIQUE_RE.search(str(exc))
    if not match:
        return None
    qualified = [c.strip() for c in match.group(1).split(",")]
    table = qualified[0].split(".", 1)[0]
    columns = [c.split(".", 1)[-1] for c in qualified]
    return UniqueViolation(table, columns, str(exc))


# ----------------------------------------------------------------------
# Row mappers
# ----------------------------------------------------------------------

def _row_to_supplier(row: sqlite3.Row) -> Supplier:
    return Supplier(
        id=row["id"],
        tenant_id=row["tenant_id"],
        company_number=row["company_number"],
        vat_number=row["vat_number"],
        legal_name=row["legal_name"],
        display_name=row["display_name"],
        slug=row["slug"],
        status=row["status"],
        global_supplier_id=row["global_supplier_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        deleted_at=row["deleted_at"],
    )


def _row_to_attribute(row: sqlite3.Row) -> SupplierAttribute:
    return SupplierAttribute(
        id=row["id"],
        supplier_id=row["supplier_id"],
        attribute_type=row["attribute_type"],
        value=json.loads(row["value"]),
        hash=row["hash"],
        confidence=row["confidence"],
        seen_count=row["seen_count"],
        is_primary=bool(row["is_primary"]),
        is_active=bool(row["is_active"]),
        source_type=row["source_type"],
        source_id=row["source_id"],
        first_seen_at=row["first_seen_at"],
        last_seen_at=row["last_seen_at"],
        created_by=row["created_by"],
    )


def _row_to_data_source(row: sqlite3.Row) -> SupplierDataSource:
    return SupplierDataSource(
        id=row["id"],
        supplier_id=row["supplier_id"],
        source_type=row["source_type"],
        source_id=row["source_id"],
        occurrence_count=row["occurrence_count"],
        first_seen_at=row["first_seen_at"],
        last_seen_at=row["last_seen_at"],
    )


def _row_to_global(row: sqlite3.Row) -> GlobalSupplier:
    return GlobalSupplier(
        id=row["id"],
        company_number=row["company_number"],
        vat_number=row["vat_number"],
        canonical_name=row["canonical_name"],
        primary_domain=row["primary_domain"],
        logo_url=row["logo_url"],
        logo_fetch_status=row["logo_fetch_status"],
        logo_fetch_attempts=row["logo_fetch_attempts"],
        logo_fetched_at=row["logo_fetched_at"],
        logo_last_failed_at=row["logo_last_failed_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_review(row: sqlite3.Row) -> ReviewItem:
    return ReviewItem(
        id=row["id"],
        scope=row["scope"],
        tenant_id=row["tenant_id"],
        subject_ref=row["subject_ref"],
        candidate_id=row["candidate_id"],
        confidence=row["confidence"],
        match_type=row["match_type"],
        payload=json.loads(row["payload"]) if row["payload"] else {},
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class Database:
    """Owns the SQLite file; hands out connection-scoped stores."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly below
        conn = sqlite3.connect(str(self.db_path), timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator["SupplierStore"]:
        """
        Write transaction. BEGIN IMMEDIATE takes the write lock up front so
        the read-then-insert done by slug allocation cannot interleave with
        another writer on this file.
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield SupplierStore(conn)
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    @contextmanager
    def reader(self) -> Iterator["SupplierStore"]:
        """Read-only access. A deferred transaction pins every statement to one WAL snapshot."""
        conn = self._connect()
        try:
            conn.execute("BEGIN")
            yield SupplierStore(conn)
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        conn = self._connect()
        try:
            conn.executescript(_SCHEMA)
        finally:
            conn.close()
        logger.debug("Database schema ready: %s", self.db_path)


class SupplierStore:
    """All SQL for one connection. Created by Database.transaction() / reader()."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def _execute(self, sql: str, params: Any = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, params)
        except sqlite3.IntegrityError as exc:
            violation = _unique_violation(exc)
            if violation is not None:
                raise violation from exc
            raise

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def slugs_with_prefix(self, tenant_id: str, base: str) -> set[str]:
        rows = self._execute(
            "SELECT slug FROM suppliers WHERE tenant_id = ? AND (slug = ? OR substr(slug, 1, ?) = ?)",
            (tenant_id, base, len(base) + 1, base + "-"),
        ).fetchall()
        return {r["slug"] for r in rows}

    def insert_supplier(
        self,
        tenant_id: str,
        name: str,
        slug: str,
        company_number: Optional[str] = None,
        vat_number: Optional[str] = None,
        legal_name: Optional[str] = None,
    ) -> Supplier:
        now = _now()
        supplier_id = _new_id()
        self._execute(
            """
            INSERT INTO suppliers (
                id, tenant_id, company_number, vat_number, legal_name,
                display_name, slug, status, created_at, updated_at
            ) VALUES (
                :id, :tenant_id, :company_number, :vat_number, :legal_name,
                :display_name, :slug, 'active', :now, :now
            )
            """,
            {
                "id": supplier_id,
                "tenant_id": tenant_id,
                "company_number": company_number,
                "vat_number": vat_number,
                "legal_name": legal_name or name,
                "display_name": name,
                "slug": slug,
                "now": now,
            },
        )
        return self.get_supplier(supplier_id)

    def get_supplier(self, supplier_id: str) -> Optional[Supplier]:
        row = self._execute("SELECT * FROM suppliers WHERE id = ?", (supplier_id,)).fetchone()
        return _row_to_supplier(row) if row else None

    def update_supplier(self, supplier_id: str, **fields: Any) -> Optional[Supplier]:
        allowed = {
            "company_number", "vat_number", "legal_name", "display_name",
            "status", "global_supplier_id", "deleted_at",
        }
        updates = {k: v for k, v in fields.items() if k in allowed}
        if updates:
            assignments = ", ".join(f"{k} = :{k}" for k in updates)
            self._execute(
                f"UPDATE suppliers SET {assignments}, updated_at = :updated_at WHERE id = :id",
                {**updates, "updated_at": _now(), "id": supplier_id},
            )
        return self.get_supplier(supplier_id)

    def active_suppliers_with_attributes(self, tenant_id: str) -> list[SupplierWithAttributes]:
        """Every active supplier of the tenant with its active attributes (two queries, no N+1)."""
        suppliers = [
            _row_to_supplier(r) for r in self._execute(
                "SELECT * FROM suppliers WHERE tenant_id = ? AND status = 'active' ORDER BY created_at",
                (tenant_id,),
            ).fetchall()
        ]
        by_id = {s.id: SupplierWithAttributes(supplier=s) for s in suppliers}
        rows = self._execute(
            """
            SELECT a.* FROM supplier_attributes a
            JOIN suppliers s ON s.id = a.supplier_id
            WHERE s.tenant_id = ? AND s.status = 'active' AND a.is_active = 1
            """,
            (tenant_id,),
        ).fetchall()
        for row in rows:
            # Outside a snapshot a supplier committed between the two queries has no entry
            entry = by_id.get(row["supplier_id"])
            if entry is not None:
                entry.attributes.append(_row_to_attribute(row))
        return list(by_id.values())

    def list_suppliers(
        self,
        tenant_id: str,
        limit: int = 50,
        offset: int = 0,
        include_deleted: bool = False,
    ) -> list[Supplier]:
        sql = "SELECT * FROM suppliers WHERE tenant_id = ?"
        if not include_deleted:
            sql += " AND status != 'deleted'"
        sql += " ORDER BY display_name COLLATE NOCASE LIMIT ? OFFSET ?"
        rows = self._execute(sql, (tenant_id, limit, offset)).fetchall()
        return [_row_to_supplier(r) for r in rows]

    def search_by_name(self, tenant_id: str, query: str, limit: int = 20) -> list[Supplier]:
        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        rows = self._execute(
            """
            SELECT * FROM suppliers
            WHERE tenant_id = ? AND status = 'active'
              AND (display_name LIKE ? ESCAPE '\\' OR legal_name LIKE ? ESCAPE '\\')
            ORDER BY display_name COLLATE NOCASE
            LIMIT ?
            """,
            (tenant_id, pattern, pattern, limit),
        ).fetchall()
        return [_row_to_supplier(r) for r in rows]

    def get_by_company_number(self, tenant_id: str, company_number: str) -> Optional[Supplier]:
        row = self._execute(
            "SELECT * FROM suppliers WHERE tenant_id = ? AND company_number = ? AND status != 'deleted'",
            (tenant_id, company_number),
        ).fetchone()
        return _row_to_supplier(row) if row else None

    def get_by_vat_number(self, tenant_id: str, vat_number: str) -> Optional[Supplier]:
        row = self._execute(
            """
            SELECT * FROM suppliers
            WHERE tenant_id = ? AND vat_number = ? AND status != 'deleted'
            ORDER BY created_at LIMIT 1
            """,
            (tenant_id, vat_number),
        ).fetchone()
        return _row_to_supplier(row) if row else None

    def suppliers_without_global(self, tenant_id: Optional[str] = None, limit: int = 100) -> list[Supplier]:
        sql = "SELECT * FROM suppliers WHERE global_supplier_id IS NULL AND status = 'active'"
        params: list[Any] = []
        if tenant_id:
            sql += " AND tenant_id = ?"
            params.append(tenant_id)
        sql += " ORDER BY created_at LIMIT ?"
        params.append(limit)
        return [_row_to_supplier(r) for r in self._execute(sql, params).fetchall()]

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    def attribute_hashes(self, supplier_id: str) -> set[tuple[str, str]]:
        rows = self._execute(
            "SELECT attribute_type, hash FROM supplier_attributes WHERE supplier_id = ?",
            (supplier_id,),
        ).fetchall()
        return {(r["attribute_type"], r["hash"]) for r in rows}

    def upsert_attribute(
        self,
        supplier_id: str,
        attribute_type: str,
        value: dict,
        value_hash: str,
        confidence: int,
        increment: int,
        is_primary: bool = False,
        source_type: Optional[str] = None,
        source_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> None:
        """
        Insert a new attribute, or bump seen_count / confidence on the
        existing row with the same hash. The stored value never changes.
        """
        now = _now()
        self._execute(
            """
            INSERT INTO supplier_attributes (
                id, supplier_id, attribute_type, value, hash, confidence,
                seen_count, is_primary, is_active, source_type, source_id,
                first_seen_at, last_seen_at, created_by
            ) VALUES (
                :id, :supplier_id, :attribute_type, :value, :hash, :confidence,
                1, :is_primary, 1, :source_type, :source_id,
                :now, :now, :created_by
            )
            ON CONFLICT (supplier_id, attribute_type, hash) DO UPDATE SET
                seen_count   = seen_count + 1,
                confidence   = MIN(100, confidence + :increment),
                last_seen_at = :now
            """,
            {
                "id": _new_id(),
                "supplier_id": supplier_id,
                "attribute_type": attribute_type,
                "value": json.dumps(value, sort_keys=True),
                "hash": value_hash,
                "confidence": confidence,
                "is_primary": int(is_primary),
                "source_type": source_type,
                "source_id": source_id,
                "now": now,
                "created_by": created_by,
                "increment": increment,
            },
        )

    def get_attributes(self, supplier_id: str, active_only: bool = True) -> list[SupplierAttribute]:
        sql = "SELECT * FROM supplier_attributes WHERE supplier_id = ?"
        if active_only:
            sql += " AND is_active = 1"
        sql += " ORDER BY attribute_type, is_primary DESC, confidence DESC"
        return [_row_to_attribute(r) for r in self._execute(sql, (supplier_id,)).fetchall()]

    def get_attribute(self, attribute_id: str) -> Optional[SupplierAttribute]:
        row = self._execute("SELECT * FROM supplier_attributes WHERE id = ?", (attribute_id,)).fetchone()
        return _row_to_attribute(row) if row else None

    def set_primary_attribute(self, supplier_id: str, attribute_id: str, attribute_type: str) -> None:
        self._execute(
            "UPDATE supplier_attributes SET is_primary = 0 WHERE supplier_id = ? AND attribute_type = ?",
            (supplier_id, attribute_type),
        )
        self._execute(
            "UPDATE supplier_attributes SET is_primary = 1 WHERE id = ?",
            (attribute_id,),
        )

    # ------------------------------------------------------------------
    # Provenance
    # ------------------------------------------------------------------

    def upsert_data_source(self, supplier_id: str, source_type: str, source_id: str) -> SupplierDataSource:
        now = _now()
        self._execute(
            """
            INSERT INTO supplier_data_sources (
                id, supplier_id, source_type, source_id, occurrence_count, first_seen_at, last_seen_at
            ) VALUES (:id, :supplier_id, :source_type, :source_id, 1, :now, :now)
            ON CONFLICT (supplier_id, source_type, source_id) DO UPDATE SET
                occurrence_count = occurrence_count + 1,
                last_seen_at     = excluded.last_seen_at
            """,
            {
                "id": _new_id(),
                "supplier_id": supplier_id,
                "source_type": source_type,
                "source_id": source_id,
                "now": now,
            },
        )
        row = self._execute(
            "SELECT * FROM supplier_data_sources WHERE supplier_id = ? AND source_type = ? AND source_id = ?",
            (supplier_id, source_type, source_id),
        ).fetchone()
        return _row_to_data_source(row)

    def get_data_sources(self, supplier_id: str) -> list[SupplierDataSource]:
        rows = self._execute(
            "SELECT * FROM supplier_data_sources WHERE supplier_id = ? ORDER BY first_seen_at",
            (supplier_id,),
        ).fetchall()
        return [_row_to_data_source(r) for r in rows]

    # ------------------------------------------------------------------
    # Global suppliers
    # ------------------------------------------------------------------

    def get_global(self, global_id: str) -> Optional[GlobalSupplier]:
        row = self._execute("SELECT * FROM global_suppliers WHERE id = ?", (global_id,)).fetchone()
        return _row_to_global(row) if row else None

    def global_by_company_number(self, company_number: str) -> Optional[GlobalSupplier]:
        row = self._execute(
            "SELECT * FROM global_suppliers WHERE company_number = ?", (company_number,),
        ).fetchone()
        return _row_to_global(row) if row else None

    def globals_by_vat_number(self, vat_number: str) -> list[GlobalSupplier]:
        rows = self._execute(
            "SELECT * FROM global_suppliers WHERE vat_number = ? ORDER BY created_at", (vat_number,),
        ).fetchall()
        return [_row_to_global(r) for r in rows]

    def globals_by_domain(self, domain: str) -> list[GlobalSupplier]:
        rows = self._execute(
            "SELECT * FROM global_suppliers WHERE primary_domain = ? ORDER BY created_at", (domain.lower(),),
        ).fetchall()
        return [_row_to_global(r) for r in rows]

    def global_name_pages(self, page_size: int, limit: int) -> Iterator[list[GlobalSupplier]]:
        """All global suppliers, oldest first, ``page_size`` at a time; stops after ``limit`` rows."""
        fetched = 0
        last_key: tuple[str, str] = ("", "")
        while fetched < limit:
            size = min(page_size, limit - fetched)
            rows = self._execute(
                """
                SELECT * FROM global_suppliers
                WHERE (created_at, id) > (?, ?)
                ORDER BY created_at, id
                LIMIT ?
                """,
                (last_key[0], last_key[1], size),
            ).fetchall()
            if not rows:
                return
            fetched += len(rows)
            last_key = (rows[-1]["created_at"], rows[-1]["id"])
            yield [_row_to_global(r) for r in rows]

    def insert_global(
        self,
        canonical_name: str,
        company_number: Optional[str],
        vat_number: Optional[str],
        primary_domain: Optional[str],
    ) -> GlobalSupplier:
        now = _now()
        global_id = _new_id()
        self._execute(
            """
            INSERT INTO global_suppliers (
                id, company_number, vat_number, canonical_name, primary_domain,
                logo_fetch_status, created_at, updated_at
            ) VALUES (
                :id, :company_number, :vat_number, :canonical_name, :primary_domain,
                :status, :now, :now
            )
            """,
            {
                "id": global_id,
                "company_number": company_number,
                "vat_number": vat_number,
                "canonical_name": canonical_name,
                "primary_domain": primary_domain.lower() if primary_domain else None,
                "status": "pending" if primary_domain else "not_found",
                "now": now,
            },
        )
        return self.get_global(global_id)

    def link_supplier_to_global(self, supplier_id: str, global_id: str) -> None:
        self._execute(
            "UPDATE suppliers SET global_supplier_id = ?, updated_at = ? WHERE id = ?",
            (global_id, _now(), supplier_id),
        )

    def globals_needing_logos(self, limit: int = 10) -> list[GlobalSupplier]:
        rows = self._execute(
            """
            SELECT * FROM global_suppliers
            WHERE logo_fetch_status = 'pending' AND logo_fetched_at IS NULL
              AND primary_domain IS NOT NULL
            ORDER BY created_at
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
        return [_row_to_global(r) for r in rows]

    def globals_with_status(self, statuses: tuple[str, ...], limit: int = 100) -> list[GlobalSupplier]:
        placeholders = ", ".join("?" for _ in statuses)
        rows = self._execute(
            f"""
            SELECT * FROM global_suppliers
            WHERE logo_fetch_status IN ({placeholders}) AND primary_domain IS NOT NULL
            ORDER BY updated_at
            LIMIT ?
            """,
            (*statuses, limit),
        ).fetchall()
        return [_row_to_global(r) for r in rows]

    def record_logo_result(
        self,
        global_id: str,
        status: str,
        logo_url: Optional[str] = None,
    ) -> None:
        """Every outcome bumps attempts and stamps logo_fetched_at; success clears the failure time."""
        now = _now()
        if status == "failed":
            self._execute(
                """
                UPDATE global_suppliers SET
                    logo_fetch_status   = 'failed',
                    logo_fetch_attempts = logo_fetch_attempts + 1,
                    logo_fetched_at     = :now,
                    logo_last_failed_at = :now,
                    updated_at          = :now
                WHERE id = :id
                """,
                {"now": now, "id": global_id},
            )
            return
        self._execute(
            """
            UPDATE global_suppliers SET
                logo_fetch_status   = :status,
                logo_url            = COALESCE(:logo_url, logo_url),
                logo_fetched_at     = :now,
                logo_fetch_attempts = logo_fetch_attempts + 1,
                logo_last_failed_at = CASE WHEN :status = 'success' THEN NULL ELSE logo_last_failed_at END,
                updated_at          = :now
            WHERE id = :id
            """,
            {"status": status, "logo_url": logo_url, "now": now, "id": global_id},
        )

    # ------------------------------------------------------------------
    # Review queue
    # ------------------------------------------------------------------

    def upsert_review_item(
        self,
        scope: str,
        subject_ref: str,
        candidate_id: str,
        confidence: int,
        match_type: str,
        payload: dict,
        tenant_id: Optional[str] = None,
    ) -> ReviewItem:
        now = _now()
        self._execute(
            """
            INSERT INTO review_queue (
                id, scope, tenant_id, subject_ref, candidate_id, confidence,
                match_type, payload, status, created_at, updated_at
            ) VALUES (
                :id, :scope, :tenant_id, :subject_ref, :candidate_id, :confidence,
                :match_type, :payload, 'pending', :now, :now
            )
            ON CONFLICT (scope, subject_ref, candidate_id) DO UPDATE SET
                confidence = excluded.confidence,
                match_type = excluded.match_type,
                payload    = excluded.payload,
                updated_at = excluded.updated_at
            """,
            {
                "id": _new_id(),
                "scope": scope,
                "tenant_id": tenant_id,
                "subject_ref": subject_ref,
                "candidate_id": candidate_id,
                "confidence": confidence,
                "match_type": match_type,
                "payload": json.dumps(payload, default=str),
                "now": now,
            },
        )
        row = self._execute(
            "SELECT * FROM review_queue WHERE scope = ? AND subject_ref = ? AND candidate_id = ?",
            (scope, subject_ref, candidate_id),
        ).fetchone()
        return _row_to_review(row)

    def list_review_items(
        self,
        status: Optional[str] = "pending",
        scope: Optional[str] = None,
        tenant_id: Optional[str] = None,
        limit: int = 50,
    ) -> list[ReviewItem]:
        clauses, params = [], []
        if status:
            clauses.append("status = ?")
            params.append(status)
        if scope:
            clauses.append("scope = ?")
            params.append(scope)
        if tenant_id:
            clauses.append("tenant_id = ?")
            params.append(tenant_id)
        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
        rows = self._execute(
            f"SELECT * FROM review_queue {where} ORDER BY created_at DESC LIMIT ?",
            (*params, limit),
        ).fetchall()
        return [_row_to_review(r) for r in rows]

    def set_review_status(self, review_id: str, status: str) -> bool:
        cur = self._execute(
            "UPDATE review_queue SET status = ?, updated_at = ? WHERE id = ?",
            (status, _now(), review_id),
        )
        return cur.rowcount > 0
