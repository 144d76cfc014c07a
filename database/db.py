import hashlib
import hmac
import secrets
import sqlite3
import uuid
from typing import Any

from backend.config import ADMIN_PASSWORD, ADMIN_USERNAME, DB_PATH
from backend.timeutils import to_iso, utcnow


PASSWORD_HASH_ALGO = "pbkdf2_sha256"
PASSWORD_HASH_ITERATIONS = 120_000

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"

REGISTRATION_SORT_COLUMNS = {
    "check_in": "tr.check_in",
    "check_out": "tr.check_out",
    "created_at": "tr.created_at",
}
WORKER_SORT_COLUMNS = {
    "first_name": "first_name",
    "last_name": "last_name",
    "created_at": "created_at",
}


def _hash_password(password: str, *, salt: str | None = None) -> str:
    salt_value = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt_value.encode("utf-8"),
        PASSWORD_HASH_ITERATIONS,
    ).hex()
    return f"{PASSWORD_HASH_ALGO}${PASSWORD_HASH_ITERATIONS}${salt_value}${digest}"


def _verify_password(password: str, password_hash: str) -> bool:
    try:
        algo, rounds_text, salt_value, expected_digest = password_hash.split("$", 3)
        rounds = int(rounds_text)
    except (ValueError, TypeError):
        return False

    if algo != PASSWORD_HASH_ALGO or rounds <= 0:
        return False

    candidate_digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt_value.encode("utf-8"),
        rounds,
    ).hex()
    return hmac.compare_digest(candidate_digest, expected_digest)


def _now_iso() -> str:
    return to_iso(utcnow())


def _new_id() -> str:
    return str(uuid.uuid4())


def connect_db():
    conn = sqlite3.connect(str(DB_PATH), check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _ensure_default_admin(cursor: sqlite3.Cursor) -> None:
    username = (ADMIN_USERNAME or "").strip()
    password = (ADMIN_PASSWORD or "").strip()
    if not username or not password:
        return

    cursor.execute(
        """
        SELECT id
        FROM admin_users
        WHERE username = ? COLLATE NOCASE
        """,
        (username,),
    )
    if cursor.fetchone():
        return

    cursor.execute(
        """
        INSERT INTO admin_users (username, password_hash, created_at)
        VALUES (?, ?, ?)
        """,
        (username, _hash_password(password), _now_iso()),
    )


def create_tables():
    conn = connect_db()
    cursor = conn.cursor()

    cursor.execute(
        """
    CREATE TABLE IF NOT EXISTS admin_users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE COLLATE NOCASE,
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """
    )

    cursor.execute(
        """
    CREATE TABLE IF NOT EXISTS workers (
        id TEXT PRIMARY KEY,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        department TEXT,
        pin_hash TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """
    )

    cursor.execute(
        """
    CREATE TABLE IF NOT EXISTS time_registrations (
        id TEXT PRIMARY KEY,
        worker_id TEXT NOT NULL,
        check_in TEXT NOT NULL,          -- ISO-8601 UTC, ms precision
        check_out TEXT,
        status TEXT NOT NULL CHECK (status IN ('in_progress', 'completed')),
        manual_intervention INTEGER NOT NULL DEFAULT 0,
        notes TEXT,
        modified_by_admin_id INTEGER,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (worker_id) REFERENCES workers(id),
        FOREIGN KEY (modified_by_admin_id) REFERENCES admin_users(id) ON DELETE SET NULL,
        CHECK (check_out IS NULL OR check_out > check_in)
    )
    """
    )

    # One open interval per worker, enforced by the store itself.
    cursor.execute(
        """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_time_registrations_open_worker
    ON time_registrations (worker_id)
    WHERE status = 'in_progress'
    """
    )
    cursor.execute(
        """
    CREATE INDEX IF NOT EXISTS ix_time_registrations_check_in
    ON time_registrations (check_in)
    """
    )

    _ensure_default_admin(cursor)

    conn.commit()
    conn.close()


# -----------------------------
# Admin users
# -----------------------------
def verify_admin_credentials(username: str, password: str) -> dict | None:
    clean_username = username.strip()
    clean_password = password.strip()
    if not clean_username or not clean_password:
        return None

    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, username, password_hash
        FROM admin_users
        WHERE username = ? COLLATE NOCASE
        """,
        (clean_username,),
    )
    row = cur.fetchone()
    conn.close()

    if not row:
        return None

    admin_id, saved_username, password_hash = row
    if not _verify_password(clean_password, password_hash):
        return None

    return {"id": admin_id, "username": saved_username}


def get_admin_by_id(admin_id: int) -> dict | None:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute("SELECT id, username FROM admin_users WHERE id = ?", (admin_id,))
    row = cur.fetchone()
    conn.close()
    if not row:
        return None
    return {"id": row[0], "username": row[1]}


# -----------------------------
# Workers
# -----------------------------
_WORKER_COLUMNS = "id, first_name, last_name, department, is_active, created_at, updated_at"


def _worker_row_to_dict(row) -> dict[str, Any]:
    return {
        "id": row[0],
        "first_name": row[1],
        "last_name": row[2],
        "department": row[3],
        "is_active": bool(row[4]),
        "created_at": row[5],
        "updated_at": row[6],
    }


def get_workers_with_pin_hashes(*, exclude_id: str | None = None) -> list[dict[str, Any]]:
    """Every worker with its PIN hash, in insertion order."""
    conn = connect_db()
    cur = conn.cursor()
    if exclude_id is None:
        cur.execute(
            """
            SELECT id, first_name, last_name, pin_hash, is_active
            FROM workers
            ORDER BY rowid
            """
        )
    else:
        cur.execute(
            """
            SELECT id, first_name, last_name, pin_hash, is_active
            FROM workers
            WHERE id <> ?
            ORDER BY rowid
            """,
            (exclude_id,),
        )
    rows = cur.fetchall()
    conn.close()
    return [
        {
            "id": r[0],
            "first_name": r[1],
            "last_name": r[2],
            "pin_hash": r[3],
            "is_active": bool(r[4]),
        }
        for r in rows
    ]


def get_worker_by_id(worker_id: str) -> dict[str, Any] | None:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(f"SELECT {_WORKER_COLUMNS} FROM workers WHERE id = ?", (worker_id,))
    row = cur.fetchone()
    conn.close()
    return _worker_row_to_dict(row) if row else None


def add_worker(
    *,
    first_name: str,
    last_name: str,
    pin_hash: str,
    department: str | None = None,
    is_active: bool = True,
) -> dict[str, Any]:
    worker_id = _new_id()
    now = _now_iso()
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO workers (id, first_name, last_name, department, pin_hash, is_active, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (worker_id, first_name, last_name, department, pin_hash, 1 if is_active else 0, now, now),
    )
    conn.commit()
    cur.execute(f"SELECT {_WORKER_COLUMNS} FROM workers WHERE id = ?", (worker_id,))
    row = cur.fetchone()
    conn.close()
    return _worker_row_to_dict(row)


def update_worker_fields(worker_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    allowed = {"first_name", "last_name", "department", "is_active", "pin_hash"}
    updates = {k: v for k, v in fields.items() if k in allowed}
    if "is_active" in updates:
        updates["is_active"] = 1 if updates["is_active"] else 0
    updates["updated_at"] = _now_iso()

    assignments = ", ".join(f"{column} = ?" for column in updates)
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        f"UPDATE workers SET {assignments} WHERE id = ?",
        [*updates.values(), worker_id],
    )
    if cur.rowcount == 0:
        conn.close()
        return None
    conn.commit()
    cur.execute(f"SELECT {_WORKER_COLUMNS} FROM workers WHERE id = ?", (worker_id,))
    row = cur.fetchone()
    conn.close()
    return _worker_row_to_dict(row)


def _build_workers_where_clause(
    *,
    search: str | None = None,
    department: str | None = None,
    is_active: bool | None = None,
) -> tuple[str, list[Any]]:
    where = ["1=1"]
    params: list[Any] = []

    if search:
        where.append("(first_name LIKE ? ESCAPE '\\' OR last_name LIKE ? ESCAPE '\\')")
        escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        params.extend([f"%{escaped}%", f"%{escaped}%"])
    if department is not None:
        where.append("department = ?")
        params.append(department)
    if is_active is not None:
        where.append("is_active = ?")
        params.append(1 if is_active else 0)

    return " AND ".join(where), params


def list_workers(
    *,
    search: str | None = None,
    department: str | None = None,
    is_active: bool | None = None,
    sort_by: str = "last_name",
    sort_order: str = "asc",
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    where_sql, params = _build_workers_where_clause(
        search=search,
        department=department,
        is_active=is_active,
    )
    column = WORKER_SORT_COLUMNS.get(sort_by, "last_name")
    direction = "ASC" if sort_order == "asc" else "DESC"

    conn = connect_db()
    cur = conn.cursor()
    cur.execute(f"SELECT COUNT(1) FROM workers WHERE {where_sql}", params)
    total = int(cur.fetchone()[0] or 0)
    cur.execute(
        f"""
        SELECT {_WORKER_COLUMNS}
        FROM workers
        WHERE {where_sql}
        ORDER BY {column} {direction}, rowid {direction}
        LIMIT ?
        OFFSET ?
        """,
        [*params, limit, offset],
    )
    rows = cur.fetchall()
    conn.close()
    return [_worker_row_to_dict(r) for r in rows], total


def get_worker_counts() -> dict[str, int]:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT
            COUNT(1),
            SUM(CASE WHEN is_active = 1 THEN 1 ELSE 0 END)
        FROM workers
        """
    )
    row = cur.fetchone()
    conn.close()
    total = int(row[0] or 0) if row else 0
    active = int(row[1] or 0) if row else 0
    return {"total": total, "active": active}


# -----------------------------
# Time registrations
# -----------------------------
_REGISTRATION_COLUMNS = """
    tr.id, tr.worker_id, tr.check_in, tr.check_out, tr.status,
    tr.manual_intervention, tr.notes, tr.modified_by_admin_id,
    tr.created_at, tr.updated_at
"""


def _registration_row_to_dict(row) -> dict[str, Any]:
    return {
        "id": row[0],
        "worker_id": row[1],
        "check_in": row[2],
        "check_out": row[3],
        "status": row[4],
        "manual_intervention": bool(row[5]),
        "notes": row[6],
        "modified_by_admin_id": row[7],
        "created_at": row[8],
        "updated_at": row[9],
    }


def _joined_worker(row, start: int) -> dict[str, Any]:
    return {
        "id": row[start],
        "first_name": row[start + 1],
        "last_name": row[start + 2],
        "department": row[start + 3],
    }


def get_registration(registration_id: str) -> dict[str, Any] | None:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        f"SELECT {_REGISTRATION_COLUMNS} FROM time_registrations tr WHERE tr.id = ?",
        (registration_id,),
    )
    row = cur.fetchone()
    conn.close()
    return _registration_row_to_dict(row) if row else None


def get_registration_detail(registration_id: str) -> dict[str, Any] | None:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_REGISTRATION_COLUMNS},
            w.id, w.first_name, w.last_name, w.department,
            a.id, a.username
        FROM time_registrations tr
        JOIN workers w ON w.id = tr.worker_id
        LEFT JOIN admin_users a ON a.id = tr.modified_by_admin_id
        WHERE tr.id = ?
        """,
        (registration_id,),
    )
    row = cur.fetchone()
    conn.close()
    if not row:
        return None
    out = _registration_row_to_dict(row)
    out["worker"] = _joined_worker(row, 10)
    out["modified_by_admin"] = {"id": row[14], "username": row[15]} if row[14] is not None else None
    return out


def find_open_registration(worker_id: str) -> dict[str, Any] | None:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_REGISTRATION_COLUMNS}
        FROM time_registrations tr
        WHERE tr.worker_id = ? AND tr.status = 'in_progress'
        """,
        (worker_id,),
    )
    row = cur.fetchone()
    conn.close()
    return _registration_row_to_dict(row) if row else None


def insert_registration(
    *,
    worker_id: str,
    check_in: str,
    manual_intervention: bool,
    notes: str | None = None,
    modified_by_admin_id: int | None = None,
) -> dict[str, Any]:
    """
    Insert a new open (in_progress) registration.

    Raises sqlite3.IntegrityError when the worker already holds an open one.
    """
    registration_id = _new_id()
    now = _now_iso()
    conn = connect_db()
    cur = conn.cursor()
    try:
        cur.execute(
            """
            INSERT INTO time_registrations (
                id, worker_id, check_in, check_out, status, manual_intervention,
                notes, modified_by_admin_id, created_at, updated_at
            )
            VALUES (?, ?, ?, NULL, 'in_progress', ?, ?, ?, ?, ?)
            """,
            (
                registration_id,
                worker_id,
                check_in,
                1 if manual_intervention else 0,
                notes,
                modified_by_admin_id,
                now,
                now,
            ),
        )
        conn.commit()
        cur.execute(
            f"SELECT {_REGISTRATION_COLUMNS} FROM time_registrations tr WHERE tr.id = ?",
            (registration_id,),
        )
        row = cur.fetchone()
    finally:
        conn.close()
    return _registration_row_to_dict(row)


def close_registration(registration_id: str, check_out: str) -> dict[str, Any] | None:
    """Check out an open registration; None when it is no longer open."""
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE time_registrations
        SET check_out = ?, status = 'completed', updated_at = ?
        WHERE id = ? AND status = 'in_progress'
        """,
        (check_out, _now_iso(), registration_id),
    )
    if cur.rowcount == 0:
        conn.close()
        return None
    conn.commit()
    cur.execute(
        f"SELECT {_REGISTRATION_COLUMNS} FROM time_registrations tr WHERE tr.id = ?",
        (registration_id,),
    )
    row = cur.fetchone()
    conn.close()
    return _registration_row_to_dict(row)


def update_registration_fields(registration_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    allowed = {"check_in", "check_out", "status", "notes", "manual_intervention", "modified_by_admin_id"}
    updates = {k: v for k, v in fields.items() if k in allowed}
    if "manual_intervention" in updates:
        updates["manual_intervention"] = 1 if updates["manual_intervention"] else 0
    updates["updated_at"] = _now_iso()

    assignments = ", ".join(f"{column} = ?" for column in updates)
    conn = connect_db()
    cur = conn.cursor()
    try:
        cur.execute(
            f"UPDATE time_registrations SET {assignments} WHERE id = ?",
            [*updates.values(), registration_id],
        )
        if cur.rowcount == 0:
            return None
        conn.commit()
        cur.execute(
            f"SELECT {_REGISTRATION_COLUMNS} FROM time_registrations tr WHERE tr.id = ?",
            (registration_id,),
        )
        row = cur.fetchone()
    finally:
        conn.close()
    return _registration_row_to_dict(row)


def delete_registration(registration_id: str) -> bool:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute("DELETE FROM time_registrations WHERE id = ?", (registration_id,))
    deleted = cur.rowcount > 0
    conn.commit()
    conn.close()
    return deleted


def _build_registrations_where_clause(
    *,
    worker_id: str | None = None,
    status: str | None = None,
    manual_intervention: bool | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> tuple[str, list[Any]]:
    where = ["1=1"]
    params: list[Any] = []

    if worker_id is not None:
        where.append("tr.worker_id = ?")
        params.append(worker_id)
    if status is not None:
        where.append("tr.status = ?")
        params.append(status)
    if manual_intervention is not None:
        where.append("tr.manual_intervention = ?")
        params.append(1 if manual_intervention else 0)
    if date_from is not None:
        where.append("tr.check_in >= ?")
        params.append(date_from)
    if date_to is not None:
        where.append("tr.check_in <= ?")
        params.append(date_to)

    return " AND ".join(where), params


def list_registrations(
    *,
    worker_id: str | None = None,
    status: str | None = None,
    manual_intervention: bool | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    sort_by: str = "check_in",
    sort_order: str = "desc",
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """Page of registrations joined with their worker, plus the unpaged total."""
    where_sql, params = _build_registrations_where_clause(
        worker_id=worker_id,
        status=status,
        manual_intervention=manual_intervention,
        date_from=date_from,
        date_to=date_to,
    )
    column = REGISTRATION_SORT_COLUMNS.get(sort_by, "tr.check_in")
    direction = "ASC" if sort_order == "asc" else "DESC"

    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT COUNT(1)
        FROM time_registrations tr
        JOIN workers w ON w.id = tr.worker_id
        WHERE {where_sql}
        """,
        params,
    )
    total = int(cur.fetchone()[0] or 0)
    cur.execute(
        f"""
        SELECT {_REGISTRATION_COLUMNS},
            w.id, w.first_name, w.last_name, w.department
        FROM time_registrations tr
        JOIN workers w ON w.id = tr.worker_id
        WHERE {where_sql}
        ORDER BY {column} {direction}, tr.rowid {direction}
        LIMIT ?
        OFFSET ?
        """,
        [*params, limit, offset],
    )
    rows = cur.fetchall()
    conn.close()

    out: list[dict[str, Any]] = []
    for row in rows:
        item = _registration_row_to_dict(row)
        item["worker"] = _joined_worker(row, 10)
        out.append(item)
    return out, total


def get_registrations_in_range(*, date_from: str | None = None, date_to: str | None = None) -> list[dict[str, Any]]:
    where_sql, params = _build_registrations_where_clause(date_from=date_from, date_to=date_to)
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_REGISTRATION_COLUMNS}
        FROM time_registrations tr
        WHERE {where_sql}
        """,
        params,
    )
    rows = cur.fetchall()
    conn.close()
    return [_registration_row_to_dict(r) for r in rows]


def get_completed_registrations_for_worker(worker_id: str) -> list[dict[str, Any]]:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_REGISTRATION_COLUMNS}
        FROM time_registrations tr
        WHERE tr.worker_id = ? AND tr.status = 'completed'
        """,
        (worker_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [_registration_row_to_dict(r) for r in rows]


def get_open_registration_worker_ids() -> set[str]:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute("SELECT DISTINCT worker_id FROM time_registrations WHERE status = 'in_progress'")
    rows = cur.fetchall()
    conn.close()
    return {r[0] for r in rows}


def get_recent_registrations(limit: int) -> list[dict[str, Any]]:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_REGISTRATION_COLUMNS},
            w.id, w.first_name, w.last_name, w.department
        FROM time_registrations tr
        JOIN workers w ON w.id = tr.worker_id
        ORDER BY tr.created_at DESC, tr.rowid DESC
        LIMIT ?
        """,
        (limit,),
    )
    rows = cur.fetchall()
    conn.close()

    out: list[dict[str, Any]] = []
    for row in rows:
        item = _registration_row_to_dict(row)
        item["worker"] = _joined_worker(row, 10)
        out.append(item)
    return out
