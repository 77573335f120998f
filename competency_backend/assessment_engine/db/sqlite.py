"""SQLite database helper and the SQLite-backed assessment store.

Only used when DATA_PROVIDER=sqlite. Otherwise the in-memory store is used.

- Use parameterized queries.
- Ensure connections are closed via context managers.
- Create DB directory if missing; initialize schema on first connect.
"""
from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence
from uuid import uuid4

from assessment_engine.core.config import get_settings
from assessment_engine.core.errors import EntityNotFoundError
from assessment_engine.db.store import AssessmentStore, utc_now
from assessment_engine.models.domain import (
    Assessment,
    AssessmentStatus,
    Competency,
    CriteriaEvaluation,
    EvaluationInput,
    Progress,
    Role,
    SubCompetency,
    Subject,
)

_LEGACY_COLUMNS = ("associate_level", "intermediate_level", "senior_level", "lead_level", "principal_level")


def _ensure_schema(conn: sqlite3.Connection) -> None:
    """Create the catalog and assessment tables if missing."""
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS roles (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            type TEXT NOT NULL
        );
        CREATE TABLE IF NOT EXISTS competencies (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            code TEXT,
            description TEXT,
            order_index INTEGER NOT NULL DEFAULT 0,
            role_id TEXT
        );
        -- level_criteria and the legacy level columns hold JSON arrays
        CREATE TABLE IF NOT EXISTS sub_competencies (
            id TEXT PRIMARY KEY,
            competency_id TEXT NOT NULL,
            title TEXT NOT NULL,
            code TEXT,
            order_index INTEGER NOT NULL DEFAULT 0,
            level_criteria TEXT NOT NULL DEFAULT '[]',
            associate_level TEXT,
            intermediate_level TEXT,
            senior_level TEXT,
            lead_level TEXT,
            principal_level TEXT
        );
        CREATE TABLE IF NOT EXISTS subjects (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            kind TEXT NOT NULL,
            current_level_key TEXT NOT NULL,
            role_id TEXT,
            role_type TEXT NOT NULL
        );
        CREATE TABLE IF NOT EXISTS assessments (
            id TEXT PRIMARY KEY,
            subject_id TEXT NOT NULL,
            status TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            completed_at TEXT,
            overall_score REAL,
            notes TEXT
        );
        CREATE TABLE IF NOT EXISTS progress (
            id TEXT PRIMARY KEY,
            assessment_id TEXT NOT NULL,
            subject_id TEXT NOT NULL,
            sub_competency_id TEXT NOT NULL,
            current_level TEXT NOT NULL,
            notes TEXT,
            assessed_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(assessment_id, sub_competency_id),
            FOREIGN KEY(assessment_id) REFERENCES assessments(id) ON DELETE CASCADE
        );
        CREATE TABLE IF NOT EXISTS criteria_evaluations (
            id TEXT PRIMARY KEY,
            progress_id TEXT NOT NULL,
            position INTEGER NOT NULL,
            criterion_text TEXT NOT NULL,
            evaluation TEXT NOT NULL,
            FOREIGN KEY(progress_id) REFERENCES progress(id) ON DELETE CASCADE
        );
        """
    )
    conn.commit()


@contextmanager
def get_conn(db_path: Optional[str] = None):
    path = Path(db_path or get_settings().db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    # Use check_same_thread=False to prevent thread-affinity errors under TestClient.
    conn = sqlite3.connect(str(path), check_same_thread=False)
    try:
        conn.execute("PRAGMA foreign_keys = ON")
        _ensure_schema(conn)
        yield conn
    finally:
        conn.close()


def fetch_all(conn: sqlite3.Connection, query: str, params: Iterable[Any]) -> list[dict[str, Any]]:
    conn.row_factory = sqlite3.Row
    cur = conn.execute(query, list(params))
    rows = cur.fetchall()
    return [dict(r) for r in rows]


def fetch_one(conn: sqlite3.Connection, query: str, params: Iterable[Any]) -> Optional[dict[str, Any]]:
    conn.row_factory = sqlite3.Row
    cur = conn.execute(query, list(params))
    row = cur.fetchone()
    return dict(row) if row else None


def execute(conn: sqlite3.Connection, query: str, params: Iterable[Any]) -> None:
    conn.execute(query, list(params))
    conn.commit()


# PUBLIC_INTERFACE
def reset_tables(db_path: Optional[str] = None) -> None:
    """Delete all rows from every table, for test isolation on a shared DB path."""
    with get_conn(db_path) as conn:
        # Dependent tables first due to foreign keys
        for table in (
            "criteria_evaluations",
            "progress",
            "assessments",
            "subjects",
            "sub_competencies",
            "competencies",
            "roles",
        ):
            conn.execute(f"DELETE FROM {table}")
        conn.commit()


def _dump_list(value: Optional[List[str]]) -> Optional[str]:
    return json.dumps(value) if value is not None else None


def _sub_from_row(row: dict[str, Any]) -> SubCompetency:
    data = dict(row)
    data["level_criteria"] = json.loads(data["level_criteria"] or "[]")
    for col in _LEGACY_COLUMNS:
        data[col] = json.loads(data[col]) if data[col] is not None else None
    return SubCompetency(**data)


def _placeholders(n: int) -> str:
    return ",".join("?" for _ in range(n))


class SqliteAssessmentStore(AssessmentStore):
    """Store backed by one SQLite file; each call opens a short-lived connection."""

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path

    def _conn(self):
        return get_conn(self.db_path)

    # --- catalog ---

    async def add_role(self, role: Role) -> Role:
        with self._conn() as conn:
            execute(
                conn,
                "INSERT OR REPLACE INTO roles (id, name, type) VALUES (?, ?, ?)",
                (role.id, role.name, role.type.value),
            )
        return role

    async def get_role(self, role_id: str) -> Optional[Role]:
        with self._conn() as conn:
            row = fetch_one(conn, "SELECT * FROM roles WHERE id = ?", (role_id,))
        return Role(**row) if row else None

    async def add_competency(self, competency: Competency) -> Competency:
        with self._conn() as conn:
            execute(
                conn,
                "INSERT OR REPLACE INTO competencies (id, title, code, description, order_index, role_id) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    competency.id,
                    competency.title,
                    competency.code,
                    competency.description,
                    competency.order_index,
                    competency.role_id,
                ),
            )
        return competency

    async def list_competencies(self, role_id: Optional[str] = None) -> List[Competency]:
        with self._conn() as conn:
            if role_id is None:
                rows = fetch_all(conn, "SELECT * FROM competencies ORDER BY order_index", ())
            else:
                rows = fetch_all(
                    conn,
                    "SELECT * FROM competencies WHERE role_id IS NULL OR role_id = ? ORDER BY order_index",
                    (role_id,),
                )
        return [Competency(**r) for r in rows]

    async def add_sub_competency(self, sub: SubCompetency) -> SubCompetency:
        level_criteria = json.dumps([lc.model_dump() for lc in sub.level_criteria])
        with self._conn() as conn:
            execute(
                conn,
                "INSERT OR REPLACE INTO sub_competencies (id, competency_id, title, code, order_index, level_criteria, "
                "associate_level, intermediate_level, senior_level, lead_level, principal_level) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    sub.id,
                    sub.competency_id,
                    sub.title,
                    sub.code,
                    sub.order_index,
                    level_criteria,
                    *(_dump_list(getattr(sub, col)) for col in _LEGACY_COLUMNS),
                ),
            )
        return sub

    async def list_sub_competencies(self, competency_ids: Optional[Sequence[str]] = None) -> List[SubCompetency]:
        with self._conn() as conn:
            if competency_ids is None:
                rows = fetch_all(conn, "SELECT * FROM sub_competencies ORDER BY order_index", ())
            elif not competency_ids:
                rows = []
            else:
                rows = fetch_all(
                    conn,
                    f"SELECT * FROM sub_competencies WHERE competency_id IN ({_placeholders(len(competency_ids))}) "
                    "ORDER BY order_index",
                    competency_ids,
                )
        return [_sub_from_row(r) for r in rows]

    async def get_sub_competency(self, sub_competency_id: str) -> Optional[SubCompetency]:
        with self._conn() as conn:
            row = fetch_one(conn, "SELECT * FROM sub_competencies WHERE id = ?", (sub_competency_id,))
        return _sub_from_row(row) if row else None

    async def add_subject(self, subject: Subject) -> Subject:
        with self._conn() as conn:
            execute(
                conn,
                "INSERT OR REPLACE INTO subjects (id, name, kind, current_level_key, role_id, role_type) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    subject.id,
                    subject.name,
                    subject.kind.value,
                    subject.current_level_key,
                    subject.role_id,
                    subject.role_type.value,
                ),
            )
        return subject

    async def get_subject(self, subject_id: str) -> Optional[Subject]:
        with self._conn() as conn:
            row = fetch_one(conn, "SELECT * FROM subjects WHERE id = ?", (subject_id,))
        return Subject(**row) if row else None

    async def list_subjects(self, kind: Optional[str] = None) -> List[Subject]:
        with self._conn() as conn:
            if kind is None:
                rows = fetch_all(conn, "SELECT * FROM subjects ORDER BY rowid", ())
            else:
                rows = fetch_all(
                    conn, "SELECT * FROM subjects WHERE kind = ? ORDER BY rowid", (getattr(kind, "value", kind),)
                )
        return [Subject(**r) for r in rows]

    # --- assessments ---

    async def create_draft_assessment(self, subject_id: str) -> Assessment:
        now = utc_now()
        assessment = Assessment(id=str(uuid4()), subject_id=subject_id, created_at=now, updated_at=now)
        with self._conn() as conn:
            if fetch_one(conn, "SELECT id FROM subjects WHERE id = ?", (subject_id,)) is None:
                raise EntityNotFoundError("Subject", subject_id)
            execute(
                conn,
                "INSERT INTO assessments (id, subject_id, status, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (assessment.id, subject_id, AssessmentStatus.DRAFT.value, now, now),
            )
        return assessment

    async def get_assessment(self, assessment_id: str) -> Optional[Assessment]:
        with self._conn() as conn:
            row = fetch_one(conn, "SELECT * FROM assessments WHERE id = ?", (assessment_id,))
        return Assessment(**row) if row else None

    async def complete_assessment(
        self, assessment_id: str, overall_score: float, notes: Optional[str] = None
    ) -> Assessment:
        now = utc_now()
        with self._conn() as conn:
            cur = conn.execute(
                "UPDATE assessments SET status = ?, completed_at = ?, updated_at = ?, overall_score = ?, "
                "notes = COALESCE(?, notes) WHERE id = ?",
                (AssessmentStatus.COMPLETED.value, now, now, overall_score, notes, assessment_id),
            )
            conn.commit()
            if cur.rowcount == 0:
                raise EntityNotFoundError("Assessment", assessment_id)
            row = fetch_one(conn, "SELECT * FROM assessments WHERE id = ?", (assessment_id,))
        return Assessment(**row)

    async def delete_assessment(self, assessment_id: str) -> bool:
        with self._conn() as conn:
            cur = conn.execute("DELETE FROM assessments WHERE id = ?", (assessment_id,))
            conn.commit()
        return cur.rowcount > 0

    async def list_assessments(self, subject_id: str) -> List[Assessment]:
        with self._conn() as conn:
            rows = fetch_all(
                conn,
                "SELECT * FROM assessments WHERE subject_id = ? ORDER BY created_at DESC",
                (subject_id,),
            )
        return [Assessment(**r) for r in rows]

    async def list_completed_assessments(self, subject_id: str) -> List[Assessment]:
        with self._conn() as conn:
            rows = fetch_all(
                conn,
                "SELECT * FROM assessments WHERE subject_id = ? AND status = ? "
                "ORDER BY COALESCE(completed_at, created_at)",
                (subject_id, AssessmentStatus.COMPLETED.value),
            )
        return [Assessment(**r) for r in rows]

    # --- progress / evaluations ---

    async def upsert_progress(
        self,
        assessment_id: str,
        subject_id: str,
        sub_competency_id: str,
        current_level: str,
        notes: Optional[str] = None,
    ) -> Progress:
        now = utc_now()
        with self._conn() as conn:
            if fetch_one(conn, "SELECT id FROM assessments WHERE id = ?", (assessment_id,)) is None:
                raise EntityNotFoundError("Assessment", assessment_id)
            execute(
                conn,
                "INSERT INTO progress (id, assessment_id, subject_id, sub_competency_id, current_level, notes, "
                "assessed_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(assessment_id, sub_competency_id) DO UPDATE SET "
                "current_level = excluded.current_level, notes = excluded.notes, updated_at = excluded.updated_at",
                (str(uuid4()), assessment_id, subject_id, sub_competency_id, current_level, notes, now, now),
            )
            row = fetch_one(
                conn,
                "SELECT * FROM progress WHERE assessment_id = ? AND sub_competency_id = ?",
                (assessment_id, sub_competency_id),
            )
        return Progress(**row)

    async def replace_evaluations(
        self, progress_id: str, evaluations: Sequence[EvaluationInput]
    ) -> List[CriteriaEvaluation]:
        rows = [
            CriteriaEvaluation(
                id=str(uuid4()),
                progress_id=progress_id,
                criterion_text=ev.criterion_text,
                evaluation=ev.evaluation,
            )
            for ev in evaluations
        ]
        with self._conn() as conn:
            if fetch_one(conn, "SELECT id FROM progress WHERE id = ?", (progress_id,)) is None:
                raise EntityNotFoundError("Progress", progress_id)
            conn.execute("DELETE FROM criteria_evaluations WHERE progress_id = ?", (progress_id,))
            conn.executemany(
                "INSERT INTO criteria_evaluations (id, progress_id, position, criterion_text, evaluation) "
                "VALUES (?, ?, ?, ?, ?)",
                [(r.id, progress_id, i, r.criterion_text, r.evaluation.value) for i, r in enumerate(rows)],
            )
            conn.commit()
        return rows

    async def list_progress_for_assessment(self, assessment_id: str) -> List[Progress]:
        with self._conn() as conn:
            rows = fetch_all(
                conn,
                "SELECT * FROM progress WHERE assessment_id = ? ORDER BY assessed_at, rowid",
                (assessment_id,),
            )
        return [Progress(**r) for r in rows]

    async def list_evaluations_for_progress_ids(self, progress_ids: Sequence[str]) -> List[CriteriaEvaluation]:
        if not progress_ids:
            return []
        with self._conn() as conn:
            rows = fetch_all(
                conn,
                f"SELECT id, progress_id, criterion_text, evaluation FROM criteria_evaluations "
                f"WHERE progress_id IN ({_placeholders(len(progress_ids))}) ORDER BY position",
                progress_ids,
            )
        rank = {pid: i for i, pid in enumerate(progress_ids)}
        rows.sort(key=lambda r: rank[r["progress_id"]])
        return [CriteriaEvaluation(**r) for r in rows]
