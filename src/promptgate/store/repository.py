"""Pipeline repository for database operations."""

from __future__ import annotations

import json
import secrets
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from promptgate.store.models import (
    DraftContent,
    DraftStatus,
    EvaluationReport,
    GoldenSample,
    Report,
    ReportDraft,
    Template,
)
from promptgate.store.schema import migrate_if_needed


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _new_id() -> str:
    return secrets.token_hex(4)


class NotFoundError(Exception):
    """Raised when a record cannot be found by the specified lookup."""

    kind = "Record"

    def __init__(self, lookup_type: str, value: str) -> None:
        self.lookup_type = lookup_type
        self.value = value
        super().__init__(f"{self.kind} not found by {lookup_type}: {value}")


class TemplateNotFoundError(NotFoundError):
    kind = "Template"


class EvaluationReportNotFoundError(NotFoundError):
    kind = "Evaluation report"


class DraftNotFoundError(NotFoundError):
    kind = "Draft"


class ReportNotFoundError(NotFoundError):
    kind = "Report"


def _content_values(content: DraftContent) -> tuple[Any, ...]:
    """Column values for the content fields shared by draft and report."""
    return (
        content.title,
        content.description,
        content.category,
        content.audience,
        json.dumps(list(content.insights)),
        json.dumps(list(content.sources)),
        content.body,
        content.estimated_demand,
    )


class PipelineRepository:
    """Repository for templates, golden samples, reports and drafts."""

    def __init__(self, db_path: Path | None = None) -> None:
        """Initialize the repository.

        Args:
            db_path: Path to the SQLite database.
                Defaults to .promptgate/promptgate.db
        """
        if db_path is None:
            db_path = Path.cwd() / ".promptgate" / "promptgate.db"
        self.db_path = db_path
        self._ensure_db()

    def _ensure_db(self) -> None:
        """Ensure the database exists and schema is up to date."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            migrate_if_needed(conn)

    def _connect(self) -> sqlite3.Connection:
        """Create a database connection with row factory."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run statements in one write transaction.

        BEGIN IMMEDIATE takes the database write lock up front, so two
        writers touching the same rows are applied one after the other.
        """
        conn = self._connect()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    # Template operations

    def create_template(
        self,
        name: str,
        task: str,
        body: str,
        default_parameters: dict[str, Any] | None = None,
    ) -> Template:
        """Insert the next version of `name` as the only active version."""
        template_id = _new_id()
        created_at = _now()
        params = dict(default_parameters or {})
        with self._transaction() as conn:
            cursor = conn.execute(
                "SELECT COALESCE(MAX(version), 0) FROM prompt_template WHERE name = ?",
                (name,),
            )
            next_version: int = cursor.fetchone()[0] + 1
            conn.execute(
                "UPDATE prompt_template SET active = 0 WHERE name = ? AND active = 1",
                (name,),
            )
            conn.execute(
                """
                INSERT INTO prompt_template (
                    id, name, version, task, body,
                    default_parameters, active, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, 1, ?)
                """,
                (
                    template_id,
                    name,
                    next_version,
                    task,
                    body,
                    json.dumps(params),
                    created_at,
                ),
            )
        return Template(
            id=template_id,
            name=name,
            version=next_version,
            task=task,
            body=body,
            default_parameters=params,
            active=True,
            created_at=created_at,
        )

    def activate_template(self, template_id: str) -> Template:
        """Make `template_id` the only active version of its name."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT name FROM prompt_template WHERE id = ?", (template_id,)
            ).fetchone()
            if row is None:
                raise TemplateNotFoundError("id", template_id)
            conn.execute(
                "UPDATE prompt_template SET active = 0 WHERE name = ? AND active = 1",
                (row["name"],),
            )
            conn.execute(
                "UPDATE prompt_template SET active = 1 WHERE id = ?", (template_id,)
            )
            row = conn.execute(
                "SELECT * FROM prompt_template WHERE id = ?", (template_id,)
            ).fetchone()
        return Template.from_row(row)

    def get_template(self, template_id: str) -> Template | None:
        """Get a template version by its id."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM prompt_template WHERE id = ?", (template_id,)
            )
            row = cursor.fetchone()
            return Template.from_row(row) if row else None

    def get_active_template(self, task: str) -> Template | None:
        """Get the active template for a task (highest version first)."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM prompt_template WHERE task = ? AND active = 1 "
                "ORDER BY version DESC, created_at DESC LIMIT 1",
                (task,),
            )
            row = cursor.fetchone()
            return Template.from_row(row) if row else None

    def get_active_by_name(self, name: str) -> Template | None:
        """Get the active version of a template name."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM prompt_template WHERE name = ? AND active = 1",
                (name,),
            )
            row = cursor.fetchone()
            return Template.from_row(row) if row else None

    def get_active_templates(self) -> list[Template]:
        """Get all active templates, most recently created first."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM prompt_template WHERE active = 1 "
                "ORDER BY created_at DESC, rowid DESC"
            )
            return [Template.from_row(row) for row in cursor.fetchall()]

    def get_template_versions(self, name: str) -> list[Template]:
        """Get all versions of a template name, newest first."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM prompt_template WHERE name = ? ORDER BY version DESC",
                (name,),
            )
            return [Template.from_row(row) for row in cursor.fetchall()]

    def get_template_names(self) -> list[str]:
        """Get every distinct template name, sorted."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT DISTINCT name FROM prompt_template ORDER BY name"
            )
            return [row["name"] for row in cursor.fetchall()]

    # Golden dataset operations

    def replace_golden_samples(self, samples: Iterable[GoldenSample]) -> int:
        """Discard the current golden set and store `samples` in its place.

        Returns the number of samples stored.
        """
        rows = [
            (
                sample.id,
                json.dumps(sample.input.to_dict()),
                json.dumps(sample.expected.to_dict()),
                sample.created_at,
            )
            for sample in samples
        ]
        with self._transaction() as conn:
            conn.execute("DELETE FROM golden_sample")
            conn.executemany(
                "INSERT INTO golden_sample (id, input, expected, created_at) "
                "VALUES (?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    def get_golden_samples(self, limit: int | None = None) -> list[GoldenSample]:
        """Get golden samples in build order."""
        with self._connect() as conn:
            if limit is None:
                cursor = conn.execute("SELECT * FROM golden_sample ORDER BY rowid")
            else:
                cursor = conn.execute(
                    "SELECT * FROM golden_sample ORDER BY rowid LIMIT ?", (limit,)
                )
            return [GoldenSample.from_row(row) for row in cursor.fetchall()]

    # Evaluation report operations (append-only)

    def create_evaluation_report(self, report: EvaluationReport) -> EvaluationReport:
        """Insert a new evaluation report. Existing reports are never updated."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO evaluation_report (
                    id, timestamp, chosen_template, aggregate,
                    recommendations, candidates, report_ideas
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    report.id,
                    report.timestamp,
                    (
                        json.dumps(report.chosen_template.to_dict())
                        if report.chosen_template
                        else None
                    ),
                    json.dumps(report.aggregate.to_dict()),
                    json.dumps(list(report.recommendations)),
                    json.dumps([c.to_dict() for c in report.candidates]),
                    json.dumps([i.to_dict() for i in report.report_ideas]),
                ),
            )
            conn.commit()
        return report

    def get_evaluation_report(self, report_id: str) -> EvaluationReport | None:
        """Get an evaluation report by id."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM evaluation_report WHERE id = ?", (report_id,)
            )
            row = cursor.fetchone()
            return EvaluationReport.from_row(row) if row else None

    def get_latest_evaluation_report(self) -> EvaluationReport | None:
        """Get the report with the greatest timestamp."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM evaluation_report "
                "ORDER BY timestamp DESC, rowid DESC LIMIT 1"
            )
            row = cursor.fetchone()
            return EvaluationReport.from_row(row) if row else None

    def get_evaluation_reports(self, limit: int = 10) -> list[EvaluationReport]:
        """Get the most recent evaluation reports."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM evaluation_report "
                "ORDER BY timestamp DESC, rowid DESC LIMIT ?",
                (limit,),
            )
            return [EvaluationReport.from_row(row) for row in cursor.fetchall()]

    def require_evaluation_report(self, report_id: str) -> EvaluationReport:
        """Get an evaluation report by id, raising if not found."""
        report = self.get_evaluation_report(report_id)
        if report is None:
            raise EvaluationReportNotFoundError("id", report_id)
        return report

    # Draft operations

    def create_draft(
        self,
        content: DraftContent,
        evaluation_id: str | None,
        created_by: str = "system",
    ) -> ReportDraft:
        """Insert a new draft with status 'draft'."""
        draft = ReportDraft(
            id=_new_id(),
            content=content,
            status="draft",
            created_by="human" if created_by == "human" else "system",
            evaluation_id=evaluation_id,
            created_at=_now(),
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO report_draft (
                    id, title, description, category, audience, insights,
                    sources, body, estimated_demand, status, created_by,
                    evaluation_id, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    draft.id,
                    *_content_values(content),
                    draft.status,
                    draft.created_by,
                    draft.evaluation_id,
                    draft.created_at,
                ),
            )
            conn.commit()
        return draft

    def get_draft(self, draft_id: str) -> ReportDraft | None:
        """Get a draft by id."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM report_draft WHERE id = ?", (draft_id,)
            )
            row = cursor.fetchone()
            return ReportDraft.from_row(row) if row else None

    def require_draft(self, draft_id: str) -> ReportDraft:
        """Get a draft by id, raising if not found."""
        draft = self.get_draft(draft_id)
        if draft is None:
            raise DraftNotFoundError("id", draft_id)
        return draft

    def get_drafts(self, status: str | None = None) -> list[ReportDraft]:
        """Get drafts, optionally filtered by status, newest first."""
        with self._connect() as conn:
            if status is None:
                cursor = conn.execute(
                    "SELECT * FROM report_draft ORDER BY created_at DESC, rowid DESC"
                )
            else:
                cursor = conn.execute(
                    "SELECT * FROM report_draft WHERE status = ? "
                    "ORDER BY created_at DESC, rowid DESC",
                    (status,),
                )
            return [ReportDraft.from_row(row) for row in cursor.fetchall()]

    def update_draft_status(
        self,
        draft_id: str,
        expected: DraftStatus,
        new_status: DraftStatus,
        *,
        reviewer: str | None = None,
        comment: str | None = None,
    ) -> bool:
        """Move a draft from `expected` to `new_status`.

        The update only applies while the stored status still equals
        `expected`. Returns True if a row was updated.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE report_draft SET
                    status = ?,
                    reviewed_at = ?,
                    reviewer = COALESCE(?, reviewer),
                    comment = COALESCE(?, comment)
                WHERE id = ? AND status = ?
                """,
                (new_status, _now(), reviewer, comment, draft_id, expected),
            )
            conn.commit()
            return cursor.rowcount > 0

    def publish_draft(self, draft_id: str, published_by: str) -> Report | None:
        """Publish an approved draft and materialize its Report.

        Returns None when the draft is not (or no longer) approved.
        """
        published_at = _now()
        report_id = _new_id()
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE report_draft SET
                    status = 'published',
                    published_at = ?,
                    published_by = ?
                WHERE id = ? AND status = 'approved'
                """,
                (published_at, published_by, draft_id),
            )
            if cursor.rowcount == 0:
                return None
            row = conn.execute(
                "SELECT * FROM report_draft WHERE id = ?", (draft_id,)
            ).fetchone()
            content = DraftContent.from_row(row)
            conn.execute(
                """
                INSERT INTO report (
                    id, draft_id, title, description, category, audience,
                    insights, sources, body, estimated_demand,
                    published_by, published_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    report_id,
                    draft_id,
                    *_content_values(content),
                    published_by,
                    published_at,
                ),
            )
        return Report(
            id=report_id,
            draft_id=draft_id,
            content=content,
            published_by=published_by,
            published_at=published_at,
        )

    # Published report operations

    def get_report(self, report_id: str) -> Report | None:
        """Get a published report by id."""
        with self._connect() as conn:
            cursor = conn.execute("SELECT * FROM report WHERE id = ?", (report_id,))
            row = cursor.fetchone()
            return Report.from_row(row) if row else None

    def get_report_by_draft(self, draft_id: str) -> Report | None:
        """Get the report published from a draft."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM report WHERE draft_id = ?", (draft_id,)
            )
            row = cursor.fetchone()
            return Report.from_row(row) if row else None

    def get_reports(self, limit: int = 20) -> list[Report]:
        """Get the most recently published reports."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM report ORDER BY published_at DESC LIMIT ?", (limit,)
            )
            return [Report.from_row(row) for row in cursor.fetchall()]

    def require_report(self, report_id: str) -> Report:
        """Get a published report by id, raising if not found."""
        report = self.get_report(report_id)
        if report is None:
            raise ReportNotFoundError("id", report_id)
        return report
