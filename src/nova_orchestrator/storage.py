"""SQLite-backed storage for audit history, user context and project data."""
from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any

from nova_orchestrator.models import EXPERTISE_LEVELS, ActionHistoryRecord, UserContext

SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    slug TEXT,
    da_org TEXT,
    da_repo TEXT
);
CREATE TABLE IF NOT EXISTS action_history (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    project_id TEXT NOT NULL,
    action_type TEXT NOT NULL,
    description TEXT,
    input TEXT,
    output TEXT,
    status TEXT DEFAULT 'completed',
    created_at TEXT DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_action_history_user ON action_history(user_id, project_id);
CREATE TABLE IF NOT EXISTS user_context (
    user_id TEXT NOT NULL,
    project_id TEXT NOT NULL,
    context_type TEXT NOT NULL,
    data TEXT NOT NULL,
    updated_at TEXT DEFAULT (datetime('now')),
    PRIMARY KEY (user_id, project_id, context_type)
);
CREATE TABLE IF NOT EXISTS content_index (
    project_id TEXT NOT NULL,
    path TEXT NOT NULL,
    title TEXT,
    body TEXT,
    updated_at TEXT DEFAULT (datetime('now')),
    PRIMARY KEY (project_id, path)
);
CREATE TABLE IF NOT EXISTS generative_config (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL,
    path_pattern TEXT NOT NULL,
    delivery_mode TEXT NOT NULL DEFAULT 'static',
    intent_config TEXT DEFAULT '{}',
    confidence_thresholds TEXT DEFAULT '{}',
    updated_at TEXT DEFAULT (datetime('now')),
    UNIQUE(project_id, path_pattern)
);
CREATE TABLE IF NOT EXISTS brand_profiles (
    project_id TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT 'default',
    voice TEXT DEFAULT '{}',
    visual TEXT DEFAULT '{}',
    content_rules TEXT DEFAULT '{}',
    design_tokens TEXT DEFAULT '{}',
    PRIMARY KEY (project_id, name)
);
CREATE TABLE IF NOT EXISTS block_library (
    project_id TEXT NOT NULL,
    name TEXT NOT NULL,
    category TEXT,
    description TEXT,
    structure_html TEXT,
    css TEXT,
    js TEXT,
    status TEXT DEFAULT 'draft',
    updated_at TEXT DEFAULT (datetime('now')),
    PRIMARY KEY (project_id, name)
);
CREATE TABLE IF NOT EXISTS telemetry_daily (
    project_id TEXT NOT NULL,
    path TEXT NOT NULL,
    date TEXT NOT NULL,
    page_views INTEGER DEFAULT 0,
    lcp_p75 REAL,
    inp_p75 REAL,
    cls_p75 REAL,
    conversion_events INTEGER DEFAULT 0,
    PRIMARY KEY (project_id, path, date)
);
CREATE TABLE IF NOT EXISTS value_scores (
    project_id TEXT NOT NULL,
    path TEXT NOT NULL,
    audience TEXT,
    situation TEXT,
    outcome TEXT,
    engagement_score REAL DEFAULT 0,
    conversion_score REAL DEFAULT 0,
    seo_score REAL DEFAULT 0,
    cwv_score REAL DEFAULT 0,
    composite_score REAL DEFAULT 0,
    sample_size INTEGER DEFAULT 0,
    PRIMARY KEY (project_id, path)
);
"""

_LEVEL_RANK_SQL = "CASE {col} WHEN 'advanced' THEN 2 WHEN 'intermediate' THEN 1 ELSE 0 END"


class Storage:
    """
    SQLite storage implementing the synchronous collaborator stores.

    Every call opens its own connection, so instances are safe to share
    between the request task and background worker threads. Read-modify-write
    updates of user context run inside ``BEGIN IMMEDIATE`` transactions,
    which take SQLite's write lock before reading.
    """

    def __init__(self, db_path: str | Path = "nova.db", timeout: float = 10.0) -> None:
        self._db_path = str(db_path)
        self._timeout = timeout
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with closing(
            sqlite3.connect(self._db_path, timeout=self._timeout, isolation_level=None)
        ) as conn:
            conn.row_factory = sqlite3.Row
            yield conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def save_project(
        self, project_id: str, name: str, slug: str = "", da_org: str = "", da_repo: str = ""
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO projects (id, name, slug, da_org, da_repo) VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET name=excluded.name, slug=excluded.slug,
                   da_org=excluded.da_org, da_repo=excluded.da_repo""",
                (project_id, name, slug, da_org, da_repo),
            )

    def get_project(self, project_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, name, slug, da_org, da_repo FROM projects WHERE id = ?",
                (project_id,),
            ).fetchone()
            return dict(row) if row else None

    # ------------------------------------------------------------------
    # Action history
    # ------------------------------------------------------------------

    def add_action(
        self,
        user_id: str,
        project_id: str,
        action_type: str,
        description: str,
        input: dict[str, Any],
        output: dict[str, Any] | None = None,
        status: str = "completed",
    ) -> str:
        """Append an audit record. Returns its id."""
        action_id = str(uuid.uuid4())
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO action_history
                   (id, user_id, project_id, action_type, description, input, output, status)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    action_id,
                    user_id,
                    project_id,
                    action_type,
                    description,
                    json.dumps(input),
                    json.dumps(output) if output is not None else None,
                    status,
                ),
            )
        return action_id

    def recent_actions(self, user_id: str, project_id: str, limit: int = 20) -> list[dict[str, Any]]:
        """Most recent actions first."""
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT id, action_type, description, input, output, status, created_at
                   FROM action_history WHERE user_id = ? AND project_id = ?
                   ORDER BY created_at DESC, rowid DESC LIMIT ?""",
                (user_id, project_id, limit),
            ).fetchall()
        return [self._action_from_row(r).to_dict() for r in rows]

    @staticmethod
    def _action_from_row(row: sqlite3.Row) -> ActionHistoryRecord:
        return ActionHistoryRecord(
            id=row["id"],
            action_type=row["action_type"],
            description=row["description"] or "",
            input=json.loads(row["input"]) if row["input"] else {},
            output=json.loads(row["output"]) if row["output"] else None,
            status=row["status"],
            created_at=row["created_at"],
        )

    # ------------------------------------------------------------------
    # User context
    # ------------------------------------------------------------------

    def get_user_context(self, user_id: str, project_id: str) -> UserContext:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT context_type, data FROM user_context WHERE user_id = ? AND project_id = ?",
                (user_id, project_id),
            ).fetchall()
        ctx = UserContext()
        for row in rows:
            if row["context_type"] == "tool_frequency":
                ctx.tool_frequency = json.loads(row["data"])
            elif row["context_type"] == "expertise_level":
                ctx.expertise_level = row["data"]
            elif row["context_type"] == "active_paths":
                ctx.active_paths = json.loads(row["data"])
        return ctx

    def _read_context(self, conn: sqlite3.Connection, user_id: str, project_id: str, kind: str) -> Any:
        row = conn.execute(
            """SELECT data FROM user_context
               WHERE user_id = ? AND project_id = ? AND context_type = ?""",
            (user_id, project_id, kind),
        ).fetchone()
        return json.loads(row["data"]) if row else None

    def _write_context(
        self, conn: sqlite3.Connection, user_id: str, project_id: str, kind: str, data: str
    ) -> None:
        conn.execute(
            """INSERT INTO user_context (user_id, project_id, context_type, data, updated_at)
               VALUES (?, ?, ?, ?, datetime('now'))
               ON CONFLICT(user_id, project_id, context_type) DO UPDATE SET
                 data = excluded.data, updated_at = excluded.updated_at""",
            (user_id, project_id, kind, data),
        )

    def increment_tool_frequency(self, user_id: str, project_id: str, tool_names: list[str]) -> dict[str, int]:
        """Add one to the count of each name (repeats count repeatedly)."""
        with self._transaction() as conn:
            freq: dict[str, int] = self._read_context(conn, user_id, project_id, "tool_frequency") or {}
            for name in tool_names:
                freq[name] = freq.get(name, 0) + 1
            self._write_context(conn, user_id, project_id, "tool_frequency", json.dumps(freq))
        return freq

    def raise_expertise_level(self, user_id: str, project_id: str, level: str) -> bool:
        """Store ``level`` only if it ranks strictly above the stored level.

        Returns True if the row was written.
        """
        if level not in EXPERTISE_LEVELS:
            raise ValueError(f"Unknown expertise level: {level}")
        new_rank = _LEVEL_RANK_SQL.format(col="excluded.data")
        old_rank = _LEVEL_RANK_SQL.format(col="user_context.data")
        with self._connect() as conn:
            cursor = conn.execute(
                f"""INSERT INTO user_context (user_id, project_id, context_type, data, updated_at)
                    VALUES (?, ?, 'expertise_level', ?, datetime('now'))
                    ON CONFLICT(user_id, project_id, context_type) DO UPDATE SET
                      data = excluded.data, updated_at = excluded.updated_at
                    WHERE {new_rank} > {old_rank}""",
                (user_id, project_id, level),
            )
            return cursor.rowcount > 0

    def touch_active_paths(
        self, user_id: str, project_id: str, paths: list[str], limit: int = 20
    ) -> list[str]:
        """Move each path to the front (in order), dedupe, keep ``limit`` entries."""
        with self._transaction() as conn:
            active: list[str] = self._read_context(conn, user_id, project_id, "active_paths") or []
            for path in paths:
                if path in active:
                    active.remove(path)
                active.insert(0, path)
            active = active[:limit]
            self._write_context(conn, user_id, project_id, "active_paths", json.dumps(active))
        return active

    # ------------------------------------------------------------------
    # Keyword search index
    # ------------------------------------------------------------------

    def index_page(self, project_id: str, path: str, title: str, body: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO content_index (project_id, path, title, body, updated_at)
                   VALUES (?, ?, ?, ?, datetime('now'))
                   ON CONFLICT(project_id, path) DO UPDATE SET
                   title=excluded.title, body=excluded.body, updated_at=excluded.updated_at""",
                (project_id, path, title, body),
            )

    def remove_page(self, project_id: str, path: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM content_index WHERE project_id = ? AND path = ?", (project_id, path)
            )

    def search(self, project_id: str, keywords: list[str], limit: int = 10) -> list[dict[str, Any]]:
        """Pages whose title or body contains every keyword (case-insensitive)."""
        if not keywords:
            return []
        conditions = " AND ".join("(LOWER(title) LIKE ? OR LOWER(body) LIKE ?)" for _ in keywords)
        params: list[Any] = [project_id]
        for kw in keywords:
            params.extend([f"%{kw.lower()}%", f"%{kw.lower()}%"])
        params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(
                f"""SELECT path, title, substr(body, 1, 200) AS snippet FROM content_index
                    WHERE project_id = ? AND {conditions} LIMIT ?""",
                params,
            ).fetchall()
        return [dict(r) for r in rows]

    # ------------------------------------------------------------------
    # Delivery / generative config
    # ------------------------------------------------------------------

    def get_delivery_mode(self, project_id: str, path: str) -> str | None:
        """Mode of the most specific pattern matching ``path``."""
        with self._connect() as conn:
            row = conn.execute(
                """SELECT delivery_mode FROM generative_config
                   WHERE project_id = ? AND (path_pattern = ? OR ? GLOB path_pattern)
                   ORDER BY length(path_pattern) DESC LIMIT 1""",
                (project_id, path, path),
            ).fetchone()
        return row["delivery_mode"] if row else None

    def set_delivery_mode(self, project_id: str, path_pattern: str, mode: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO generative_config (id, project_id, path_pattern, delivery_mode)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(project_id, path_pattern) DO UPDATE SET
                   delivery_mode = excluded.delivery_mode, updated_at = datetime('now')""",
                (str(uuid.uuid4()), project_id, path_pattern, mode),
            )

    def upsert_generative_config(
        self,
        project_id: str,
        path_pattern: str,
        delivery_mode: str | None = None,
        intent_config: str | None = None,
        confidence_thresholds: str | None = None,
    ) -> None:
        """Create or update a config row; ``None`` fields keep their stored value."""
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO generative_config
                   (id, project_id, path_pattern, delivery_mode, intent_config, confidence_thresholds)
                   VALUES (?, ?, ?, COALESCE(?, 'static'), COALESCE(?, '{}'), COALESCE(?, '{}'))
                   ON CONFLICT(project_id, path_pattern) DO UPDATE SET
                     delivery_mode = COALESCE(?, generative_config.delivery_mode),
                     intent_config = COALESCE(?, generative_config.intent_config),
                     confidence_thresholds = COALESCE(?, generative_config.confidence_thresholds),
                     updated_at = datetime('now')""",
                (
                    str(uuid.uuid4()),
                    project_id,
                    path_pattern,
                    delivery_mode,
                    intent_config,
                    confidence_thresholds,
                    delivery_mode,
                    intent_config,
                    confidence_thresholds,
                ),
            )

    def get_generative_config(self, project_id: str, path_pattern: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                """SELECT path_pattern, delivery_mode, intent_config, confidence_thresholds
                   FROM generative_config WHERE project_id = ? AND path_pattern = ?""",
                (project_id, path_pattern),
            ).fetchone()
        return dict(row) if row else None

    # ------------------------------------------------------------------
    # Brand and block library
    # ------------------------------------------------------------------

    def save_brand_profile(self, project_id: str, profile: dict[str, Any], name: str = "default") -> None:
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO brand_profiles
                   (project_id, name, voice, visual, content_rules, design_tokens)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(project_id, name) DO UPDATE SET
                   voice=excluded.voice, visual=excluded.visual,
                   content_rules=excluded.content_rules, design_tokens=excluded.design_tokens""",
                (
                    project_id,
                    name,
                    json.dumps(profile.get("voice", {})),
                    json.dumps(profile.get("visual", {})),
                    json.dumps(profile.get("contentRules", {})),
                    json.dumps(profile.get("designTokens", {})),
                ),
            )

    def get_brand_profile(self, project_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                """SELECT name, voice, visual, content_rules, design_tokens FROM brand_profiles
                   WHERE project_id = ? ORDER BY name LIMIT 1""",
                (project_id,),
            ).fetchone()
        if row is None:
            return None
        return {
            "name": row["name"],
            "voice": json.loads(row["voice"] or "{}"),
            "visual": json.loads(row["visual"] or "{}"),
            "contentRules": json.loads(row["content_rules"] or "{}"),
            "designTokens": json.loads(row["design_tokens"] or "{}"),
        }

    def list_blocks(self, project_id: str) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT name, category, description, status FROM block_library
                   WHERE project_id = ? ORDER BY name""",
                (project_id,),
            ).fetchall()
        return [dict(r) for r in rows]

    def get_block(self, project_id: str, name: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                """SELECT name, category, description, structure_html, css, js, status
                   FROM block_library WHERE project_id = ? AND name = ?""",
                (project_id, name),
            ).fetchone()
        if row is None:
            return None
        return {
            "name": row["name"],
            "category": row["category"] or "Content",
            "description": row["description"] or "",
            "structureHtml": row["structure_html"] or "",
            "css": row["css"] or "",
            "js": row["js"] or "",
            "status": row["status"],
        }

    def save_block(self, project_id: str, block: dict[str, Any], status: str = "draft") -> None:
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO block_library
                   (project_id, name, category, description, structure_html, css, js, status)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(project_id, name) DO UPDATE SET
                   category=excluded.category, description=excluded.description,
                   structure_html=excluded.structure_html, css=excluded.css, js=excluded.js,
                   status=excluded.status, updated_at=datetime('now')""",
                (
                    project_id,
                    block["name"],
                    block.get("category", "Content"),
                    block.get("description", ""),
                    block.get("structureHtml", ""),
                    block.get("css", ""),
                    block.get("js", ""),
                    status,
                ),
            )

    # ------------------------------------------------------------------
    # Telemetry and value scores
    # ------------------------------------------------------------------

    def record_telemetry(self, project_id: str, path: str, date: str, **metrics: Any) -> None:
        with self._connect() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO telemetry_daily
                   (project_id, path, date, page_views, lcp_p75, inp_p75, cls_p75, conversion_events)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    project_id,
                    path,
                    date,
                    metrics.get("page_views", 0),
                    metrics.get("lcp_p75"),
                    metrics.get("inp_p75"),
                    metrics.get("cls_p75"),
                    metrics.get("conversion_events", 0),
                ),
            )

    def get_telemetry(
        self, project_id: str, since: str, path: str | None = None, limit: int = 100
    ) -> list[dict[str, Any]]:
        query = (
            "SELECT path, date, page_views, lcp_p75, inp_p75, cls_p75, conversion_events "
            "FROM telemetry_daily WHERE project_id = ? AND date >= ?"
        )
        params: list[Any] = [project_id, since]
        if path:
            query += " AND path = ?"
            params.append(path)
        query += " ORDER BY date DESC LIMIT ?"
        params.append(limit)
        with self._connect() as conn:
            return [dict(r) for r in conn.execute(query, params).fetchall()]

    def save_value_score(self, project_id: str, path: str, **scores: Any) -> None:
        columns = (
            "audience", "situation", "outcome", "engagement_score", "conversion_score",
            "seo_score", "cwv_score", "composite_score", "sample_size",
        )
        values = [scores.get(c) for c in columns]
        with self._connect() as conn:
            conn.execute(
                f"""INSERT OR REPLACE INTO value_scores (project_id, path, {', '.join(columns)})
                    VALUES (?, ?, {', '.join('?' for _ in columns)})""",
                (project_id, path, *values),
            )

    def get_value_scores(
        self, project_id: str, path: str | None = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        query = (
            "SELECT path, engagement_score, conversion_score, cwv_score, seo_score, "
            "composite_score, sample_size FROM value_scores WHERE project_id = ?"
        )
        params: list[Any] = [project_id]
        if path:
            query += " AND path = ?"
            params.append(path)
        query += " ORDER BY composite_score DESC LIMIT ?"
        params.append(limit)
        with self._connect() as conn:
            return [dict(r) for r in conn.execute(query, params).fetchall()]

    def get_value_annotations(self, project_id: str, path: str) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT audience, situation, outcome, composite_score FROM value_scores
                   WHERE project_id = ? AND path = ?""",
                (project_id, path),
            ).fetchall()
        return [dict(r) for r in rows]
