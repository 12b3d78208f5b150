import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from gradeloop.core.session_schemas import StyleRules
from gradeloop.grading.schemas import FeedbackPair, StudentRecord

FEEDBACK_PAIR_LIMIT = 100


class GradeStore:
    """
    sqlite-backed persistence for runs, student history, feedback pairs and
    distilled style rules.

    Reason:
    - Tools and the loop need a durable place for grading state that is not
      the conversation.
    Benefit:
    - One file under the data dir; each operation opens its own connection,
      so parallel invocations never share a handle.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._initialized = False

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        if self._initialized:
            return
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS runs (
                    run_id TEXT PRIMARY KEY,
                    created_ts REAL NOT NULL,
                    task TEXT NOT NULL,
                    user_message TEXT NOT NULL,
                    success INTEGER NOT NULL,
                    iterations INTEGER NOT NULL,
                    result TEXT,
                    error TEXT,
                    tools_json TEXT NOT NULL,
                    session_json TEXT NOT NULL,
                    total_tokens INTEGER,
                    total_cost REAL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS student_history (
                    course_id INTEGER NOT NULL,
                    user_id INTEGER NOT NULL,
                    record_json TEXT NOT NULL,
                    updated_ts REAL NOT NULL,
                    PRIMARY KEY (course_id, user_id)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS feedback_pairs (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    pair_id TEXT NOT NULL UNIQUE,
                    created_ts REAL NOT NULL,
                    pair_json TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS style_rules (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    rules_json TEXT NOT NULL,
                    pair_count INTEGER NOT NULL,
                    updated_ts REAL NOT NULL
                )
                """
            )
            conn.commit()
        self._initialized = True

    # ----------------------------
    # Runs
    # ----------------------------

    def save_run(
        self,
        *,
        run_id: str,
        task: str,
        user_message: str,
        success: bool,
        iterations: int,
        result: Optional[str],
        error: Optional[str],
        tools_used: List[str],
        session: Dict[str, Any],
        total_tokens: Optional[int] = None,
        total_cost: Optional[float] = None,
    ) -> None:
        self.init_db()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO runs
                (run_id, created_ts, task, user_message, success, iterations, result, error,
                 tools_json, session_json, total_tokens, total_cost)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run_id,
                    time.time(),
                    task,
                    user_message,
                    1 if success else 0,
                    iterations,
                    result,
                    error,
                    json.dumps(tools_used, ensure_ascii=False),
                    json.dumps(session, ensure_ascii=False),
                    total_tokens,
                    total_cost,
                ),
            )
            conn.commit()

    def list_runs(self, limit: int = 20) -> List[Dict[str, Any]]:
        self.init_db()
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT run_id, created_ts, task, success, iterations, error, total_tokens, total_cost
                FROM runs
                ORDER BY created_ts DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [dict(r) for r in rows]

    def load_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        self.init_db()
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM runs WHERE run_id = ?", (run_id,)).fetchone()
        if not row:
            return None
        run = dict(row)
        run["tools_used"] = json.loads(run.pop("tools_json"))
        run["session"] = json.loads(run.pop("session_json"))
        run["success"] = bool(run["success"])
        return run

    # ----------------------------
    # Student history
    # ----------------------------

    def get_student_record(self, course_id: int, user_id: int) -> Optional[StudentRecord]:
        self.init_db()
        with self._connect() as conn:
            row = conn.execute(
                "SELECT record_json FROM student_history WHERE course_id = ? AND user_id = ?",
                (course_id, user_id),
            ).fetchone()
        return StudentRecord.model_validate_json(row["record_json"]) if row else None

    def put_student_record(self, record: StudentRecord) -> None:
        """Whole-record write; concurrent writers are last-writer-wins."""
        self.init_db()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO student_history
                (course_id, user_id, record_json, updated_ts)
                VALUES (?, ?, ?, ?)
                """,
                (record.course_id, record.user_id, record.model_dump_json(), time.time()),
            )
            conn.commit()

    # ----------------------------
    # Feedback pairs
    # ----------------------------

    def add_feedback_pair(self, pair: FeedbackPair) -> int:
        """Append a pair, keep only the newest FEEDBACK_PAIR_LIMIT, return the kept count."""
        self.init_db()
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO feedback_pairs (pair_id, created_ts, pair_json) VALUES (?, ?, ?)",
                (pair.pair_id, time.time(), pair.model_dump_json()),
            )
            conn.execute(
                """
                DELETE FROM feedback_pairs
                WHERE seq NOT IN (
                    SELECT seq FROM feedback_pairs ORDER BY seq DESC LIMIT ?
                )
                """,
                (FEEDBACK_PAIR_LIMIT,),
            )
            conn.commit()
            count = conn.execute("SELECT COUNT(*) AS n FROM feedback_pairs").fetchone()["n"]
        return int(count)

    def list_feedback_pairs(self, limit: Optional[int] = None) -> List[FeedbackPair]:
        """Oldest first; with a limit, the newest `limit` pairs (still oldest first)."""
        self.init_db()
        with self._connect() as conn:
            if limit is None:
                rows = conn.execute("SELECT pair_json FROM feedback_pairs ORDER BY seq ASC").fetchall()
            else:
                rows = conn.execute(
                    "SELECT pair_json FROM feedback_pairs ORDER BY seq DESC LIMIT ?",
                    (limit,),
                ).fetchall()
                rows = list(reversed(rows))
        return [FeedbackPair.model_validate_json(r["pair_json"]) for r in rows]

    # ----------------------------
    # Style rules
    # ----------------------------

    def get_style_rules(self) -> Optional[Dict[str, Any]]:
        self.init_db()
        with self._connect() as conn:
            row = conn.execute(
                "SELECT rules_json, pair_count, updated_ts FROM style_rules WHERE id = 1"
            ).fetchone()
        if not row:
            return None
        return {
            "rules": StyleRules.model_validate_json(row["rules_json"]),
            "pair_count": row["pair_count"],
            "updated_ts": row["updated_ts"],
        }

    def save_style_rules(self, rules: StyleRules, pair_count: int) -> None:
        self.init_db()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO style_rules (id, rules_json, pair_count, updated_ts)
                VALUES (1, ?, ?, ?)
                """,
                (rules.model_dump_json(), pair_count, time.time()),
            )
            conn.commit()
