from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import duckdb
import pandas as pd

from rampbench.config import BenchmarkConfig
from rampbench.errors import RunExistsError

if TYPE_CHECKING:
    from rampbench.loadgen.runner import RampRun


@dataclass(slots=True)
class Storage:
    db_path: Path

    def __post_init__(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path))

    def _init_schema(self) -> None:
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS run_meta (
                    run_id TEXT PRIMARY KEY,
                    created_at TIMESTAMP,
                    url TEXT,
                    config_json TEXT,
                    notes TEXT,
                    error TEXT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS step_results (
                    run_id TEXT,
                    step INTEGER,
                    target_rate INTEGER,
                    actual_rate DOUBLE,
                    avg_latency_ms DOUBLE,
                    p50_latency_ms DOUBLE,
                    p90_latency_ms DOUBLE,
                    p99_latency_ms DOUBLE,
                    max_latency_ms DOUBLE,
                    total_requests BIGINT,
                    errors BIGINT,
                    error_rate DOUBLE,
                    transfer_rate TEXT,
                    hung BOOLEAN,
                    status TEXT,
                    break_reason TEXT,
                    error_codes_json TEXT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS run_summary (
                    run_id TEXT PRIMARY KEY,
                    breaking_point_rate INTEGER,
                    break_kind TEXT,
                    break_value DOUBLE,
                    break_reason TEXT,
                    last_stable_rate INTEGER,
                    recommended_rate INTEGER,
                    total_requests BIGINT,
                    total_duration_seconds BIGINT,
                    was_rate_limited BOOLEAN,
                    was_blocked BOOLEAN,
                    error_codes_json TEXT
                );
                """
            )

    def run_exists(self, run_id: str) -> bool:
        with self._connect() as con:
            result = con.execute(
                "SELECT COUNT(*) FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            return bool(result and result[0] > 0)

    def save_run(self, config: BenchmarkConfig, run: RampRun) -> None:
        if self.run_exists(run.run_id):
            msg = f"Run {run.run_id} already exists"
            raise RunExistsError(msg)
        config_json = json.dumps(config.to_metadata())
        summary = run.summary
        with self._connect() as con:
            con.execute(
                "INSERT INTO run_meta VALUES (?, ?, ?, ?, ?, ?)",
                [run.run_id, config.created_at, run.url, config_json, config.notes, run.error],
            )
            steps_df = run.to_frame()
            if not steps_df.empty:
                con.execute("INSERT INTO step_results SELECT * FROM steps_df")
            con.execute(
                "INSERT INTO run_summary VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    run.run_id,
                    summary.breaking_point_rate,
                    summary.break_reason.kind.value,
                    summary.break_reason.value,
                    summary.break_reason.describe(),
                    summary.last_stable_rate,
                    summary.recommended_rate,
                    summary.total_requests,
                    summary.total_duration_seconds,
                    summary.was_rate_limited,
                    summary.was_blocked,
                    json.dumps([list(pair) for pair in summary.aggregated_error_codes]),
                ],
            )

    def list_runs(self) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                """
                SELECT m.run_id, m.created_at, m.url, s.breaking_point_rate,
                       s.recommended_rate, m.notes
                FROM run_meta m LEFT JOIN run_summary s USING (run_id)
                ORDER BY m.created_at DESC
                """
            ).fetchdf()

    def load_run_meta(self, run_id: str) -> dict[str, Any] | None:
        with self._connect() as con:
            row = con.execute(
                "SELECT config_json, url, error FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            if not row:
                return None
            meta = json.loads(row[0])
            meta["url"] = row[1]
            meta["error"] = row[2]
            return meta

    def load_steps(self, run_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM step_results WHERE run_id = ? ORDER BY step",
                [run_id],
            ).fetchdf()

    def load_summary(self, run_id: str) -> dict[str, Any] | None:
        with self._connect() as con:
            cursor = con.execute("SELECT * FROM run_summary WHERE run_id = ?", [run_id])
            row = cursor.fetchone()
            if not row:
                return None
            columns = [col[0] for col in cursor.description]
            summary = dict(zip(columns, row))
            summary["aggregated_error_codes"] = [
                tuple(pair) for pair in json.loads(summary.pop("error_codes_json"))
            ]
            return summary
