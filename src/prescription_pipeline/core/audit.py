# ============================================================================
# src/prescription_pipeline/core/audit.py
# ============================================================================
"""
Audit Trail Logger

Records every pipeline step transition and every run outcome so a
prescription's processing history can be reconstructed later.

All audit data stored locally in SQLite database.
"""

from pathlib import Path
from typing import Dict, Any, List, Optional
import logging
import sqlite3
from datetime import datetime
import json

from ..config.base_config import base_settings
from .context.run_state import PipelineRun, StepStatusUpdate


class AuditLogger:
    """
    Step-level audit trail.

    Stores:
    - Step transitions (running / done / failed with reason)
    - Run summaries (final statuses and duration)
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or base_settings.AUDIT_DB_PATH
        self.logger = logging.getLogger(__name__)

        self._init_database()

    def _init_database(self):
        """Create audit database schema if not exists"""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(self.db_path))
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS step_transitions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                prescription_id TEXT NOT NULL,
                run_id TEXT NOT NULL,
                timestamp DATETIME NOT NULL,
                step TEXT NOT NULL,
                state TEXT NOT NULL,
                reason TEXT,
                details TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS pipeline_runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                prescription_id TEXT NOT NULL,
                run_id TEXT NOT NULL,
                timestamp DATETIME NOT NULL,
                success BOOLEAN,
                duration REAL,
                statuses TEXT
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_transition_prescription
            ON step_transitions (prescription_id, timestamp)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_run_prescription
            ON pipeline_runs (prescription_id)
        """)

        conn.commit()
        conn.close()

        self.logger.info(f"Audit database initialized: {self.db_path}")

    def log_transition(self, update: StepStatusUpdate):
        """Log one step transition"""
        conn = sqlite3.connect(str(self.db_path))
        cursor = conn.cursor()

        cursor.execute("""
            INSERT INTO step_transitions (
                prescription_id, run_id, timestamp, step, state, reason, details
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            update.prescription_id,
            update.run_id,
            update.timestamp.isoformat(),
            update.step.value,
            update.status.state.value,
            update.status.reason,
            json.dumps(update.details, default=str),
        ))

        conn.commit()
        conn.close()

    def log_run_complete(self, run: PipelineRun):
        """Log the final outcome of a run"""
        conn = sqlite3.connect(str(self.db_path))
        cursor = conn.cursor()

        cursor.execute("""
            INSERT INTO pipeline_runs (
                prescription_id, run_id, timestamp, success, duration, statuses
            ) VALUES (?, ?, ?, ?, ?, ?)
        """, (
            run.prescription_id,
            run.run_id,
            datetime.now().isoformat(),
            run.all_done,
            run.duration,
            json.dumps(run.snapshot()),
        ))

        conn.commit()
        conn.close()

    def get_trail(self, prescription_id: str) -> List[Dict[str, Any]]:
        """Retrieve every recorded step transition for a prescription"""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()

        cursor.execute("""
            SELECT * FROM step_transitions
            WHERE prescription_id = ?
            ORDER BY id
        """, (prescription_id,))

        trail = [dict(row) for row in cursor.fetchall()]

        conn.close()

        return trail

    def get_runs(self, prescription_id: str) -> List[Dict[str, Any]]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()

        cursor.execute("""
            SELECT * FROM pipeline_runs
            WHERE prescription_id = ?
            ORDER BY id
        """, (prescription_id,))

        runs = [dict(row) for row in cursor.fetchall()]

        conn.close()

        return runs
