"""
State persistence for tools, workflows and run reports.
"""

import json
import logging
import os
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, List, Optional

from ..models.tool import Tool
from ..models.workflow import Workflow
from ..models.run import WorkflowRunReport


class StateRepository:
    """Stores engine state as JSON files under a base directory."""

    TOOLS_FILE = "tools.json"
    WORKFLOWS_FILE = "workflows.json"

    def __init__(self, base_path: Path):
        """
        Initialize the state repository.

        Args:
            base_path: Base directory for state files
        """
        self.logger = logging.getLogger(__name__)
        self.base_path = Path(base_path)
        self.runs_dir = self.base_path / "runs"

        for dir_path in [self.base_path, self.runs_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

    def save_tools(self, tools: List[Tool]) -> Path:
        return self._write_json(self.base_path / self.TOOLS_FILE, {
            "tools": [t.model_dump(mode="json") for t in tools]
        })

    def load_tools(self) -> List[Tool]:
        data = self._read_json(self.base_path / self.TOOLS_FILE)
        return [Tool(**item) for item in data.get("tools", [])]

    def save_workflows(self, workflows: List[Workflow]) -> Path:
        return self._write_json(self.base_path / self.WORKFLOWS_FILE, {
            "workflows": [w.model_dump(mode="json") for w in workflows]
        })

    def load_workflows(self) -> List[Workflow]:
        data = self._read_json(self.base_path / self.WORKFLOWS_FILE)
        return [Workflow(**item) for item in data.get("workflows", [])]

    def save_report(self, report: WorkflowRunReport) -> Path:
        """
        Save a run report under runs/<timestamp>_<run_id>/report.json.

        Args:
            report: Completed run report

        Returns:
            Path to saved file
        """
        stamp = (report.started_at or datetime.utcnow()).strftime("%Y%m%d_%H%M%S")
        run_dir = self.runs_dir / f"{stamp}_{report.run_id}"
        run_dir.mkdir(parents=True, exist_ok=True)
        path = self._write_json(run_dir / "report.json", report.model_dump(mode="json"))
        self.logger.info(f"Saved run report to {path}")
        return path

    def list_reports(self, workflow_id: Optional[str] = None) -> List[WorkflowRunReport]:
        """Load saved run reports, oldest first, optionally for one workflow."""
        reports = []
        for path in sorted(self.runs_dir.glob("*/report.json")):
            report = WorkflowRunReport(**self._read_json(path))
            if workflow_id is None or report.workflow_id == workflow_id:
                reports.append(report)
        return reports

    def _write_json(self, path: Path, data: Dict[str, Any]) -> Path:
        # atomic replace
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, 'w') as f:
            json.dump(data, f, indent=2, default=str)
        os.replace(tmp_path, path)
        self.logger.debug(f"Saved JSON to {path}")
        return path

    def _read_json(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        with open(path) as f:
            return json.load(f)
