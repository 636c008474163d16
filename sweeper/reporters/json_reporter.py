"""
JSON Reporter Module
====================

Exports run reports to JSON for automation and audit trails.

Example
-------
>>> from sweeper.reporters import JSONReporter
>>>
>>> reporter = JSONReporter(output_path="sweep.json")
>>> filepath = reporter.report(run_report)
>>>
>>> # Or get as string
>>> json_str = reporter.to_string(run_report)

Output Structure
----------------
::

    {
      "metadata": {
        "resource_type": "role",
        "dry_run": false,
        "account": "123456789012",
        ...
      },
      "counts": {"analyzed": 3, "active": 1, "recent": 1, "unused": 1,
                 "deleted": 1, "failed": 0, "skipped": 0},
      "active": ["app-role"],
      ...
      "failures": [{"resource": "...", "step": "...", "cause": "..."}],
      "unchecked_sources": {"ci-runner": ["build-project (eu-west-1)"]},
      "resources": [...]
    }
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from sweeper.reporters.run_report import RunReport

# Module logger
logger = logging.getLogger(__name__)


class JSONReporter:
    """
    Reporter for exporting run reports to JSON format.

    Parameters
    ----------
    output_path : str, optional
        Path for the output file. If not provided, generates a
        timestamped filename in the current directory.
    indent : int, default=2
        JSON indentation level. Set to None for compact output.
    """

    def __init__(
        self,
        output_path: Optional[str] = None,
        indent: Optional[int] = 2,
    ) -> None:
        self.output_path = output_path
        self.indent = indent
        logger.debug(f"Initialized JSONReporter (output_path={output_path})")

    def _get_output_path(self, report: RunReport) -> Path:
        if self.output_path:
            return Path(self.output_path)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return Path(f"sweep_{report.kind.value}s_{timestamp}.json")

    def report(self, report: RunReport) -> str:
        """
        Write ``report`` to a JSON file.

        Returns
        -------
        str
            Path to the created JSON file.
        """
        output_path = self._get_output_path(report)
        logger.info(f"Exporting run report to {output_path}")

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(report), f, indent=self.indent, default=str)

        logger.info(f"JSON export complete: {output_path}")
        return str(output_path)

    def to_string(self, report: RunReport) -> str:
        """Convert ``report`` to a JSON string without writing a file."""
        return json.dumps(self.to_dict(report), indent=self.indent, default=str)

    def to_dict(self, report: RunReport) -> Dict[str, Any]:
        return report.to_dict()

    def __repr__(self) -> str:
        return f"JSONReporter(output_path={self.output_path!r}, indent={self.indent})"
