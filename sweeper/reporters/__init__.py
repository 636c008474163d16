"""
Run Reports
===========

Aggregation and rendering of sweep outcomes.

Available Components
--------------------
RunReportBuilder
    Thread-safe, append-only collector; ``finalize()`` returns a RunReport.
CLIReporter
    Rich terminal output with summary counts, plans and failures.
JSONReporter
    JSON export for automation.

Example
-------
>>> from sweeper.reporters import CLIReporter, JSONReporter
>>>
>>> CLIReporter().report(run_report)
>>> JSONReporter(output_path="sweep.json").report(run_report)
"""

from sweeper.reporters.cli_reporter import CLIReporter
from sweeper.reporters.json_reporter import JSONReporter
from sweeper.reporters.run_report import ResourceOutcome, RunReport, RunReportBuilder

__all__ = [
    "CLIReporter",
    "JSONReporter",
    "ResourceOutcome",
    "RunReport",
    "RunReportBuilder",
]
