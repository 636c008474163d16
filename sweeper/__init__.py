"""
Account Sweeper: Unused AWS Resource Cleaner
============================================

Finds IAM roles, customer-managed IAM policies and security groups that
nothing references and nobody used recently, then tears them down in
dependency order.

Modules
-------
core
    AWS client, region manager, data model and exceptions
inventory
    Candidate listing per resource kind
liveness
    Usage sources, liveness oracle and last-used lookups
policy
    Staleness classification
cleaners
    Dependency resolution, deletion execution and confirmation
reporters
    Run report aggregation and output (CLI, JSON)
engine
    The pipeline that ties the stages together

Example
-------
>>> from sweeper import RegionManager, ResourceKind, SweepConfig, SweepEngine
>>>
>>> engine = SweepEngine(RegionManager(), SweepConfig(dry_run=True))
>>> report = engine.run(ResourceKind.ROLE)
>>> print(report.counts)

Notes
-----
Requires AWS credentials configured via:
- Environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)
- AWS credentials file (~/.aws/credentials)
- IAM role (when running on AWS infrastructure)

See Also
--------
boto3 : AWS SDK for Python
"""

__version__ = "0.1.0"
__author__ = "Account Sweeper Team"
__license__ = "MIT"

# Public API
from sweeper.core.aws_client import AWSClient
from sweeper.core.exceptions import SweeperError
from sweeper.core.models import Classification, ResourceKind
from sweeper.core.region_manager import RegionManager
from sweeper.engine import SweepConfig, SweepEngine
from sweeper.reporters.run_report import RunReport

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Core classes
    "AWSClient",
    "Classification",
    "RegionManager",
    "ResourceKind",
    "RunReport",
    "SweepConfig",
    "SweepEngine",
    "SweeperError",
]
