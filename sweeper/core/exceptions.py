"""
Custom Exceptions for Account Sweeper
=====================================

This module defines the exception hierarchy used throughout the sweeper.
Each class maps to one failure category of the sweep pipeline and decides
how far the failure is allowed to propagate.

Exception Hierarchy
-------------------
::

    SweeperError (base)
    ├── AWSClientError
    │   ├── ProviderUnreachable      fatal, aborts the run
    │   │   └── CredentialsError
    │   ├── RegionError
    │   └── ServiceError
    ├── SourceUnavailable            recorded as an unchecked source
    ├── CleanerError
    │   ├── PlanningError            resource reported as failed
    │   └── DependencyStepFailed     resource reported as failed
    ├── UserCancelled                resource reported as skipped
    └── ReportFinalizedError

Example
-------
>>> from sweeper.core.exceptions import ProviderUnreachable
>>>
>>> try:
...     client.who_am_i()
... except ProviderUnreachable as e:
...     print(f"Cannot reach AWS: {e}")
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SweeperError(Exception):
    """
    Base exception for all Account Sweeper errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    details : dict, optional
        Additional context about the error.

    Attributes
    ----------
    message : str
        The error message.
    details : dict
        Additional error details.

    Example
    -------
    >>> raise SweeperError("Something went wrong", details={"code": 500})
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns
        -------
        dict
            Dictionary representation of the error.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# AWS Client Exceptions
# =============================================================================


class AWSClientError(SweeperError):
    """
    Base exception for AWS client-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    service : str, optional
        The AWS service that caused the error.
    region : str, optional
        The AWS region where the error occurred.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        region: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.service = service
        self.region = region
        full_details = details or {}
        if service:
            full_details["service"] = service
        if region:
            full_details["region"] = region
        super().__init__(message, full_details)


class ProviderUnreachable(AWSClientError):
    """
    Raised when the provider cannot be reached at all.

    Covers the startup identity check and inventory listings. This is the
    only error allowed to abort a run, and it is always raised before any
    deletion has been attempted.

    Example
    -------
    >>> raise ProviderUnreachable(
    ...     "Failed to list IAM roles",
    ...     service="iam",
    ... )
    """

    pass


class CredentialsError(ProviderUnreachable):
    """
    Raised when AWS credentials are invalid, missing, or expired.

    Example
    -------
    >>> raise CredentialsError(
    ...     "AWS credentials not found",
    ...     details={"hint": "Run 'aws configure' to set up credentials"}
    ... )
    """

    pass


class RegionError(AWSClientError):
    """Raised when there's an issue with the specified AWS region."""

    pass


class ServiceError(AWSClientError):
    """Raised when a client for a specific AWS service cannot be created."""

    pass


# =============================================================================
# Liveness Exceptions
# =============================================================================


class SourceUnavailable(SweeperError):
    """
    Raised when a usage source cannot be queried.

    Never fatal. The oracle records the source as unchecked and keeps
    evaluating the remaining sources.

    Parameters
    ----------
    message : str
        Human-readable error message.
    source : str
        Name of the usage source (e.g. 'serverless-function').
    region : str, optional
        Region the source was queried in.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        source: str,
        region: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.source = source
        self.region = region
        full_details = details or {}
        full_details["source"] = source
        if region:
            full_details["region"] = region
        super().__init__(message, full_details)


# =============================================================================
# Cleaner Exceptions
# =============================================================================


class CleanerError(SweeperError):
    """
    Base exception for cleaner-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    resource_id : str, optional
        The ID of the resource being cleaned.
    resource_type : str, optional
        The type of resource being cleaned.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        resource_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.resource_id = resource_id
        self.resource_type = resource_type
        full_details = details or {}
        if resource_id:
            full_details["resource_id"] = resource_id
        if resource_type:
            full_details["resource_type"] = resource_type
        super().__init__(message, full_details)


class PlanningError(CleanerError):
    """
    Raised when the sub-resources of a resource cannot be enumerated.

    Example
    -------
    >>> raise PlanningError(
    ...     "Failed to list attached policies",
    ...     resource_id="AROAEXAMPLE",
    ...     resource_type="role",
    ... )
    """

    pass


class DependencyStepFailed(CleanerError):
    """
    Raised when one step of a deletion plan fails.

    Aborts the remaining steps of that plan only.

    Parameters
    ----------
    message : str
        Human-readable error message.
    step : DeletionStep
        The step that failed.
    cause : str
        Provider error message or code.
    """

    def __init__(
        self,
        message: str,
        step: Any,
        cause: str,
        resource_id: Optional[str] = None,
        resource_type: Optional[str] = None,
    ) -> None:
        self.step = step
        self.cause = cause
        super().__init__(
            message,
            resource_id=resource_id,
            resource_type=resource_type,
            details={"step": str(step), "cause": cause},
        )


# =============================================================================
# Run Control Exceptions
# =============================================================================


class UserCancelled(SweeperError):
    """
    Raised when the operator declines a deletion or aborts the remaining ones.

    Parameters
    ----------
    message : str
        Human-readable error message.
    abort_remaining : bool, default=False
        True if no further deletions should be attempted in this run.
    """

    def __init__(self, message: str, abort_remaining: bool = False) -> None:
        self.abort_remaining = abort_remaining
        super().__init__(message, {"abort_remaining": abort_remaining})


class ReportFinalizedError(SweeperError):
    """Raised when recording into a run report that was already finalized."""

    pass
