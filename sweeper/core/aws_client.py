"""
AWS Client Module
=================

Provides a thread-safe wrapper around boto3 used by every stage of the
sweep: inventory listing, usage-source queries, teardown mutations and the
startup identity check.

Classes
-------
Identity
    Account and principal returned by the identity check.
AWSClient
    Main client class for AWS operations.

Example
-------
>>> from sweeper.core.aws_client import AWSClient
>>>
>>> client = AWSClient(region="us-east-1", profile="production")
>>> identity = client.who_am_i()
>>> print(identity.account, identity.principal)
>>>
>>> iam = client.get_iam_client()
>>> lambda_client = client.get_lambda_client()

Notes
-----
Sessions and service clients are created lazily and cached. boto3 clients
are thread-safe, so one AWSClient can be shared by the evaluation workers;
client creation itself is guarded by a lock.

See Also
--------
boto3 : AWS SDK for Python
botocore : Low-level AWS client library
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    NoRegionError,
    ProfileNotFound,
)

from sweeper.core.exceptions import (
    AWSClientError,
    CredentialsError,
    ProviderUnreachable,
    RegionError,
    ServiceError,
)

# Module logger
logger = logging.getLogger(__name__)

# Error codes that mean the credentials themselves are bad
INVALID_CREDENTIAL_CODES = (
    "InvalidClientTokenId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "UnrecognizedClientException",
)


@dataclass(frozen=True)
class Identity:
    """
    Caller identity of the running sweep.

    Attributes:
        account: 12-digit AWS account ID
        principal: ARN of the calling user or role
    """

    account: str
    principal: str


class AWSClient:
    """
    Thread-safe AWS client wrapper with retry logic and credential management.

    Parameters
    ----------
    region : str, default="us-east-1"
        AWS region to connect to.
    profile : str, optional
        AWS profile name from ~/.aws/credentials.
    max_retries : int, default=3
        Maximum number of retries for failed API calls.
    timeout : int, default=30
        Connect and read timeout in seconds.

    Examples
    --------
    >>> client = AWSClient(region="us-east-1")
    >>> client.who_am_i().account
    '123456789012'

    >>> eu_client = client.with_region("eu-west-1")

    Raises
    ------
    CredentialsError
        If AWS credentials are not found or invalid.
    RegionError
        If the specified region is invalid.
    ServiceError
        If unable to create a service client.
    """

    # Services the sweeper talks to
    SUPPORTED_SERVICES = {
        "iam": "AWS Identity and Access Management",
        "ec2": "Amazon EC2",
        "rds": "Amazon RDS",
        "elb": "Elastic Load Balancing (Classic)",
        "elbv2": "Elastic Load Balancing (v2)",
        "ecs": "Amazon Elastic Container Service",
        "lambda": "AWS Lambda",
        "codebuild": "AWS CodeBuild",
        "autoscaling": "Amazon EC2 Auto Scaling",
        "sts": "AWS Security Token Service",
    }

    def __init__(
        self,
        region: str = "us-east-1",
        profile: Optional[str] = None,
        max_retries: int = 3,
        timeout: int = 30,
    ) -> None:
        """Initialize AWS client with the specified configuration."""
        self.region = region
        self.profile = profile
        self.max_retries = max_retries
        self.timeout = timeout

        # Lazy-loaded components
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}
        self._lock = threading.Lock()

        self._config = self._create_config()

        logger.debug(f"Initialized AWSClient for {region} (profile={profile})")

    def _create_config(self) -> Config:
        """
        Create botocore configuration with retry and timeout settings.

        Adaptive retry mode also rate-limits the client side when the
        provider starts throttling.
        """
        return Config(
            retries={
                "max_attempts": self.max_retries,
                "mode": "adaptive",
            },
            connect_timeout=self.timeout,
            read_timeout=self.timeout,
        )

    @property
    def session(self) -> boto3.Session:
        """Get or create the boto3 session (lazy initialization)."""
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> boto3.Session:
        """
        Create a new boto3 session with the configured profile and region.

        Raises
        ------
        CredentialsError
            If the specified profile is not found.
        RegionError
            If the region is invalid or missing.
        AWSClientError
            For other session creation failures.
        """
        try:
            session_kwargs = {"region_name": self.region}
            if self.profile:
                session_kwargs["profile_name"] = self.profile

            session = boto3.Session(**session_kwargs)
            logger.debug(f"Created boto3 session for region {self.region}")
            return session

        except ProfileNotFound:
            raise CredentialsError(
                f"AWS profile '{self.profile}' not found",
                details={
                    "profile": self.profile,
                    "hint": "Check ~/.aws/credentials for available profiles",
                },
            )
        except NoRegionError:
            raise RegionError(
                f"Invalid or missing region: {self.region}",
                region=self.region,
                details={"hint": "Specify a valid AWS region like 'us-east-1'"},
            )
        except Exception as e:
            logger.exception("Failed to create AWS session")
            raise AWSClientError(
                f"Failed to create AWS session: {e}",
                region=self.region,
            )

    def client(self, service_name: str) -> Any:
        """
        Get or create a boto3 client for the specified service.

        Parameters
        ----------
        service_name : str
            Name of the AWS service (e.g., 'iam', 'ec2').

        Returns
        -------
        botocore.client.BaseClient
            The cached boto3 client for the service.

        Raises
        ------
        CredentialsError
            If credentials are not found.
        ServiceError
            If unable to create the client.
        """
        with self._lock:
            if service_name in self._clients:
                return self._clients[service_name]

            try:
                client = self.session.client(service_name, config=self._config)
            except NoCredentialsError:
                raise CredentialsError(
                    "AWS credentials not found",
                    details={
                        "hint": (
                            "Configure credentials using 'aws configure' or set "
                            "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY environment variables"
                        ),
                    },
                )
            except AWSClientError:
                raise
            except Exception as e:
                logger.exception(f"Failed to create {service_name} client")
                raise ServiceError(
                    f"Failed to create {service_name} client: {e}",
                    service=service_name,
                    region=self.region,
                )

            self._clients[service_name] = client
            logger.debug(f"Created {service_name} client for {self.region}")
            return client

    # =========================================================================
    # Service Client Accessors
    # =========================================================================

    def get_iam_client(self) -> Any:
        """Get the IAM client (IAM is global; the region only picks the endpoint)."""
        return self.client("iam")

    def get_ec2_client(self) -> Any:
        """Get the EC2 client."""
        return self.client("ec2")

    def get_rds_client(self) -> Any:
        """Get the RDS client."""
        return self.client("rds")

    def get_elb_client(self) -> Any:
        """Get the Classic Elastic Load Balancing client."""
        return self.client("elb")

    def get_elbv2_client(self) -> Any:
        """Get the Elastic Load Balancing v2 client (ALB/NLB)."""
        return self.client("elbv2")

    def get_ecs_client(self) -> Any:
        """Get the ECS client."""
        return self.client("ecs")

    def get_lambda_client(self) -> Any:
        """Get the Lambda client."""
        return self.client("lambda")

    def get_codebuild_client(self) -> Any:
        """Get the CodeBuild client."""
        return self.client("codebuild")

    def get_autoscaling_client(self) -> Any:
        """Get the EC2 Auto Scaling client."""
        return self.client("autoscaling")

    # =========================================================================
    # Identity
    # =========================================================================

    def who_am_i(self) -> Identity:
        """
        Identify the caller with STS GetCallerIdentity.

        Performed once at startup; any failure here is fatal.

        Returns
        -------
        Identity
            Account ID and principal ARN.

        Raises
        ------
        CredentialsError
            If credentials are invalid, expired, or missing.
        ProviderUnreachable
            If STS cannot be reached.

        Example
        -------
        >>> identity = AWSClient().who_am_i()
        >>> print(f"Connected to account {identity.account} as {identity.principal}")
        """
        try:
            response = self.client("sts").get_caller_identity()
        except AWSClientError as e:
            if isinstance(e, ProviderUnreachable):
                raise
            raise ProviderUnreachable(
                f"Failed to reach STS: {e.message}", service="sts", region=self.region
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code in INVALID_CREDENTIAL_CODES:
                raise CredentialsError(
                    "Invalid AWS credentials",
                    details={
                        "error_code": error_code,
                        "hint": "Check your access key and secret key",
                    },
                )
            raise ProviderUnreachable(
                f"Failed to identify caller: {e}", service="sts", region=self.region
            )
        except NoCredentialsError:
            raise CredentialsError(
                "AWS credentials not found",
                details={"hint": "Run 'aws configure' to set up credentials"},
            )
        except BotoCoreError as e:
            raise ProviderUnreachable(
                f"Failed to identify caller: {e}", service="sts", region=self.region
            )

        identity = Identity(account=response["Account"], principal=response["Arn"])
        logger.info(f"Connected to account {identity.account} as {identity.principal}")
        return identity

    def get_account_id(self) -> str:
        """Get the AWS account ID for the current credentials."""
        return self.who_am_i().account

    # =========================================================================
    # Factory Methods
    # =========================================================================

    def with_region(self, region: str) -> AWSClient:
        """
        Create a new AWSClient instance for a different region.

        The new client inherits profile, retries and timeout.

        Example
        -------
        >>> eu_client = AWSClient(region="us-east-1").with_region("eu-west-1")
        >>> eu_client.region
        'eu-west-1'
        """
        return AWSClient(
            region=region,
            profile=self.profile,
            max_retries=self.max_retries,
            timeout=self.timeout,
        )

    # =========================================================================
    # Context Manager Support
    # =========================================================================

    def __enter__(self) -> AWSClient:
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager and cleanup resources."""
        self._clients.clear()
        self._session = None

    def __repr__(self) -> str:
        """Return string representation of the client."""
        return (
            f"AWSClient(region='{self.region}', "
            f"profile={self.profile!r}, "
            f"max_retries={self.max_retries})"
        )


__all__ = ["AWSClient", "AWSClientError", "Identity"]
