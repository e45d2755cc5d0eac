# ============================================================================
# MESSAGING CONFIGURATION
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Service Bus configuration
# PURPOSE: Centralize messaging configuration
# CREATED: 18 OCT 2026
# ============================================================================
"""
Messaging Configuration

Configuration for the Azure Service Bus job queue.
Supports both connection string and managed identity authentication.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class MessagingConfig:
    """
    Configuration for Azure Service Bus messaging.

    Loaded from environment variables.
    """
    # Connection - either connection_string OR fully_qualified_namespace
    connection_string: Optional[str] = None
    fully_qualified_namespace: Optional[str] = None

    # Managed identity settings
    use_managed_identity: bool = False
    managed_identity_client_id: Optional[str] = None

    # Queue that receives dispatched jobs (MUST be set explicitly)
    job_queue: str = ""

    # Message time-to-live on the queue (None = queue default)
    message_ttl_seconds: Optional[int] = None

    # Consumer side
    max_concurrent_jobs: int = 4
    receive_wait_seconds: int = 5
    shutdown_timeout_seconds: int = 30

    @classmethod
    def from_env(cls) -> "MessagingConfig":
        """
        Load configuration from environment variables.

        For connection string auth:
            CASCADE_SERVICEBUS_CONNECTION_STRING: Service Bus connection string

        For managed identity auth:
            USE_MANAGED_IDENTITY: Set to "true" to use managed identity
            CASCADE_SERVICEBUS_FQDN: Fully qualified namespace
                (e.g., mynamespace.servicebus.windows.net)
            AZURE_CLIENT_ID: Optional client ID for user-assigned managed identity

        Common:
            CASCADE_JOB_QUEUE: Job queue (REQUIRED)
            CASCADE_MESSAGE_TTL_SECONDS: Optional message TTL
            CASCADE_WORKER_MAX_CONCURRENT: Jobs a consumer runs at once (default 4)
            CASCADE_WORKER_SHUTDOWN_TIMEOUT: Seconds to wait for running jobs on stop
        """
        job_queue = os.environ.get("CASCADE_JOB_QUEUE")
        if not job_queue:
            raise ValueError("CASCADE_JOB_QUEUE environment variable is required")

        ttl = os.environ.get("CASCADE_MESSAGE_TTL_SECONDS")
        common = {
            "job_queue": job_queue,
            "message_ttl_seconds": int(ttl) if ttl else None,
            "max_concurrent_jobs": int(os.environ.get("CASCADE_WORKER_MAX_CONCURRENT", "4")),
            "shutdown_timeout_seconds": int(
                os.environ.get("CASCADE_WORKER_SHUTDOWN_TIMEOUT", "30")
            ),
        }

        use_mi = os.environ.get("USE_MANAGED_IDENTITY", "").lower() == "true"

        if use_mi:
            fqdn = os.environ.get("CASCADE_SERVICEBUS_FQDN")
            if not fqdn:
                raise ValueError(
                    "CASCADE_SERVICEBUS_FQDN required when USE_MANAGED_IDENTITY=true"
                )
            return cls(
                use_managed_identity=True,
                fully_qualified_namespace=fqdn,
                managed_identity_client_id=os.environ.get("AZURE_CLIENT_ID"),
                **common,
            )

        connection_string = os.environ.get("CASCADE_SERVICEBUS_CONNECTION_STRING")
        if not connection_string:
            raise ValueError(
                "CASCADE_SERVICEBUS_CONNECTION_STRING required (or set USE_MANAGED_IDENTITY=true)"
            )
        return cls(connection_string=connection_string, **common)


__all__ = ["MessagingConfig"]
