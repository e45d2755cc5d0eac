# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Async PostgreSQL connection management
# PURPOSE: Connection pooling for the Postgres workflow store
# CREATED: 18 OCT 2026
# ============================================================================
"""
Database Connection Pool

Manages async PostgreSQL connections using psycopg3 and psycopg_pool.
One pool per application, opened at startup and closed at shutdown.

Supports two authentication methods:
1. Managed Identity (Azure) - USE_MANAGED_IDENTITY=true
2. Password auth (local dev) - DATABASE_URL or POSTGRES_* vars

Usage:
    from repositories.database import get_pool

    pool = await get_pool()
    store = PostgresWorkflowStore(pool)
"""

import os
import logging
from typing import Optional

from psycopg_pool import AsyncConnectionPool

logger = logging.getLogger(__name__)

# OAuth scope for Azure Database for PostgreSQL
POSTGRES_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"

# Global pool instance
_pool: Optional[AsyncConnectionPool] = None


def _get_managed_identity_token() -> str:
    """
    Acquire an Entra ID token to use as the PostgreSQL password.

    Uses a user-assigned identity when AZURE_CLIENT_ID is set, otherwise
    DefaultAzureCredential (system identity or az login).
    """
    from azure.identity import DefaultAzureCredential, ManagedIdentityCredential

    client_id = os.environ.get("AZURE_CLIENT_ID")
    if client_id:
        logger.info(f"Using user-assigned Managed Identity: {client_id[:8]}...")
        credential = ManagedIdentityCredential(client_id=client_id)
    else:
        logger.info("Using DefaultAzureCredential (system MI or az login)")
        credential = DefaultAzureCredential()

    return credential.get_token(POSTGRES_SCOPE).token


def get_connection_string() -> str:
    """
    Get database connection string from environment.

    Priority:
    1. DATABASE_URL environment variable
    2. Individual POSTGRES_* components, with a managed identity token as
       the password when USE_MANAGED_IDENTITY=true

    Returns:
        PostgreSQL connection string
    """
    if url := os.environ.get("DATABASE_URL"):
        return url

    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    name = os.environ.get("POSTGRES_DB", "postgres")
    user = os.environ.get("POSTGRES_USER", "postgres")
    sslmode = os.environ.get("POSTGRES_SSLMODE", "require")

    if os.environ.get("USE_MANAGED_IDENTITY", "false").lower() == "true":
        logger.info("Using Managed Identity for PostgreSQL authentication")
        password = _get_managed_identity_token()
    else:
        password = os.environ.get("POSTGRES_PASSWORD", "")

    return f"postgresql://{user}:{password}@{host}:{port}/{name}?sslmode={sslmode}"


def _safe_conninfo(conninfo: str) -> str:
    """Strip credentials before logging."""
    if "@" in conninfo:
        return conninfo.split("@")[-1]
    if "password=" in conninfo:
        return conninfo.split("password=")[0] + "password=***"
    return conninfo


async def init_pool(
    min_size: int = 2,
    max_size: int = 10,
    connection_string: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Initialize the global connection pool.

    Args:
        min_size: Minimum connections to maintain
        max_size: Maximum connections allowed
        connection_string: Override connection string (defaults to env)

    Returns:
        AsyncConnectionPool instance
    """
    global _pool

    if _pool is not None:
        logger.warning("Pool already initialized, returning existing pool")
        return _pool

    conninfo = connection_string or get_connection_string()
    logger.info(f"Initializing connection pool: {_safe_conninfo(conninfo)}")

    _pool = AsyncConnectionPool(
        conninfo=conninfo,
        min_size=min_size,
        max_size=max_size,
        open=False,
    )

    await _pool.open()
    logger.info(f"Connection pool opened (min={min_size}, max={max_size})")

    return _pool


async def get_pool() -> AsyncConnectionPool:
    """Get the global connection pool, initializing if needed."""
    if _pool is None:
        await init_pool()
    return _pool


async def close_pool() -> None:
    """Close the global connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Connection pool closed")


__all__ = [
    "POSTGRES_SCOPE",
    "get_connection_string",
    "init_pool",
    "get_pool",
    "close_pool",
]
