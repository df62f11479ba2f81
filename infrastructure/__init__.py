# ============================================================================
# CLAUDE CONTEXT - INFRASTRUCTURE MODULE
# ============================================================================
# STATUS: Core Infrastructure - Store and Identity Provider access
# PURPOSE: Shared infrastructure components for the observation API
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: PostgreSQLRepository, IdentityProviderClient, UserIdentity, extract_bearer_token
# DEPENDENCIES: psycopg, httpx, config
# ============================================================================

"""
Infrastructure Module

Provides shared infrastructure components for Ocean Observer:
- PostgreSQL connection management with caller identity binding (PostgreSQLRepository)
- Bearer token resolution against the hosted Identity Provider (IdentityProviderClient)
"""

from .postgresql import PostgreSQLRepository
from .identity import IdentityProviderClient, UserIdentity, extract_bearer_token

__version__ = "1.0.0"
__all__ = [
    "PostgreSQLRepository",
    "IdentityProviderClient",
    "UserIdentity",
    "extract_bearer_token"
]
