"""
Curator Common Module

Shared infrastructure for the retriever and the MCP server.
"""

from .config import CuratorConfig, load_config
from .backend_client import (
    BackendClient,
    BackendError,
    AuthError,
    ReadOnlyError,
    create_backend_client,
)
from .normalizer import SchemaViolation

__all__ = [
    "CuratorConfig",
    "load_config",
    "BackendClient",
    "BackendError",
    "AuthError",
    "ReadOnlyError",
    "create_backend_client",
    "SchemaViolation",
]
