"""Static file server for HTTP and HTTPS with self-signed certificate provisioning."""

from mooseserve.config import ServerConfig
from mooseserve.errors import (
    ConfigError,
    IdentityError,
    IdentityGenerationError,
    IdentityLoadError,
    MooseserveError,
    PersistenceWarning,
)
from mooseserve.guard import guarded_handler, is_blocked
from mooseserve.identity import (
    Identity,
    Source,
    generate_identity,
    load_identity,
    obtain_identity,
    persist_identity,
)
from mooseserve.server import Server

__version__ = "0.1.0"

__all__ = [
    "ServerConfig",
    "Server",
    "Identity",
    "Source",
    "generate_identity",
    "load_identity",
    "obtain_identity",
    "persist_identity",
    "guarded_handler",
    "is_blocked",
    "MooseserveError",
    "ConfigError",
    "IdentityError",
    "IdentityLoadError",
    "IdentityGenerationError",
    "PersistenceWarning",
]
