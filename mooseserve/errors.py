"""Exceptions raised while configuring and starting the server."""


class MooseserveError(Exception):
    pass


class ConfigError(MooseserveError):
    pass


class IdentityError(MooseserveError):
    """The TLS identity could not be provided."""


class IdentityLoadError(IdentityError):
    """Certificate and key files exist but are unusable."""


class IdentityGenerationError(IdentityError):
    """A self-signed identity could not be synthesized."""


class PersistenceWarning(UserWarning):
    """A generated identity could not be written to disk."""
