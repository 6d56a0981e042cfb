import dataclasses

from mooseserve.errors import ConfigError

DEFAULT_CERT_FILE = "cert.crt"
DEFAULT_KEY_FILE = "cert.key"


@dataclasses.dataclass(frozen=True)
class ServerConfig:
    """Everything the server needs to start.

    HTTPS is enabled whenever ``ssl_port`` is positive and ``no_ssl`` is not
    set; ``ssl_port=0`` is the explicit way to turn it off.
    """

    host: str = ""
    ssl_host: str = ""
    port: int = 80
    ssl_port: int = 443
    no_http: bool = False
    no_ssl: bool = False
    directory: str = "."
    cert_file: str = DEFAULT_CERT_FILE
    key_file: str = DEFAULT_KEY_FILE
    save_keys: bool = False

    @property
    def use_ssl(self) -> bool:
        return not self.no_ssl and self.ssl_port > 0

    @property
    def use_http(self) -> bool:
        return not self.no_http

    def validate(self) -> None:
        for name in ("port", "ssl_port"):
            value = getattr(self, name)
            if not 0 <= value <= 65535:
                raise ConfigError(f"{name} must be between 0 and 65535, got {value}")
        if not self.use_http and not self.use_ssl:
            raise ConfigError("both HTTP and HTTPS are disabled, nothing to serve")
