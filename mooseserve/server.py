import http.server
import logging
import os
import threading
from typing import Optional

from mooseserve.config import ServerConfig
from mooseserve.errors import ConfigError
from mooseserve.guard import guarded_handler
from mooseserve.identity import Source, obtain_identity

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


class StaticFileHandler(http.server.SimpleHTTPRequestHandler):
    timeout = REQUEST_TIMEOUT

    def log_message(self, format, *args):
        logger.info("%s - %s", self.address_string(), format % args)


class ThreadingServer(http.server.ThreadingHTTPServer):
    def handle_error(self, request, client_address):
        # Failed TLS handshakes surface here, on the request thread.
        logger.debug("Error handling request from %s", client_address[0], exc_info=True)


def active_key_path(config: ServerConfig) -> Optional[str]:
    """Canonical path of the HTTPS key, wherever it lives.

    Keys outside the served directory are still reachable through a symlink
    placed inside it, so the guard always gets the path.
    """
    if not config.use_ssl:
        return None
    return os.path.realpath(os.path.abspath(config.key_file))


class Server:
    """Serves one directory over HTTP and/or HTTPS.

    Every listener is bound with the guarded handler before any of them starts
    accepting connections.
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self.root = None
        self.identity = None
        self.identity_source = None
        self.blocked_path = None
        self.httpd = None
        self.httpsd = None
        self._threads = []

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc_info):
        self.shutdown()

    @property
    def http_address(self):
        return self.httpd.server_address[:2] if self.httpd else None

    @property
    def https_address(self):
        return self.httpsd.server_address[:2] if self.httpsd else None

    def start(self):
        config = self.config
        config.validate()

        root = os.path.abspath(config.directory)
        if not os.path.isdir(root):
            raise ConfigError(f"unable to serve {config.directory}: not a directory")
        self.root = root
        logger.info("Serving %s", root)

        if config.use_ssl:
            self.identity, self.identity_source = obtain_identity(
                config.cert_file, config.key_file, persist=config.save_keys
            )
        self.blocked_path = active_key_path(config)
        if self.blocked_path:
            logger.info("Blocking access to private key %s", self.blocked_path)

        handler = guarded_handler(StaticFileHandler, root, self.blocked_path)

        try:
            if config.use_http:
                self.httpd = ThreadingServer((config.host, config.port), handler)
                logger.info("HTTP listening on %s:%d", config.host, self.httpd.server_address[1])
            if config.use_ssl:
                self.httpsd = ThreadingServer((config.ssl_host, config.ssl_port), handler)
                self.httpsd.socket = self.identity.ssl_context().wrap_socket(
                    self.httpsd.socket, server_side=True, do_handshake_on_connect=False
                )
                if self.identity_source is Source.LOADED:
                    logger.info("HTTPS listening on %s:%d (cert: %s, key: %s)",
                                config.ssl_host, self.httpsd.server_address[1],
                                config.cert_file, config.key_file)
                else:
                    logger.info("HTTPS listening on %s:%d (using generated self-signed certificate)",
                                config.ssl_host, self.httpsd.server_address[1])
        except BaseException:
            self._close()
            raise

        for name, httpd in (("http", self.httpd), ("https", self.httpsd)):
            if httpd is None:
                continue
            thread = threading.Thread(target=httpd.serve_forever, name=f"mooseserve-{name}", daemon=True)
            thread.start()
            self._threads.append(thread)

    def shutdown(self):
        if self._threads:
            logger.info("Shutting down servers...")
        for httpd in (self.httpd, self.httpsd):
            if httpd is not None and self._threads:
                httpd.shutdown()
        for thread in self._threads:
            thread.join()
        self._threads = []
        self._close()

    def _close(self):
        for httpd in (self.httpd, self.httpsd):
            if httpd is not None:
                httpd.server_close()
        self.httpd = None
        self.httpsd = None
