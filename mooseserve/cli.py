import argparse
import logging
import signal
import threading

from mooseserve.config import DEFAULT_CERT_FILE, DEFAULT_KEY_FILE, ServerConfig
from mooseserve.errors import MooseserveError
from mooseserve.server import Server

logger = logging.getLogger("mooseserve")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def build_parser():
    parser = argparse.ArgumentParser(
        prog="mooseserve",
        description="Serve a directory over HTTP and HTTPS.",
    )
    parser.add_argument("--host", default="", help="HTTP host to listen on")
    parser.add_argument("--sslhost", default="", help="SSL host to listen on")
    parser.add_argument("--port", type=int, default=80, help="HTTP port to listen on (default: 80)")
    parser.add_argument("--sslport", type=int, default=443,
                        help="SSL port to listen on, 0 to disable SSL (default: 443)")
    parser.add_argument("--nohttp", action="store_true", help="Disables HTTP")
    parser.add_argument("--nossl", action="store_true", help="Disables SSL (SSL is enabled by default)")
    parser.add_argument("--dir", default=".", help="Directory to serve (default: current dir)")
    parser.add_argument("--cert", default=DEFAULT_CERT_FILE,
                        help="File to use as SSL cert (generated in memory if not found)")
    parser.add_argument("--key", default=DEFAULT_KEY_FILE,
                        help="File to use as SSL key (generated in memory if not found)")
    parser.add_argument("--savekeys", action="store_true",
                        help="Save generated SSL cert and key files to disk")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: INFO)")
    return parser


def config_from_args(args) -> ServerConfig:
    return ServerConfig(
        host=args.host,
        ssl_host=args.sslhost,
        port=args.port,
        ssl_port=args.sslport,
        no_http=args.nohttp,
        no_ssl=args.nossl,
        directory=args.dir,
        cert_file=args.cert,
        key_file=args.key,
        save_keys=args.savekeys,
    )


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)
    logging.captureWarnings(True)

    server = Server(config_from_args(args))
    try:
        server.start()
    except (MooseserveError, OSError) as exc:
        logger.error("%s", exc)
        return 1

    stop = threading.Event()
    previous = {
        sig: signal.signal(sig, lambda signum, frame: stop.set())
        for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        stop.wait()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        server.shutdown()
    logger.info("Done - exiting")
    return 0
