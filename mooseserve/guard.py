"""Keep the active private key from being served as a static file."""

import functools
import html
import io
import os
import posixpath
import sys
import urllib.parse
from http import HTTPStatus
from typing import Optional


def resolve_request_path(request_path: str, root: str) -> str:
    """Map a request path to a filesystem path under ``root``.

    Follows ``SimpleHTTPRequestHandler.translate_path`` step for step so the
    guard sees the same file the static handler would open.
    """
    path = request_path.split("?", 1)[0]
    path = path.split("#", 1)[0]
    trailing_slash = path.rstrip().endswith("/")
    try:
        path = urllib.parse.unquote(path, errors="surrogatepass")
    except UnicodeDecodeError:
        path = urllib.parse.unquote(path)
    path = posixpath.normpath(path)
    resolved = root
    for word in filter(None, path.split("/")):
        if os.path.dirname(word) or word in (os.curdir, os.pardir):
            continue
        resolved = os.path.join(resolved, word)
    if trailing_slash:
        resolved += "/"
    return resolved


def canonical_path(path: str) -> str:
    return os.path.normcase(os.path.realpath(path))


def same_file(path: str, active_key: str) -> bool:
    """True if ``path`` names the file at ``active_key``.

    Existing files are compared by device and inode, which also catches hard
    links and case variants on case-insensitive filesystems.
    """
    try:
        if os.path.exists(path) and os.path.exists(active_key):
            return os.path.samefile(path, active_key)
        return canonical_path(path) == canonical_path(active_key)
    except (ValueError, OSError):
        # Unencodable paths cannot be opened by the static handler either.
        return False


def is_blocked(request_path: str, active_key: Optional[str], root: str) -> bool:
    """Return True if ``request_path`` would reach the file at ``active_key``."""
    if not active_key:
        return False
    try:
        candidate = resolve_request_path(request_path, root)
    except ValueError:
        return False
    return same_file(candidate, active_key)


class KeyGuardMixin:
    """Answer 404 for the blocked file before the filesystem is consulted.

    ``send_head`` is the common entry point of GET and HEAD in
    ``SimpleHTTPRequestHandler``. Directory listings leave the file out.
    """

    blocked_path = None

    def __init__(self, *args, blocked_path=None, **kwargs):
        self.blocked_path = blocked_path
        super().__init__(*args, **kwargs)

    def send_head(self):
        if is_blocked(self.path, self.blocked_path, self.directory):
            self.send_error(HTTPStatus.NOT_FOUND, "File not found")
            return None
        return super().send_head()

    def list_directory(self, path):
        if not self.blocked_path:
            return super().list_directory(path)
        try:
            names = os.listdir(path)
        except OSError:
            self.send_error(HTTPStatus.NOT_FOUND, "No permission to list directory")
            return None
        names = [name for name in names if not same_file(os.path.join(path, name), self.blocked_path)]
        names.sort(key=lambda a: a.lower())

        try:
            displaypath = urllib.parse.unquote(self.path, errors="surrogatepass")
        except UnicodeDecodeError:
            displaypath = urllib.parse.unquote(self.path)
        displaypath = html.escape(displaypath, quote=False)
        enc = sys.getfilesystemencoding()
        title = f"Directory listing for {displaypath}"

        r = [
            "<!DOCTYPE HTML>",
            '<html lang="en">',
            "<head>",
            f'<meta charset="{enc}">',
            f"<title>{title}</title>",
            "</head>",
            f"<body>\n<h1>{title}</h1>",
            "<hr>\n<ul>",
        ]
        for name in names:
            fullname = os.path.join(path, name)
            displayname = linkname = name
            if os.path.isdir(fullname):
                displayname = linkname = name + "/"
            if os.path.islink(fullname):
                displayname = name + "@"
            r.append('<li><a href="%s">%s</a></li>' % (
                urllib.parse.quote(linkname, errors="surrogatepass"),
                html.escape(displayname, quote=False),
            ))
        r.append("</ul>\n<hr>\n</body>\n</html>\n")
        encoded = "\n".join(r).encode(enc, "surrogateescape")

        f = io.BytesIO(encoded)
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-type", f"text/html; charset={enc}")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        return f


def guarded_handler(handler_class, directory: str, blocked_path: Optional[str]):
    """Wrap ``handler_class`` so it serves ``directory`` without exposing ``blocked_path``."""
    guarded = type("Guarded" + handler_class.__name__, (KeyGuardMixin, handler_class), {})
    return functools.partial(guarded, directory=directory, blocked_path=blocked_path)
