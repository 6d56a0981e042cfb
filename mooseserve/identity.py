"""TLS identity provisioning.

The server either loads an operator supplied certificate/key pair or, when
either file is missing, synthesizes a self-signed identity in memory. A
generated identity can optionally be written back to disk.
"""

import dataclasses
import datetime
import enum
import logging
import os
import ssl
import tempfile
import warnings
from typing import Optional, Tuple

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from mooseserve.errors import IdentityGenerationError, IdentityLoadError, PersistenceWarning

logger = logging.getLogger(__name__)

ORGANIZATION = "Mooseserve Self-Signed"
VALIDITY = datetime.timedelta(days=365)
CERT_MODE = 0o644
KEY_MODE = 0o600

# Key types OpenSSL can present in a server handshake.
TLS_KEY_TYPES = (
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    ed25519.Ed25519PrivateKey,
    ed448.Ed448PrivateKey,
)


class Source(enum.Enum):
    LOADED = "loaded"
    GENERATED = "generated"


@dataclasses.dataclass(frozen=True)
class Identity:
    """A certificate and its private key, both PEM encoded."""

    cert_pem: bytes
    key_pem: bytes

    def __repr__(self):
        return f"Identity(serial={self.certificate().serial_number:#x})"

    def certificate(self) -> x509.Certificate:
        return x509.load_pem_x509_certificate(self.cert_pem)

    def ssl_context(self) -> ssl.SSLContext:
        """Build a server-side TLS context presenting this identity.

        ``load_cert_chain`` only reads from files, so the PEM blocks go through
        a private temporary directory that is gone once this returns.
        """
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        with tempfile.TemporaryDirectory(prefix="mooseserve-") as tmp:
            cert_file = os.path.join(tmp, "cert.pem")
            key_file = os.path.join(tmp, "key.pem")
            _write_file(cert_file, self.cert_pem, CERT_MODE)
            _write_file(key_file, self.key_pem, KEY_MODE)
            context.load_cert_chain(certfile=cert_file, keyfile=key_file)
        return context


def file_exists(path) -> bool:
    return os.path.isfile(path)


def generate_identity() -> Identity:
    try:
        key = ec.generate_private_key(ec.SECP256R1())
        subject = issuer = x509.Name([
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, ORGANIZATION),
        ])
        now = datetime.datetime.now(datetime.timezone.utc)
        cert = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + VALIDITY)
            .add_extension(x509.SubjectAlternativeName([x509.DNSName("localhost")]), critical=False)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=True,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .sign(key, hashes.SHA256())
        )
        cert_pem = cert.public_bytes(serialization.Encoding.PEM)
        key_pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    except (ValueError, TypeError, OSError, UnsupportedAlgorithm) as exc:
        raise IdentityGenerationError(f"failed to generate self-signed certificate: {exc}") from exc
    return Identity(cert_pem=cert_pem, key_pem=key_pem)


def _public_der(public_key) -> bytes:
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def load_identity(cert_path, key_path) -> Identity:
    try:
        with open(cert_path, "rb") as f:
            cert_pem = f.read()
        with open(key_path, "rb") as f:
            key_pem = f.read()
    except OSError as exc:
        raise IdentityLoadError(f"failed to read SSL certificate files: {exc}") from exc

    try:
        cert = x509.load_pem_x509_certificate(cert_pem)
        key = serialization.load_pem_private_key(key_pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise IdentityLoadError(
            f"failed to load SSL certificates (cert: {cert_path}, key: {key_path}): {exc}"
        ) from exc

    if not isinstance(key, TLS_KEY_TYPES):
        raise IdentityLoadError(f"unsupported private key type {type(key).__name__} in {key_path}")
    if _public_der(key.public_key()) != _public_der(cert.public_key()):
        raise IdentityLoadError(f"private key {key_path} does not match certificate {cert_path}")

    return Identity(cert_pem=cert_pem, key_pem=key_pem)


def _write_file(path, data: bytes, mode: int) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    try:
        # The open mode is filtered by umask and ignored for existing files.
        os.fchmod(fd, mode)
    except BaseException:
        os.close(fd)
        raise
    with os.fdopen(fd, "wb") as f:
        f.write(data)


def persist_identity(identity: Identity, cert_path, key_path) -> bool:
    """Write ``identity`` to disk, returning True if both files were saved.

    Failures are reported as :class:`PersistenceWarning` and never raised.
    """
    saved = True
    for label, path, data, mode in (
        ("certificate", cert_path, identity.cert_pem, CERT_MODE),
        ("key", key_path, identity.key_pem, KEY_MODE),
    ):
        try:
            _write_file(path, data, mode)
        except OSError as exc:
            warnings.warn(f"failed to save {label} to {path}: {exc}", PersistenceWarning, stacklevel=2)
            saved = False
        else:
            logger.info("Saved %s to %s", label, path)
    return saved


def obtain_identity(
    cert_path,
    key_path,
    persist: bool = False,
    save_paths: Optional[Tuple[str, str]] = None,
) -> Tuple[Identity, Source]:
    """Load the identity at ``cert_path``/``key_path`` or generate a new one.

    Loading is attempted only when both paths are regular files, and a broken
    pair is fatal rather than silently replaced. A generated identity is
    written to ``save_paths`` (default: the input paths) when ``persist`` is
    set.
    """
    if file_exists(cert_path) and file_exists(key_path):
        identity = load_identity(cert_path, key_path)
        logger.info("Using SSL certificate %s and key %s", cert_path, key_path)
        return identity, Source.LOADED

    logger.info("SSL certificate files not found, generating self-signed certificate in memory...")
    identity = generate_identity()
    if persist:
        if save_paths is None:
            save_paths = (cert_path, key_path)
        persist_identity(identity, *save_paths)
    return identity, Source.GENERATED
