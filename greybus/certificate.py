"""TLS credential tags and installation of the built-in server credentials."""

from __future__ import annotations

import logging
import threading
from enum import IntEnum
from typing import Optional

log = logging.getLogger(__name__)


class CertificateTag(IntEnum):
    """Security tags under which credentials are filed."""

    CA_CERT = 0
    SERVER_CERT = 1
    CLIENT_CERT = 2


class CredentialType(IntEnum):
    """Kinds of credential a tag may hold."""

    CA_CERTIFICATE = 1
    SERVER_CERTIFICATE = 2
    PRIVATE_KEY = 3


class PeerVerify(IntEnum):
    """How strictly the server verifies its clients."""

    NONE = 0
    OPTIONAL = 1
    REQUIRED = 2


class CredentialStore:
    """Thread-safe store of credentials keyed by tag and kind."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._credentials: dict[tuple[CertificateTag, CredentialType], bytes] = {}

    def add(self, tag: int, kind: int, data: bytes) -> None:
        """File ``data`` under ``tag`` as ``kind``; each pair may be filed once."""
        key = (CertificateTag(tag), CredentialType(kind))
        if data is None or len(data) == 0:
            raise ValueError("credential data must not be empty")
        with self._lock:
            if key in self._credentials:
                raise ValueError(f"{key[1].name} already present for tag {key[0].name}")
            self._credentials[key] = bytes(data)

    def get(self, tag: int, kind: int) -> bytes:
        key = (CertificateTag(tag), CredentialType(kind))
        with self._lock:
            try:
                return self._credentials[key]
            except KeyError:
                raise KeyError(f"no {key[1].name} for tag {key[0].name}") from None

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        try:
            normalized = (CertificateTag(key[0]), CredentialType(key[1]))
        except ValueError:
            return False
        with self._lock:
            return normalized in self._credentials

    def __len__(self) -> int:
        with self._lock:
            return len(self._credentials)


def tls_init(
    store: CredentialStore,
    server_cert: Optional[bytes] = None,
    server_key: Optional[bytes] = None,
    ca_cert: Optional[bytes] = None,
    verify: int = PeerVerify.NONE,
) -> None:
    """Install the server certificate, its private key and, when clients are
    verified, the CA certificate. With no credentials given, TLS is off and
    nothing is installed."""
    if server_cert is None and server_key is None and ca_cert is None:
        return

    verify = PeerVerify(verify)
    if server_cert is None or server_key is None:
        raise ValueError("both the server certificate and its private key are required")
    if verify is not PeerVerify.NONE and ca_cert is None:
        raise ValueError(f"client verification {verify.name} needs a CA certificate")

    log.info("Initializing built-in certificates")
    if verify is not PeerVerify.NONE:
        log.debug("Adding CA Certificate (%d bytes)", len(ca_cert))
        store.add(CertificateTag.CA_CERT, CredentialType.CA_CERTIFICATE, ca_cert)

    log.debug("Adding Server Certificate (Public Key) (%d bytes)", len(server_cert))
    store.add(CertificateTag.SERVER_CERT, CredentialType.SERVER_CERTIFICATE, server_cert)

    log.debug("Adding Server Certificate (Private Key) (%d bytes)", len(server_key))
    store.add(CertificateTag.SERVER_CERT, CredentialType.PRIVATE_KEY, server_key)