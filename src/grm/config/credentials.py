"""
Machine-bound credential encryption for grm.

This module encrypts the GitHub password of a remote before it is written
to the configuration file, using AES-GCM authenticated encryption with a
key derived from the machine identity.

Security Design:
    - Passwords are never stored in plaintext
    - Encryption key is the SHA-256 digest of the OS machine identifier
    - A fresh random 96-bit nonce is generated for every encryption and
      stored next to the ciphertext (the ``salt`` key)
    - Any authentication failure is an error; there is no plaintext fallback

Threat Model:
    - Protects against: copying the configuration file to another machine,
      accidental exposure when sharing configuration, casual inspection
    - Does NOT protect against: other users or processes on the same
      machine that can read the machine identifier, memory inspection,
      or root access
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

import machineid
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from grm.config.schema import PASSWORD, SALT, USERNAME, Section

if TYPE_CHECKING:
    from grm.config.store import Configuration, Mutator

logger = logging.getLogger(__name__)

NONCE_LENGTH = 12  # 96 bits, the AES-GCM standard nonce size
KEY_LENGTH = 32  # SHA-256 digest, selects AES-256


class CredentialError(Exception):
    """Base exception for credential-related errors."""

    pass


class MachineIdError(CredentialError):
    """Raised when the machine identifier cannot be determined."""

    pass


class DecryptionError(CredentialError):
    """Raised when a stored value cannot be authenticated or decrypted."""

    pass


@dataclass(frozen=True)
class Credentials:
    """Decrypted credentials of a remote."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


def read_machine_id() -> str:
    """
    Read the OS-provided machine identifier.

    Uses ``/etc/machine-id`` on Linux, ``IOPlatformUUID`` on macOS, the
    registry ``MachineGuid`` on Windows and ``/etc/hostid`` or ``kenv`` on
    BSD.

    Returns:
        The raw identifier string, as reported by the operating system.

    Raises:
        MachineIdError: If no identifier is available on this machine.
    """
    try:
        machine_id = machineid.id()
    except Exception as e:
        raise MachineIdError(f"Could not determine machine id: {e}") from e

    machine_id = (machine_id or "").strip()
    if not machine_id:
        raise MachineIdError("Could not determine machine id: empty identifier")
    return machine_id


def derive_key(machine_id: str) -> bytes:
    """Derive the encryption key as the SHA-256 digest of the machine id."""
    return hashlib.sha256(machine_id.encode("utf-8")).digest()


def machine_key() -> bytes:
    """Return the encryption key of the current machine."""
    return derive_key(read_machine_id())


def encrypt(plaintext: str, key: bytes) -> tuple[str, str]:
    """
    Encrypt a value under the given key.

    A new random nonce is generated on every call; ciphertext and nonce
    must be stored together since decryption needs the exact nonce.

    Args:
        plaintext: Value to encrypt, must not be empty.
        key: 32-byte key, see ``derive_key``.

    Returns:
        Tuple of (ciphertext, nonce), both base64 encoded.

    Raises:
        ValueError: If plaintext is empty.
        CredentialError: If the key is not a valid AES key.
    """
    if not plaintext:
        raise ValueError("Cannot encrypt an empty value")

    try:
        aesgcm = AESGCM(key)
    except ValueError as e:
        raise CredentialError(f"Could not setup password encryption: {e}") from e

    nonce = os.urandom(NONCE_LENGTH)
    ciphertext = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
    return _b64encode(ciphertext), _b64encode(nonce)


def decrypt(ciphertext: str, nonce: str, key: bytes) -> str:
    """
    Decrypt a value produced by ``encrypt``.

    Args:
        ciphertext: Base64 encoded ciphertext including the GCM tag.
        nonce: Base64 encoded nonce used during encryption.
        key: 32-byte key, see ``derive_key``.

    Returns:
        The decrypted plaintext.

    Raises:
        DecryptionError: On malformed input, wrong key or nonce, or any
                         authentication failure.
    """
    try:
        data = _b64decode(ciphertext)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError("Could not decode the encrypted password") from e

    try:
        iv = _b64decode(nonce)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError("Could not decode the password salt") from e

    if len(iv) != NONCE_LENGTH:
        raise DecryptionError(
            f"Password salt has invalid length {len(iv)}, expected {NONCE_LENGTH}"
        )

    try:
        decrypted = AESGCM(key).decrypt(iv, data, None)
    except (InvalidTag, ValueError) as e:
        raise DecryptionError(
            "Could not decrypt password, wrong machine or corrupted data"
        ) from e

    try:
        return decrypted.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("Decrypted password is not valid UTF-8") from e


def store_credentials(
    mutator: Mutator,
    name: str,
    section: Section,
    username: str,
    password: str,
    key: bytes,
) -> None:
    """
    Store a remote's username and encrypted password.

    Writes the username, the ciphertext and its nonce as sibling keys of
    the named section instance. Must be called inside ``apply_changes``.
    """
    ciphertext, nonce = encrypt(password, key)
    mutator.named_set(name, section, USERNAME, username)
    mutator.named_set(name, section, PASSWORD, ciphertext)
    mutator.named_set(name, section, SALT, nonce)


def clear_credentials(mutator: Mutator, name: str, section: Section) -> None:
    """Remove a remote's stored credentials."""
    for cred_key in (USERNAME, PASSWORD, SALT):
        mutator.named_delete(name, section, cred_key)


def load_credentials(
    config: Configuration,
    name: str,
    section: Section,
    key: bytes,
) -> Credentials | None:
    """
    Load and decrypt a remote's credentials.

    Returns:
        Credentials, or None if no username or password is stored.

    Raises:
        DecryptionError: If a password is stored but its nonce is missing
                         or it cannot be decrypted with ``key``.
    """
    username = config.named_get(name, section, USERNAME)
    ciphertext = config.named_get(name, section, PASSWORD)
    if username is None or ciphertext is None:
        return None

    nonce = config.named_get(name, section, SALT)
    if nonce is None:
        raise DecryptionError(f"Password salt missing for remote '{name}'")

    logger.debug(f"Decrypting credentials of remote '{name}'")
    return Credentials(username=username, password=decrypt(ciphertext, nonce, key))


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(data: str) -> bytes:
    return base64.b64decode(data.encode("ascii"), validate=True)
