"""
Crypto adapters for encrypting stored session payloads.

A crypto adapter is anything with two coroutine methods,
``encrypt(plaintext) -> ciphertext`` and ``decrypt(ciphertext) -> plaintext``,
both operating on ``str``. The store encrypts after serialization and
decrypts before unserialization, so adapters never see session objects.

Two adapters ship with the package:

- create_aes_gcm_adapter: PBKDF2-SHA256 derived key with AES-GCM (or
  AES-CBC), output is ``iv || ciphertext`` in base64 / base64url / hex.
- create_secret_adapter: the legacy inline ``secret`` scheme, an
  HMAC-protected JSON envelope around AES-GCM ciphertext.
"""

import base64
import binascii
import hashlib
import hmac
import json
import os
from typing import Optional, Protocol, Union, runtime_checkable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from mongo_session_store.errors.exceptions import (
    SessionStoreError,
    decryption_failed,
    encryption_failed,
)

DEFAULT_SALT = b"mongo-session-store:aes-default-salt"
DEFAULT_ITERATIONS = 310000
SUPPORTED_ENCODINGS = ("base64", "base64url", "hex")

SecretType = Union[str, bytes, bytearray, memoryview]


@runtime_checkable
class CryptoAdapter(Protocol):
    """Capability interface for payload encryption."""

    async def encrypt(self, plaintext: str) -> str:
        ...

    async def decrypt(self, ciphertext: str) -> str:
        ...


def _to_bytes(value: SecretType) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError("Unsupported secret type for crypto adapter")


def encode_bytes(data: bytes, encoding: str) -> str:
    """Encode raw bytes as text using one of the supported encodings."""
    if encoding == "hex":
        return data.hex()
    if encoding == "base64url":
        return base64.urlsafe_b64encode(data).decode("ascii")
    return base64.b64encode(data).decode("ascii")


def decode_bytes(payload: str, encoding: str) -> bytes:
    """Inverse of encode_bytes; raises ValueError on malformed input."""
    try:
        if encoding == "hex":
            return bytes.fromhex(payload)
        if encoding == "base64url":
            return base64.urlsafe_b64decode(payload.encode("ascii"))
        return base64.b64decode(payload.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Malformed {encoding} payload") from e


def _hash_algorithm(name: str) -> hashes.HashAlgorithm:
    algorithm = getattr(hashes, name.upper(), None)
    if algorithm is None:
        raise ValueError(f"Unsupported hashing algorithm: {name}")
    return algorithm()


class AesAdapter:
    """
    AES adapter with a PBKDF2-derived 256-bit key.

    AES-GCM is authenticated; AES-CBC is offered for interoperability only
    and relies on PKCS7 padding errors to detect a wrong key.
    """

    def __init__(
        self,
        key: bytes,
        algorithm: str = "AES-GCM",
        iv_length: Optional[int] = None,
        encoding: str = "base64"
    ):
        self._key = key
        self.algorithm = algorithm
        self.iv_length = iv_length or (12 if algorithm == "AES-GCM" else 16)
        self.encoding = encoding

    def _seal(self, iv: bytes, data: bytes) -> bytes:
        if self.algorithm == "AES-GCM":
            return AESGCM(self._key).encrypt(iv, data, None)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(data) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def _open(self, iv: bytes, data: bytes) -> bytes:
        if self.algorithm == "AES-GCM":
            return AESGCM(self._key).decrypt(iv, data, None)
        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(data) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return unpadder.update(padded) + unpadder.finalize()

    async def encrypt(self, plaintext: str) -> str:
        try:
            iv = os.urandom(self.iv_length)
            sealed = self._seal(iv, plaintext.encode("utf-8"))
        except Exception as e:
            raise encryption_failed(f"Unable to encrypt session: {e}") from e
        return encode_bytes(iv + sealed, self.encoding)

    async def decrypt(self, ciphertext: str) -> str:
        try:
            combined = decode_bytes(ciphertext, self.encoding)
            if len(combined) <= self.iv_length:
                raise ValueError("Ciphertext is too short")
            iv, data = combined[:self.iv_length], combined[self.iv_length:]
            return self._open(iv, data).decode("utf-8")
        except InvalidTag as e:
            raise decryption_failed("Unable to decrypt session: authentication failed") from e
        except Exception as e:
            raise decryption_failed(f"Unable to decrypt session: {e}") from e


def create_aes_gcm_adapter(
    secret: SecretType,
    *,
    iv_length: Optional[int] = None,
    encoding: str = "base64",
    algorithm: str = "AES-GCM",
    salt: Optional[SecretType] = None,
    iterations: int = DEFAULT_ITERATIONS
) -> AesAdapter:
    """
    Create an AES adapter keyed from a secret via PBKDF2-HMAC-SHA256.

    Args:
        secret: Secret passphrase or key material
        iv_length: IV size in bytes (12 for GCM, 16 for CBC by default)
        encoding: Text encoding of the output, base64, base64url or hex
        algorithm: "AES-GCM" or "AES-CBC"
        salt: PBKDF2 salt, a fixed package salt by default
        iterations: PBKDF2 iteration count

    Returns:
        An adapter satisfying the CryptoAdapter protocol

    Raises:
        ValueError: If the secret is empty or an option is unsupported
    """
    if not secret:
        raise ValueError("create_aes_gcm_adapter requires a secret")
    if algorithm not in ("AES-GCM", "AES-CBC"):
        raise ValueError(f"Unsupported algorithm: {algorithm}")
    if encoding not in SUPPORTED_ENCODINGS:
        raise ValueError(f"Unsupported encoding: {encoding}")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_to_bytes(salt) if salt is not None else DEFAULT_SALT,
        iterations=iterations,
    )
    key = kdf.derive(_to_bytes(secret))
    return AesAdapter(key, algorithm=algorithm, iv_length=iv_length, encoding=encoding)


class SecretAdapter:
    """
    Legacy inline-secret scheme.

    The ciphertext is a JSON envelope ``{hmac, ct, at, aad, iv}``. The HMAC
    over ``ct`` is verified in constant time before any decryption is
    attempted; a wrong secret and a modified envelope both fail there.
    """

    def __init__(
        self,
        secret: str,
        hashing: str = "sha512",
        encodeas: str = "base64",
        key_size: int = 32,
        iv_size: int = 16
    ):
        self.hashing = hashing
        self.encodeas = encodeas
        self.iv_size = iv_size
        self._key = self._derive_key(secret, key_size)

    def _derive_key(self, secret: str, key_size: int) -> bytes:
        secret_bytes = _to_bytes(secret)
        salt = hashlib.new(self.hashing, secret_bytes).digest()[:16]
        kdf = PBKDF2HMAC(
            algorithm=_hash_algorithm(self.hashing),
            length=key_size,
            salt=salt,
            iterations=10000,
        )
        return kdf.derive(secret_bytes)

    def _digest(self, key: bytes, data: bytes) -> str:
        return encode_bytes(hmac.new(key, data, self.hashing).digest(), self.encodeas)

    async def encrypt(self, plaintext: str) -> str:
        try:
            data = plaintext.encode("utf-8")
            iv = os.urandom(self.iv_size)
            aad = self._digest(iv + self._key, data)
            sealed = AESGCM(self._key).encrypt(iv, data, aad.encode("ascii"))
            ct, at = sealed[:-16], sealed[-16:]
            encoded_ct = encode_bytes(ct, self.encodeas)
            envelope = {
                "hmac": self._digest(self._key, encoded_ct.encode("ascii")),
                "ct": encoded_ct,
                "at": encode_bytes(at, self.encodeas),
                "aad": aad,
                "iv": encode_bytes(iv, self.encodeas),
            }
        except Exception as e:
            raise encryption_failed(f"Unable to encrypt session: {e}") from e
        return json.dumps(envelope)

    async def decrypt(self, ciphertext: str) -> str:
        try:
            envelope = json.loads(ciphertext)
            expected = self._digest(self._key, envelope["ct"].encode("ascii"))
        except Exception as e:
            raise decryption_failed(f"Malformed encrypted session: {e}") from e

        if not hmac.compare_digest(expected, str(envelope.get("hmac", ""))):
            raise decryption_failed("Encrypted session was tampered with!")

        try:
            sealed = (
                decode_bytes(envelope["ct"], self.encodeas)
                + decode_bytes(envelope["at"], self.encodeas)
            )
            iv = decode_bytes(envelope["iv"], self.encodeas)
            data = AESGCM(self._key).decrypt(iv, sealed, envelope["aad"].encode("ascii"))
            return data.decode("utf-8")
        except SessionStoreError:
            raise
        except Exception as e:
            raise decryption_failed(f"Unable to decrypt session: {e}") from e


def create_secret_adapter(
    secret: str,
    *,
    algorithm: str = "aes-256-gcm",
    hashing: str = "sha512",
    encodeas: str = "base64",
    key_size: int = 32,
    iv_size: int = 16,
    at_size: int = 16
) -> SecretAdapter:
    """
    Create the legacy inline-secret adapter.

    Args:
        secret: Shared secret; must be non-empty
        algorithm: AES-GCM variant name; the key size must match it
        hashing: Digest used for key derivation and HMACs
        encodeas: Text encoding of envelope fields, base64 or hex
        key_size: Key size in bytes (16, 24 or 32)
        iv_size: IV size in bytes
        at_size: Authentication tag size; only 16 is supported

    Returns:
        An adapter satisfying the CryptoAdapter protocol

    Raises:
        ValueError: If the secret is empty or an option is unsupported
    """
    if not secret:
        raise ValueError("create_secret_adapter requires a non-empty secret")
    expected_algorithm = f"aes-{key_size * 8}-gcm"
    if algorithm.lower() != expected_algorithm:
        raise ValueError(
            f"Unsupported algorithm {algorithm!r} for key_size={key_size}; "
            f"expected {expected_algorithm!r}"
        )
    if at_size != 16:
        raise ValueError("Only 16-byte authentication tags are supported")
    if encodeas not in ("base64", "hex"):
        raise ValueError(f"Unsupported encoding: {encodeas}")
    _hash_algorithm(hashing)

    return SecretAdapter(
        secret,
        hashing=hashing,
        encodeas=encodeas,
        key_size=key_size,
        iv_size=iv_size,
    )
