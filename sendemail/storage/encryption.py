"""
Symmetric encryption helpers for account credentials.

Account files may store the SMTP password as a Fernet token
(``auth.pass_encrypted``) instead of plain text. The key comes from the
SENDEMAIL_SECRET_KEY environment variable or, failing that, a key file.
"""
import os
from pathlib import Path
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken

from sendemail import config
from sendemail.utils.errors import DecryptionError


def _get_or_create_key(key_file: Optional[Path] = None) -> bytes:
    """
    Get the encryption key, generating and storing a new one if missing.

    Args:
        key_file: Key file location. Defaults to config.SECRET_KEY_FILE.

    Returns:
        The encryption key as bytes.
    """
    if config.SECRET_KEY:
        return config.SECRET_KEY.encode("utf-8")

    key_file = Path(key_file) if key_file else config.SECRET_KEY_FILE
    key_file.parent.mkdir(parents=True, exist_ok=True)

    if key_file.exists():
        key = key_file.read_bytes().strip()
        try:
            Fernet(key)
            return key
        except (ValueError, TypeError):
            # Corrupted key file; replace it below
            pass

    key = Fernet.generate_key()
    key_file.write_bytes(key)

    try:
        os.chmod(key_file, 0o600)
    except OSError:
        pass

    return key


def _get_cipher(key: Optional[Union[str, bytes]] = None) -> Fernet:
    if key is None:
        key = _get_or_create_key()
    if isinstance(key, str):
        key = key.encode("utf-8")
    try:
        return Fernet(key)
    except (ValueError, TypeError) as e:
        raise DecryptionError(
            "Invalid encryption key",
            [str(e)],
            "SENDEMAIL_SECRET_KEY must be a url-safe base64 Fernet key."
        ) from e


def encrypt_text(text: str, key: Optional[Union[str, bytes]] = None) -> str:
    """
    Encrypt a text string (e.g. an SMTP password).

    Args:
        text: The text to encrypt.
        key: Optional explicit key. Defaults to the configured key.

    Returns:
        The Fernet token as a string, suitable for ``auth.pass_encrypted``.

    Raises:
        ValueError: If text is empty.
    """
    if not text:
        raise ValueError("Cannot encrypt empty text")

    return _get_cipher(key).encrypt(text.encode("utf-8")).decode("ascii")


def decrypt_text(token: Union[str, bytes], key: Optional[Union[str, bytes]] = None) -> str:
    """
    Decrypt a Fernet token back to text.

    Args:
        token: The encrypted token.
        key: Optional explicit key. Defaults to the configured key.

    Returns:
        Decrypted text.

    Raises:
        DecryptionError: If decryption fails (corrupted data, wrong key, etc.).
    """
    if not token:
        raise DecryptionError("Cannot decrypt empty data")

    if isinstance(token, str):
        token = token.encode("ascii")

    try:
        data = _get_cipher(key).decrypt(token)
    except InvalidToken as e:
        raise DecryptionError(
            "Decryption failed: invalid or corrupted data",
            suggestion="Re-encrypt the password with the current SENDEMAIL_SECRET_KEY."
        ) from e

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError(f"Decrypted data is not valid UTF-8: {str(e)}") from e
