"""
storage/crypto.py

Fernet encryption for the clinical notes attached to each case
(symptoms, findings, imaging details).

The key comes from LAKBAY_DATA_KEY, a URL-safe base64 32-byte key as
produced by ``Fernet.generate_key()``.  Without it an in-memory key is
generated per process and a warning is logged: notes written under that key
cannot be read after a restart.

Public API
----------
seal_notes(notes: dict) -> str
open_notes(token: str) -> dict
"""

import json
import logging
import os
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

_ENV_KEY_NAME = "LAKBAY_DATA_KEY"


@lru_cache(maxsize=1)
def _get_fernet() -> Fernet:
    """Return the process-wide Fernet instance (cached)."""
    raw_key = os.environ.get(_ENV_KEY_NAME)

    if raw_key:
        logger.debug("Notes key loaded from '%s'.", _ENV_KEY_NAME)
        return Fernet(raw_key.encode("utf-8"))

    logger.warning(
        "%s is not set; clinical notes are encrypted with a temporary key "
        "and will NOT be readable after this process exits.",
        _ENV_KEY_NAME,
    )
    return Fernet(Fernet.generate_key())


def seal_notes(notes: dict) -> str:
    """
    Serialize *notes* to JSON and encrypt it.

    Returns:
        Fernet token as a UTF-8 string, stored as TEXT in SQLite.
    """
    plaintext = json.dumps(notes, ensure_ascii=False, default=str).encode("utf-8")
    return _get_fernet().encrypt(plaintext).decode("utf-8")


def open_notes(token: str) -> dict:
    """
    Decrypt a token produced by :func:`seal_notes`.

    Raises:
        cryptography.fernet.InvalidToken: wrong key or corrupted token.
    """
    try:
        plaintext = _get_fernet().decrypt(token.encode("utf-8"))
    except InvalidToken:
        logger.error("Could not decrypt case notes: wrong key or corrupted token.")
        raise

    return json.loads(plaintext.decode("utf-8"))
