"""
Key validation for the two casserve namespaces.

Ref names:     [-.A-Za-z0-9]+, excluding "." and ".."
Content keys:  sha256-<64 lowercase hex chars>

Validation is pure syntax. Nothing here touches storage, and a key that
fails validation must never reach a store.
"""

import hashlib
import re

from .errors import InvalidKey

CONTENT_KEY_PREFIX = "sha256-"

_REF_KEY_RE = re.compile(r"[-.A-Za-z0-9]+")
_CONTENT_KEY_RE = re.compile(r"sha256-[0-9a-f]{64}")

# Names that match the character class but would address the storage
# directory itself or its parent.
_RESERVED_REF_KEYS = frozenset({".", ".."})


def validate_ref_key(name) -> bool:
    """Return True if ``name`` is a usable ref name."""
    if not isinstance(name, str):
        return False
    if name in _RESERVED_REF_KEYS:
        return False
    return _REF_KEY_RE.fullmatch(name) is not None


def validate_content_key(key) -> bool:
    """Return True if ``key`` has the exact form sha256-<64 lowercase hex>."""
    if not isinstance(key, str):
        return False
    return _CONTENT_KEY_RE.fullmatch(key) is not None


def require_ref_key(name) -> str:
    if not validate_ref_key(name):
        raise InvalidKey(name, kind="ref name")
    return name


def require_content_key(key) -> str:
    if not validate_content_key(key):
        raise InvalidKey(key, kind="content key")
    return key


def digest_of_key(key: str) -> str:
    """Return the hex digest encoded in a content key."""
    return require_content_key(key)[len(CONTENT_KEY_PREFIX):]


def content_key_for(data: bytes) -> str:
    """Compute the content key naming ``data``."""
    return CONTENT_KEY_PREFIX + hashlib.sha256(data).hexdigest()
