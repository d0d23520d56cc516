"""Content hash helpers shared by ecosystem analyzers."""
from __future__ import annotations

import base64
import binascii
import hashlib
from typing import Optional, Sequence, Union

from bom.models import BomHash
from constants import Constants


def format_hash(algorithm: str, digest: Union[bytes, str]) -> BomHash:
    """Return an algorithm-tagged, lower-cased digest.

    Args:
        algorithm: Digest algorithm name (e.g. "sha256")
        digest: Raw digest bytes or an already hex-encoded string
    """
    content = digest.hex() if isinstance(digest, bytes) else digest
    return BomHash(algorithm=algorithm.strip().lower(), content=content.strip().lower())


def parse_tagged_hash(text: Optional[str]) -> Optional[BomHash]:
    """Parse ``alg:hex`` (poetry.lock style) into a BomHash."""
    if not text or ":" not in text:
        return None
    algorithm, _, content = text.partition(":")
    if not algorithm or not content:
        return None
    return format_hash(algorithm, content)


def combine_file_hashes(file_hashes: Sequence[Optional[str]]) -> Optional[BomHash]:
    """Hash the concatenation of per-file hash strings, in the given order.

    Packages ship a varying number of files, so one digest is derived from all
    of them. Returns None if there are no files or any file lacks a hash.
    """
    if not file_hashes or any(not h for h in file_hashes):
        return None
    combined = "".join(file_hashes)  # type: ignore[arg-type]
    digest = hashlib.new(Constants.DEFAULT_HASH_ALGORITHM, combined.encode("utf-8")).digest()
    return format_hash(Constants.DEFAULT_HASH_ALGORITHM, digest)


def decode_base64_digest(algorithm: str, encoded: Optional[str]) -> Optional[BomHash]:
    """Decode a base64 digest (NuGet contentHash) into a BomHash."""
    if not encoded:
        return None
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        return None
    return format_hash(algorithm, raw)


def parse_integrity(integrity: Optional[str]) -> Optional[BomHash]:
    """Decode a Subresource Integrity value (``sha512-<base64>``).

    When several digests are listed the first one is used.
    """
    if not integrity:
        return None
    first = integrity.split()[0]
    algorithm, sep, encoded = first.partition("-")
    if not sep:
        return None
    return decode_base64_digest(algorithm, encoded)
