"""
Content identifiers for policy rows.

A row's primary key is derived from its content, so rows can be targeted
by update and delete without a surrogate key kept anywhere else.
"""

import hashlib
from typing import Callable, Sequence

from .models import MAX_VALUES

# Maps the bytes of the joined rule content to a hex digest
Hasher = Callable[[bytes], str]


def blake2b_128(data: bytes) -> str:
    """128-bit BLAKE2b digest as 32 lowercase hex characters."""
    return hashlib.blake2b(data, digest_size=16).hexdigest()


def content_bytes(ptype: str, values: Sequence[str]) -> bytes:
    """Bytes that identify a rule: ``ptype`` and all six value slots joined by commas."""
    slots = list(values) + [""] * (MAX_VALUES - len(values))
    return ",".join([ptype, *slots]).encode("utf-8")


def policy_id(ptype: str, values: Sequence[str], hasher: Hasher = blake2b_128) -> str:
    """Compute the content identifier of a rule.

    The values are hashed in their fixed-width row form: unused slots are
    empty strings, so a rule and the same rule with trailing empty values
    share one id, the same one a row loaded back from storage computes.
    Interior empty strings stay part of the content.
    """
    return hasher(content_bytes(ptype, values))
