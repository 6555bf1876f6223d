"""
Opaque identifier types.

District, provider and segment identifiers are all strings on the wire, but are
kept as distinct NewTypes so they cannot be swapped silently in typed code.
Values are interned: the same code seen in thousands of signal rows shares one
string object.
"""
from __future__ import annotations

import re
import sys
from typing import NewType

DistrictId = NewType("DistrictId", str)
ProviderId = NewType("ProviderId", str)
SegmentKey = NewType("SegmentKey", str)

_WHITESPACE = re.compile(r"\s+")


def normalize_district_code(raw: str) -> str:
    """Trim, upper-case and drop internal whitespace ("ab1 2" -> "AB12")."""
    return _WHITESPACE.sub("", raw.strip().upper())


def district_id(raw: str) -> DistrictId:
    if not isinstance(raw, str):
        raise TypeError(f"district id must be a string, got {type(raw).__name__}")
    code = normalize_district_code(raw)
    if not code:
        raise ValueError("district id must not be empty")
    return DistrictId(sys.intern(code))


def provider_id(raw: str) -> ProviderId:
    if not isinstance(raw, str):
        raise TypeError(f"provider id must be a string, got {type(raw).__name__}")
    code = raw.strip()
    if not code:
        raise ValueError("provider id must not be empty")
    return ProviderId(sys.intern(code))


def segment_key(raw: str) -> SegmentKey:
    if not isinstance(raw, str):
        raise TypeError(f"segment key must be a string, got {type(raw).__name__}")
    key = raw.strip()
    if not key:
        raise ValueError("segment key must not be empty")
    return SegmentKey(sys.intern(key))
