"""
Artifact Extraction

Finds observables (ips, domains, hashes, urls...) inside a report body.

The pattern table is built once at import and exposed read-only.
"""

import json
import re
from types import MappingProxyType
from typing import Any, List, Mapping, Pattern

from ..models.job import Artifact

_DOMAIN = r"[a-zA-Z0-9_][a-zA-Z0-9_-]{0,62}(?:\.[a-zA-Z][a-zA-Z]{0,62})+"
_HEX4 = r"[0-9A-Fa-f]{1,4}"

_IPV6 = (
    r"(?<![0-9A-Fa-f:])(?:"
    rf"(?:{_HEX4}:){{7}}{_HEX4}"
    rf"|(?:{_HEX4}:){{1,6}}:{_HEX4}"
    rf"|(?:{_HEX4}:){{1,5}}(?::{_HEX4}){{1,2}}"
    rf"|(?:{_HEX4}:){{1,4}}(?::{_HEX4}){{1,3}}"
    rf"|(?:{_HEX4}:){{1,3}}(?::{_HEX4}){{1,4}}"
    rf"|(?:{_HEX4}:){{1,2}}(?::{_HEX4}){{1,5}}"
    rf"|{_HEX4}:(?::{_HEX4}){{1,6}}"
    rf"|(?:{_HEX4}:){{1,7}}:"
    rf"|:(?::{_HEX4}){{1,7}}"
    r")(?![0-9A-Fa-f:])"
)

_USER_AGENT = (
    r"Mozilla/[0-9]\.[0-9] \((?:[A-Za-z0-9 /._]+;){1,3} (?:[A-Za-z0-9 /.:_]+){0,2}\)"
    r"(?: [A-Za-z0-9 /.]+ \(KHTML, like Gecko\))? (?:[A-Za-z0-9/.]+ ?){2,3}"
)

_CREDIT_CARD = (
    r"\b(?:4[0-9]{12}(?:[0-9]{3})?|5[1-5][0-9]{14}|6(?:011|5[0-9][0-9])[0-9]{12}"
    r"|3[47][0-9]{13}|3(?:0[0-5]|[68][0-9])[0-9]{11}|(?:2131|1800|35\d{3})\d{11})\b"
)

# Order matters: when two patterns yield the same value, the first one wins.
PATTERNS: Mapping[str, Pattern] = MappingProxyType({
    "url": re.compile(r"\b(?:https?|ftp)://[^\s\"'<>\\]+"),
    "email": re.compile(r"[a-zA-Z0-9._%+-]+@" + _DOMAIN),
    "ipv4": re.compile(
        r"\b(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
        r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\b"
    ),
    "ipv6": re.compile(_IPV6),
    "hash": re.compile(r"\b(?:[0-9a-fA-F]{64}|[0-9a-fA-F]{40}|[0-9a-fA-F]{32})\b"),
    "registry": re.compile(r"(?:HKEY|HKLM|HKCU|HKCR|HKCC)[\\a-zA-Z0-9_]+"),
    "user-agent": re.compile(_USER_AGENT),
    "bitcoin-address": re.compile(r"\b[13][a-km-zA-HJ-NP-Z1-9]{25,34}\b"),
    "cc": re.compile(_CREDIT_CARD),
    "domain": re.compile(r"\b" + _DOMAIN + r"\b"),
})


def extract_artifacts(body: str) -> List[Artifact]:
    """
    Extract every known artifact type from a string.

    Each distinct value is reported once, with the type of the first
    pattern that matched it.
    """
    artifacts: List[Artifact] = []
    seen = set()

    for data_type, pattern in PATTERNS.items():
        for match in pattern.finditer(body):
            value = match.group(0).rstrip(".")
            if not value or value in seen:
                continue
            seen.add(value)
            artifacts.append(Artifact(data_type=data_type, data=value))

    return artifacts


def extract_from_report(full: Any) -> List[Artifact]:
    """Extract artifacts from a decoded full report (dict, list or string)"""
    if isinstance(full, str):
        return extract_artifacts(full)
    return extract_artifacts(json.dumps(full, ensure_ascii=False))
