"""
Observable Model

An observable is either inline data (ip, domain, hash, free text...) or a
file streamed from a caller-owned reader. Both variants expose kind() and
describe(); the only place that branches on the variant is the multi-analyzer
dispatch step (split the file vs. share the inline value).
"""

from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any, BinaryIO, Dict, Optional, Union


class TLP(IntEnum):
    """Traffic Light Protocol, limits disclosure of the observable"""

    WHITE = 0  # Non-limited disclosure
    GREEN = 1  # Restricted to the community
    AMBER = 2  # Restricted to participants' organizations
    RED = 3  # Restricted to participants only


class PAP(IntEnum):
    """Permissible Actions Protocol, limits what analyzers may do with it"""

    WHITE = 0  # No restrictions
    GREEN = 1  # Active actions allowed (ping, block, honeypot)
    AMBER = 2  # Passive cross check with third-party services
    RED = 3  # Non-detectable actions only


@dataclass(frozen=True)
class Inline:
    """
    Inline observable.

    Immutable, so every concurrent analyzer task may share one instance.
    """

    data_type: str
    data: str
    tlp: TLP = TLP.AMBER
    pap: PAP = PAP.AMBER
    message: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None

    def kind(self) -> str:
        return self.data_type

    def describe(self) -> str:
        return self.data

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for POST /api/analyzer/{id}/run"""
        payload: Dict[str, Any] = {
            "data": self.data,
            "dataType": self.data_type,
            "tlp": int(self.tlp),
            "pap": int(self.pap),
        }
        if self.message:
            payload["message"] = self.message
        if self.parameters:
            payload["parameters"] = self.parameters
        return payload


@dataclass
class FileStream:
    """
    File observable backed by a byte reader.

    The caller owns the reader; the library reads it but never closes it.
    """

    reader: BinaryIO
    filename: str
    data_type: str = "file"
    tlp: TLP = TLP.AMBER
    pap: PAP = PAP.AMBER
    content_type: Optional[str] = field(default=None, compare=False)

    def kind(self) -> str:
        return self.data_type

    def describe(self) -> str:
        return self.filename

    def meta(self) -> Dict[str, Any]:
        """Attributes sent in the `_json` multipart field"""
        return {
            "dataType": self.data_type,
            "tlp": int(self.tlp),
            "pap": int(self.pap),
        }

    def with_reader(self, reader: BinaryIO) -> "FileStream":
        """Shallow copy sharing metadata, reading from a different stream"""
        return replace(self, reader=reader)


Observable = Union[Inline, FileStream]


def is_file(observable: Observable) -> bool:
    return isinstance(observable, FileStream)
