"""
Analyzer Model

Descriptor of a remote analyzer as returned by the analyzer catalog.
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class AnalyzerDescriptor:
    """A Cortex analyzer (immutable, fetched once per run)"""

    id: str
    name: str
    data_types: Tuple[str, ...] = ()

    description: str = ""
    version: str = ""
    author: str = ""
    license: str = ""
    url: str = ""
    base_config: str = ""
    definition_id: str = ""

    # Remote-side rate limit (informational only)
    rate: Optional[int] = None
    rate_unit: Optional[str] = None

    def accepts(self, data_type: str) -> bool:
        return data_type in self.data_types

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "dataTypeList": list(self.data_types),
            "description": self.description,
            "version": self.version,
            "author": self.author,
            "license": self.license,
            "url": self.url,
            "baseConfig": self.base_config,
            "analyzerDefinitionId": self.definition_id,
            "rate": self.rate,
            "rateUnit": self.rate_unit,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AnalyzerDescriptor":
        """Create AnalyzerDescriptor from Cortex JSON"""
        return cls(
            id=data.get("id") or data.get("_id", ""),
            name=data.get("name", ""),
            data_types=tuple(data.get("dataTypeList") or ()),
            description=data.get("description") or "",
            version=data.get("version") or "",
            author=data.get("author") or "",
            license=data.get("license") or "",
            url=data.get("url") or "",
            base_config=data.get("baseConfig") or "",
            definition_id=data.get("analyzerDefinitionId") or "",
            rate=data.get("rate"),
            rate_unit=data.get("rateUnit"),
        )
