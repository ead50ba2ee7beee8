"""
Analysis Finding Models
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class FindingType(str, Enum):
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"

    @property
    def severity_level(self) -> int:
        return {"Info": 1, "Warning": 2, "Error": 3}[self.value]


@dataclass
class AnalysisFinding:
    type: FindingType
    message: str
    severity_level: int
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "message": self.message,
            "severity_level": self.severity_level,
            "recommendations": list(self.recommendations),
        }


@dataclass
class AnalysisResult:
    """Findings ranked highest severity first."""
    findings: List[AnalysisFinding] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        counts = {t.value: 0 for t in FindingType}
        for finding in self.findings:
            counts[finding.type.value] += 1
        counts["total"] = len(self.findings)
        return counts

    @property
    def has_errors(self) -> bool:
        return any(f.type == FindingType.ERROR for f in self.findings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "findings": [f.to_dict() for f in self.findings],
            "summary": self.summary,
        }
