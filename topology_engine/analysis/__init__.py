"""
Analysis Package
"""
from .pattern_analyzer import PatternAnalyzer
from .models import AnalysisFinding, AnalysisResult, FindingType

__all__ = [
    "PatternAnalyzer",
    "AnalysisFinding",
    "AnalysisResult",
    "FindingType",
]
