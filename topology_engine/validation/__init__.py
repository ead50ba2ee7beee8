"""
Validation Package
"""
from .validator import TopologyValidator
from .models import ValidationResult

__all__ = [
    "TopologyValidator",
    "ValidationResult",
]
