"""
Error taxonomy for the analytics engine and its data layer.

Every error carries a category and a severity so callers can log
and alert on them uniformly:
- ComputationError: column/type mismatches, arithmetic failures
- StateError: store and index disagree
- ValidationError: a record failed range checks before ingestion
- ConfigurationError: bad settings file or values

Degenerate statistical input (too few regression points, a zero
time span) is NOT an error. Processors fall back to defaults.
"""

from enum import Enum
from typing import Optional


class ErrorSeverity(Enum):
    """Severity levels for monitoring and alerting."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class QuakeWatchError(Exception):
    """Base class for all QuakeWatch errors."""
    
    category: str = "internal"
    severity: ErrorSeverity = ErrorSeverity.CRITICAL
    recoverable: bool = False
    
    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(self._format())
    
    def _format(self) -> str:
        if self.context:
            return f"[{self.context}] {self.message}"
        return self.message
    
    @property
    def is_recoverable(self) -> bool:
        """Whether retrying the operation can succeed."""
        return self.recoverable
    
    def to_dict(self) -> dict:
        """Convert to dictionary for structured logging."""
        return {
            "category": self.category,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "message": self.message,
            "context": self.context,
        }


class ComputationError(QuakeWatchError):
    """
    Raised when a recompute, column extraction, or store replacement fails.
    
    The original pandas/numpy exception is chained as __cause__.
    """
    category = "analytics"
    severity = ErrorSeverity.MEDIUM


class StateError(QuakeWatchError):
    """Raised when the store and the event index disagree, or the table lock is misused."""
    category = "state"
    severity = ErrorSeverity.HIGH
    recoverable = True


class ValidationError(QuakeWatchError):
    """Raised when a record fails range or identity checks."""
    category = "validation"
    severity = ErrorSeverity.LOW
    
    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}", context="validation")


class ConfigurationError(QuakeWatchError):
    """Raised for unreadable settings or out-of-range values."""
    category = "configuration"
    severity = ErrorSeverity.HIGH
