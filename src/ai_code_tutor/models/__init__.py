"""Data models and transfer objects."""

from .compilation import Classification, CompilationResult, RunRequest, TierFailure
from .diagnostic import Diagnostic, ErrorCategory, Severity
from .explanation import EducationalContent, Explanation
from .history import RunRecord
from .mistake import MistakeRecord
from .patch import Patch, PatchResult, PatchSpec
from .source import SourceDocument

__all__ = [
    # Source
    "SourceDocument",
    # Diagnostics
    "Severity",
    "ErrorCategory",
    "Diagnostic",
    # Compilation
    "Classification",
    "RunRequest",
    "CompilationResult",
    "TierFailure",
    # Patching
    "Patch",
    "PatchSpec",
    "PatchResult",
    # Persistence
    "MistakeRecord",
    "RunRecord",
    # Explanations
    "EducationalContent",
    "Explanation",
]
