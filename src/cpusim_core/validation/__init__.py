# src/cpusim_core/validation/__init__.py
import logging
logger = logging.getLogger(__name__)

from .issues import ValidationIssue, ValidationIssueLevel, create_issue
from .issue_codes import IssueCode
from .layout_validator import LayoutValidator
from .exceptions import CompilationError

__all__ = [
    "ValidationIssue",
    "ValidationIssueLevel",
    "create_issue",
    "IssueCode",
    "LayoutValidator",
    "CompilationError",
]
