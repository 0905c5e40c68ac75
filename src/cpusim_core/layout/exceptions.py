# src/cpusim_core/layout/exceptions.py
"""
Defines custom, diagnosable exceptions for loading and saving layout documents.

`ParsingError` covers file-level and YAML syntax problems; `SchemaValidationError`
covers documents that load but do not match the layout schema. Both derive from
`DiagnosableError`, so the facades can wrap them into a `CircuitBuildError`.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from ..errors import DiagnosableError, format_diagnostic_report


class BaseParsingError(DiagnosableError):
    """A local base class for all layout document errors."""
    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Generic Layout Document Error",
            details=str(self),
            suggestion="Please check the format and content of the layout document.",
            context={}
        )


@dataclass(frozen=True)
class ParsingError(BaseParsingError):
    """
    Raised for file-system problems or YAML that cannot be loaded at all.
    """
    details: str
    file_path: Optional[Path] = None

    def __str__(self):
        where = f"file '{self.file_path}'" if self.file_path else "layout document"
        return f"Parsing error in {where}: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="YAML Parsing or File Error",
            details=self.details,
            suggestion="Ensure the file exists, has the correct read permissions, and contains valid YAML syntax.",
            context={'source_file': self.file_path}
        )


@dataclass(frozen=True)
class SchemaValidationError(BaseParsingError):
    """
    Raised when a layout document is valid YAML but does not conform to the layout
    schema (missing keys, invalid identifiers, duplicate ids, unknown port flags).
    """
    errors: Dict[str, Any]
    file_path: Optional[Path] = None

    def _error_lines(self):
        return [
            f"  - Field '{k}': {v[0] if isinstance(v, list) and v else v}"
            for k, v in sorted(self.errors.items(), key=lambda item: str(item[0]))
        ]

    def __str__(self):
        where = f"file '{self.file_path}'" if self.file_path else "layout document"
        return f"Layout schema validation failed for {where}:\n" + "\n".join(self._error_lines())

    def get_diagnostic_report(self) -> str:
        details = (
            "The structure of the layout document does not conform to the required schema.\n"
            f"See details for {len(self.errors)} issue(s) below:\n\n" + "\n".join(self._error_lines())
        )
        return format_diagnostic_report(
            error_type="Layout Schema Validation Error",
            details=details,
            suggestion="Correct the specified fields. Check for invalid identifiers, duplicate component or wire ids, and unknown port direction flags.",
            context={'source_file': self.file_path}
        )
