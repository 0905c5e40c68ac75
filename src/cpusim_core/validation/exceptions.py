# src/cpusim_core/validation/exceptions.py
"""
Defines the diagnosable exception raised when a compiled layout carries
error-level issues and the caller asked for a strict build.
"""
from typing import List

from .issues import ValidationIssue, ValidationIssueLevel

from ..errors import DiagnosableError, format_diagnostic_report


class CompilationError(DiagnosableError):
    """
    Container for every error-level `ValidationIssue` found while compiling a layout.
    Warnings and info messages passed to the constructor are dropped.
    """
    def __init__(self, issues: List[ValidationIssue]):
        self.issues: List[ValidationIssue] = [
            issue for issue in issues if issue.level == ValidationIssueLevel.ERROR
        ]
        if not self.issues:
            summary_message = "CompilationError was raised with no error-level issues."
        else:
            summary_message = (
                f"Compilation failed with {len(self.issues)} error(s):\n"
                + "\n".join(f"  - {issue}" for issue in self.issues)
            )
        super().__init__(summary_message)

    def get_diagnostic_report(self) -> str:
        error_lines = [str(issue) for issue in self.issues]
        details = (
            f"One or more structural or topological errors were found in the layout.\n"
            f"Found {len(self.issues)} error(s). See details below:\n\n"
            + "\n".join(f"  - {line}" for line in error_lines)
        )

        # The first error is the most useful anchor for an editor marker.
        first_issue = self.issues[0] if self.issues else None
        context = {}
        if first_issue:
            context['fqn'] = first_issue.component_fqn or first_issue.net_id or first_issue.hierarchical_context or 'Multiple'

        error_type = "Layout Compilation Error"
        if any(issue.code == "SCHED_COMB_LOOP" for issue in self.issues):
            error_type = "Combinational Loop"

        return format_diagnostic_report(
            error_type=error_type,
            details=details,
            suggestion="Fix the listed wiring problems. Break combinational loops by inserting a register (latched component) into the feedback path.",
            context=context
        )
