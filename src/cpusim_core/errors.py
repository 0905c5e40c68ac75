# src/cpusim_core/errors.py
import logging
from typing import Any, Dict, Protocol, abstractmethod
from typing import runtime_checkable

logger = logging.getLogger(__name__)

# --- User-Facing Exception Hierarchy ---

class CpuSimError(Exception):
    """Base class for the pre-formatted errors raised at the package boundary."""
    pass

class CircuitBuildError(CpuSimError):
    """A layout could not be loaded or compiled. The message is a diagnostic report."""
    pass

class SimulationRunError(CpuSimError):
    """
    Running a compiled system failed in a way that cannot be recorded as a per-tick
    diagnostic. The message is a diagnostic report.
    """
    pass


class FrameworkLogicError(RuntimeError):
    """An internal precondition was violated. Points at a bug in CPUSim Core, not in a layout."""
    pass


# --- Diagnostic Protocol & Base Exception ---

@runtime_checkable
class Diagnosable(Protocol):
    """Anything that can describe itself as an actionable, multi-line report."""
    def get_diagnostic_report(self) -> str:
        ...

class DiagnosableError(Exception, Diagnosable):
    """
    Base class of the internal exceptions that the facades (`compile_layout`,
    `run_simulation`) turn into user-facing errors. Subclasses cannot be
    instantiated without a `get_diagnostic_report` implementation.
    """
    @abstractmethod
    def get_diagnostic_report(self) -> str:
        raise NotImplementedError


# --- Stateless Formatting Utility ---

# Context keys shown in the report header, in display order.
_CONTEXT_LABELS = (
    ('fqn', "Component"),
    ('net', "Net"),
    ('region', "Memory Region"),
    ('address', "Address"),
    ('tick', "Tick"),
    ('source_file', "Source File"),
    ('user_input', "User Input"),
)

_REPORT_TITLE = " CPUSim Core: Actionable Diagnostic Report "
_REPORT_WIDTH = 72


def format_diagnostic_report(
    error_type: str,
    details: str,
    suggestion: str,
    context: Dict[str, Any]
) -> str:
    """
    Formats the multi-line report carried by every user-facing error.

    Args:
        error_type: Category of the error, e.g. "Combinational Loop".
        details: What went wrong. May span several lines.
        suggestion: How to fix it. Omitted from the report when empty.
        context: Optional header values; see `_CONTEXT_LABELS` for the known keys.
                 Missing or None values are skipped, unknown keys are ignored.
    """
    lines = ["\n", _REPORT_TITLE.center(_REPORT_WIDTH, "="), f"{'Error Type:':<16}{error_type}"]
    for key, label in _CONTEXT_LABELS:
        value = context.get(key)
        if value is None or value == "":
            continue
        lines.append(f"{label + ':':<16}{value}")

    sections = [("Details", details)]
    if suggestion:
        sections.append(("Suggestion", suggestion))
    for title, text in sections:
        lines.append(f"\n{title}:")
        lines.extend(f"  {line}" for line in text.splitlines())

    lines.append("=" * _REPORT_WIDTH)
    return "\n".join(lines)
