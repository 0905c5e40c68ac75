# src/cpusim_core/validation/issues.py
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class ValidationIssueLevel(Enum):
    """Severity level of a validation issue."""
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"

    def __str__(self):
        return self.value


# Issue fields that locate the problem; repeated in `details` by `create_issue`.
_LOCATORS = (
    ('hierarchical_context', "Context"),
    ('component_fqn', "Component"),
    ('net_id', "Net"),
    ('tick', "Tick"),
)


@dataclass
class ValidationIssue:
    """
    One problem found while compiling or running a layout.

    Compile-time issues (structural and topological) and runtime diagnostics
    (bus contention, memory faults) share this type. `component_fqn` and
    `net_id` localize the issue to the element an editor should mark.
    """
    level: ValidationIssueLevel
    code: str
    message: str
    component_fqn: Optional[str] = None
    net_id: Optional[str] = None
    hierarchical_context: Optional[str] = None
    tick: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.level == ValidationIssueLevel.ERROR

    def __str__(self) -> str:
        parts = [f"[{self.level.name} - {self.code}]"]
        parts.extend(
            f"{label}: {getattr(self, name)}"
            for name, label in _LOCATORS if getattr(self, name) is not None
        )
        parts.append(f"Message: {self.message}")

        locator_names = {name for name, _ in _LOCATORS}
        extra = sorted((k, v) for k, v in self.details.items() if k not in locator_names)
        if extra:
            parts.append("Details: (" + ", ".join(f"{k}={v}" for k, v in extra) + ")")
        return " ".join(parts)


def create_issue(level: ValidationIssueLevel, code_enum, **kwargs) -> ValidationIssue:
    """Builds an issue from an `IssueCode`; keyword arguments fill the message template."""
    return ValidationIssue(
        level=level,
        code=code_enum.code,
        message=code_enum.format_message(**kwargs),
        component_fqn=kwargs.get('component_fqn'),
        net_id=kwargs.get('net_id'),
        hierarchical_context=kwargs.get('hierarchical_context'),
        tick=kwargs.get('tick'),
        details=kwargs,
    )
