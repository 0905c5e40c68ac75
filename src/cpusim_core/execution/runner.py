# src/cpusim_core/execution/runner.py
"""
Provides the public entry point for running a compiled execution system.

`run_simulation` is a thin facade over `ExecutionEngine`: it applies the run
configuration, drives the engine and packages the outcome as a
`SimulationResult`. Any diagnosable failure on the way is re-raised as a single,
user-facing `SimulationRunError`.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from ..errors import SimulationRunError, DiagnosableError, format_diagnostic_report
from ..validation.exceptions import CompilationError
from ..validation.issues import ValidationIssue
from .config import RunConfig, parse_run_config
from .engine import ExecutionEngine
from .model import ExeSystem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationResult:
    """
    The outcome of one `run_simulation` call.

    Attributes:
        ticks_run: Ticks completed by this call.
        tick_count: The system's tick count after the call.
        halted: Whether the run stopped on the halt flag rather than the tick limit.
        diagnostics: Runtime diagnostics of the whole hierarchy, oldest first.
    """
    ticks_run: int
    tick_count: int
    halted: bool
    diagnostics: Tuple[ValidationIssue, ...]

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self.diagnostics)


def run_simulation(
    system: ExeSystem,
    max_ticks: Optional[int] = None,
    config: Optional[Union[RunConfig, Dict[str, Any]]] = None,
    engine: Optional[ExecutionEngine] = None,
    strict: bool = False,
) -> SimulationResult:
    """
    Runs `system` for up to `max_ticks` ticks or until it halts.

    Args:
        system: A compiled execution system, as produced by `compile_layout`.
        max_ticks: Tick limit. Overrides `config.max_ticks` when given.
        config: A `RunConfig` or a raw dictionary accepted by `parse_run_config`.
        engine: An existing engine for `system`, to continue a partially stepped
                tick. A new engine is created when omitted.
        strict: Refuse a system that carries any error-level compile issue. By
                default such issues stay local: invalid components and nets are
                left out of the step order and the rest of the circuit runs.

    Raises:
        SimulationRunError: A user-friendly, diagnosable error if `strict` is set and
                            the system has compile errors, the configuration is
                            invalid, or the run fails unexpectedly.
    """
    try:
        if system.has_errors:
            if strict:
                raise CompilationError(system.issues)
            logger.warning(f"'{system.hierarchical_id}' has compile errors; running the components that compiled.")

        run_config = config if isinstance(config, RunConfig) else parse_run_config(config)
        ticks_limit = run_config.max_ticks if max_ticks is None else max_ticks
        system.run_args.halt_on_error = run_config.halt_on_error

        if engine is None:
            engine = ExecutionEngine(system)
        elif engine.system is not system:
            raise ValueError("The supplied engine drives a different execution system.")

        logger.info(f"--- Starting run of '{system.hierarchical_id}' for up to {ticks_limit} tick(s) ---")
        ticks_run = engine.run(ticks_limit)
        diagnostics: List[ValidationIssue] = system.all_diagnostics()
        if diagnostics:
            logger.warning(f"Run of '{system.hierarchical_id}' produced {len(diagnostics)} runtime diagnostic(s).")

        return SimulationResult(
            ticks_run=ticks_run,
            tick_count=system.tick_count,
            halted=system.run_args.halt,
            diagnostics=tuple(diagnostics),
        )

    except DiagnosableError as e:
        logger.error(f"A diagnosable error occurred during simulation: {e}")
        raise SimulationRunError(e.get_diagnostic_report()) from e

    except Exception as e:
        logger.critical(f"An unexpected internal error occurred during simulation: {e}", exc_info=True)
        report = format_diagnostic_report(
            error_type=f"An Unexpected Simulation Error Occurred ({type(e).__name__})",
            details=f"The simulator encountered an unexpected internal error: {e}",
            suggestion="This may be a bug or an invalid argument. Review the traceback and the run configuration.",
            context={'fqn': system.hierarchical_id}
        )
        raise SimulationRunError(report) from e
