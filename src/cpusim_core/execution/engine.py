# src/cpusim_core/execution/engine.py

"""
Defines the tick loop that advances a compiled `ExeSystem`.

A tick has two halves. The execution steps (net resolutions and combinational
phases, in compiled order) settle every net for the tick; the latch steps then
commit component state, modelling the clock edge. Latch effects become visible
only when the next tick's execution steps run.

The step functions are stateless and operate on the system passed to them; the
`ExecutionEngine` adds the cursor that makes a tick pausable after any single
execution step and at the boundary before latching.
"""
import logging
from typing import Optional, TYPE_CHECKING

from ..constants import FLOATING_NET_VALUE, mask_value
from ..errors import DiagnosableError, FrameworkLogicError
from ..validation.issues import ValidationIssueLevel, create_issue
from ..validation.issue_codes import IssueCode
from .model import ExeStep, ExeSystem

if TYPE_CHECKING:
    from ..components.base import ResetOptions

logger = logging.getLogger(__name__)


def record_diagnostic(system: ExeSystem, level: ValidationIssueLevel, code_enum: IssueCode, **kwargs):
    """Attaches a runtime diagnostic to `system` for the current tick."""
    kwargs.setdefault('hierarchical_context', system.hierarchical_id)
    kwargs.setdefault('tick', system.tick_count)
    issue = create_issue(level, code_enum, **kwargs)
    system.diagnostics.append(issue)
    logger.warning(str(issue))
    if level == ValidationIssueLevel.ERROR and system.run_args.halt_on_error:
        system.run_args.halt = True


def run_net_step(system: ExeSystem, net_idx: int):
    """
    Resolves one net from its currently enabled drivers and fans the value out.

    Zero enabled drivers leave the net floating, one gives its value, two or more
    is bus contention: a diagnostic is recorded and the net floats for this tick.
    """
    net = system.nets[net_idx]
    if not net.valid:
        return

    enabled = [ref for ref in net.inputs if ref.valid and ref.exe_port.io_enabled]
    net.enabled_count = len(enabled)

    if net.enabled_count == 1:
        value = mask_value(enabled[0].exe_port.value, net.width)
    else:
        value = FLOATING_NET_VALUE
        if net.enabled_count > 1:
            drivers = [f"{system.comps[ref.comp_idx].fqn}.{ref.exe_port.id}" for ref in enabled]
            record_diagnostic(
                system, ValidationIssueLevel.ERROR, IssueCode.RUN_BUS_CONTENTION,
                net_id=net.id, enabled_count=net.enabled_count, drivers=drivers
            )
    net.value = value

    for ref in net.outputs:
        if ref.valid:
            ref.exe_port.value = mask_value(value, ref.exe_port.width)


def run_phase_step(system: ExeSystem, comp_idx: int, phase_idx: int):
    """
    Invokes one component phase. A diagnosable failure is recorded against the
    component and every declared write port is set to the floating value.
    """
    comp = system.comps[comp_idx]
    if not comp.valid:
        return
    phase = comp.phases[phase_idx]
    try:
        phase.func(comp, system.run_args)
    except DiagnosableError as e:
        record_diagnostic(
            system, ValidationIssueLevel.ERROR, IssueCode.RUN_COMP_FAULT,
            component_fqn=comp.fqn, phase_name=phase.name, error=str(e)
        )
        for idx in phase.write_port_idxs:
            comp.ports[idx].value = FLOATING_NET_VALUE
        return

    for idx in phase.write_port_idxs:
        port = comp.ports[idx]
        port.value = mask_value(port.value, port.width)


def run_step(system: ExeSystem, step: ExeStep):
    if step.is_net:
        run_net_step(system, step.net_idx)
    else:
        run_phase_step(system, step.comp_idx, step.phase_idx)


def run_execution_steps(system: ExeSystem):
    for step in system.execution_steps:
        run_step(system, step)


def run_latch_steps(system: ExeSystem):
    for step in system.latch_steps:
        run_phase_step(system, step.comp_idx, step.phase_idx)


def reset_system(system: ExeSystem, options: Optional["ResetOptions"] = None):
    """
    Returns `system` to its initial state: payloads re-created by the component
    library, ports and nets zeroed, diagnostics and tick count cleared.
    Recurses into sub-systems.

    Without `options` the options the system was compiled with are used, so parts
    stay attached to the memory map they were compiled against. Invalid components
    keep their payload.
    """
    library = system.comp_library
    if library is None:
        raise FrameworkLogicError(f"ExeSystem '{system.hierarchical_id}' has no component library to reset from.")
    if options is None:
        options = system.reset_options

    for comp in system.comps:
        if comp.valid and library.has_definition(comp.def_id):
            comp.data = library.reset(comp, options)
        for port in comp.ports:
            port.value = FLOATING_NET_VALUE
            port.io_enabled = not port.type.is_tristate
        if comp.sub_system is not None:
            reset_system(comp.sub_system, options)

    for net in system.nets:
        net.value = FLOATING_NET_VALUE
        net.enabled_count = 0

    system.diagnostics.clear()
    system.tick_count = 0


class ExecutionEngine:
    """
    Drives one top-level `ExeSystem` tick by tick.

    The engine owns a cursor into the execution steps. `step_once` advances it by
    one step, `settle` runs it to the latch boundary and `latch` commits state and
    rewinds it. `tick` and `run` compose these and respect the halt flag.
    """

    def __init__(self, system: ExeSystem):
        self.system: ExeSystem = system
        self._cursor: int = 0
        logger.debug(f"ExecutionEngine initialized for '{system.hierarchical_id}' "
                     f"({len(system.execution_steps)} execution steps, {len(system.latch_steps)} latch steps).")

    @property
    def cursor(self) -> int:
        """Index of the next execution step to run."""
        return self._cursor

    @property
    def at_latch_boundary(self) -> bool:
        """True once every execution step of the current tick has run."""
        return self._cursor >= len(self.system.execution_steps)

    @property
    def tick_count(self) -> int:
        return self.system.tick_count

    @property
    def halted(self) -> bool:
        return self.system.run_args.halt

    def halt(self):
        self.system.run_args.halt = True

    def resume(self):
        self.system.run_args.halt = False

    def step_once(self) -> bool:
        """Runs exactly one execution step. Returns False at the latch boundary."""
        if self.at_latch_boundary:
            return False
        run_step(self.system, self.system.execution_steps[self._cursor])
        self._cursor += 1
        return True

    def settle(self):
        """Runs the remaining execution steps of the tick and stops before latching."""
        steps = self.system.execution_steps
        while self._cursor < len(steps):
            run_step(self.system, steps[self._cursor])
            self._cursor += 1

    def rewind(self):
        """
        Abandons the partial tick so the next `settle` re-evaluates every execution
        step. Latched state is untouched.
        """
        self._cursor = 0

    def latch(self):
        """
        Completes the execution steps if needed, applies the latch steps and starts
        the next tick.
        """
        self.settle()
        run_latch_steps(self.system)
        self.system.tick_count += 1
        self._cursor = 0
        logger.debug(f"'{self.system.hierarchical_id}' latched tick {self.system.tick_count - 1}.")

    def tick(self, force: bool = False) -> bool:
        """
        Completes one tick, resuming a partially stepped one. While halted nothing
        happens and False is returned, unless `force` is set.
        """
        if self.system.run_args.halt and not force:
            return False
        self.latch()
        return True

    def step(self) -> bool:
        """Single-steps one tick; honoured even while halted."""
        return self.tick(force=True)

    def run(self, max_ticks: int) -> int:
        """Ticks until the halt flag is set or `max_ticks` ticks have run. Returns ticks run."""
        if max_ticks < 0:
            raise ValueError(f"max_ticks must be non-negative, got {max_ticks}.")
        ticks = 0
        while ticks < max_ticks and self.tick():
            ticks += 1
        logger.info(f"'{self.system.hierarchical_id}' ran {ticks} tick(s); tick count is now {self.system.tick_count}"
                    f"{' (halted)' if self.system.run_args.halt else ''}.")
        return ticks

    def reset(self, options: Optional["ResetOptions"] = None):
        reset_system(self.system, options)
        self._cursor = 0
        logger.info(f"'{self.system.hierarchical_id}' reset.")
