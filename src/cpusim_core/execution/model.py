# src/cpusim_core/execution/model.py
# Required for forward references in type hints (e.g., 'ExeSystem')
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from ..constants import NO_INDEX, FLOATING_NET_VALUE
from ..layout.model import Comp, PortDir
from ..validation.issues import ValidationIssue, ValidationIssueLevel

logger = logging.getLogger(__name__)

# Use TYPE_CHECKING to avoid circular imports for type hints at runtime.
if TYPE_CHECKING:
    from ..components.base import CompLibrary, ResetOptions


@dataclass
class ExeRunArgs:
    """
    Run-wide control flags. One instance per top-level system, shared by reference
    with every nested sub-system and handed to every phase call.
    """
    halt: bool = False
    halt_on_error: bool = False


@dataclass
class ExePort:
    """
    The runtime state of one component port.

    For drivers `io_enabled` decides whether the port currently drives its net.
    For readers it is only a display hint that the value is being ignored
    (e.g. the inactive inputs of a mux).
    """
    port_idx: int
    id: str
    width: int
    type: PortDir
    net_idx: int = NO_INDEX
    io_enabled: bool = True
    value: int = FLOATING_NET_VALUE

    @property
    def is_connected(self) -> bool:
        return self.net_idx != NO_INDEX


PhaseFunc = Callable[["ExeComp", ExeRunArgs], None]


@dataclass
class ExePhase:
    """A compiled phase: port ids translated to indices into `ExeComp.ports`."""
    name: str
    read_port_idxs: List[int]
    write_port_idxs: List[int]
    func: PhaseFunc
    is_latch: bool = False


@dataclass
class ExeComp:
    """A compiled component instance. `data` is the payload typed by its definition."""
    comp: Comp
    fqn: str
    ports: List[ExePort] = field(default_factory=list)
    data: Any = None
    phases: List[ExePhase] = field(default_factory=list)
    valid: bool = True
    sub_system: Optional[ExeSystem] = None

    @property
    def id(self) -> str:
        return self.comp.id

    @property
    def def_id(self) -> str:
        return self.comp.def_id

    def port_index(self, port_id: str) -> int:
        for port in self.ports:
            if port.id == port_id:
                return port.port_idx
        return NO_INDEX

    def port(self, port_id: str) -> Optional[ExePort]:
        idx = self.port_index(port_id)
        return self.ports[idx] if idx != NO_INDEX else None


@dataclass
class ExePortRef:
    """
    A reference from a net to a component port. `exe_port` is a cached handle to the
    port object; it is None (and `valid` False) when the reference did not resolve.
    """
    comp_idx: int
    port_idx: int
    exe_port: Optional[ExePort] = None
    valid: bool = True
    label: str = ""


@dataclass
class ExeNet:
    """
    The runtime aggregate of one or more joined wire graphs.

    `inputs` are the ports that drive the net, `outputs` the ports that read it.
    `type` is the OR of the semantic flags (DATA/ADDR/CTRL) of every attached port.
    """
    wire_ids: List[str]
    inputs: List[ExePortRef] = field(default_factory=list)
    outputs: List[ExePortRef] = field(default_factory=list)
    unresolved: List[ExePortRef] = field(default_factory=list)
    tristate: bool = False
    width: int = 0
    type: PortDir = PortDir.NONE
    value: int = FLOATING_NET_VALUE
    enabled_count: int = 0
    valid: bool = True

    @property
    def id(self) -> str:
        return self.wire_ids[0] if self.wire_ids else ""


@dataclass(frozen=True)
class ExeStep:
    """One scheduled unit: either a net resolution or a component phase."""
    comp_idx: int = NO_INDEX
    phase_idx: int = NO_INDEX
    net_idx: int = NO_INDEX

    @property
    def is_net(self) -> bool:
        return self.net_idx != NO_INDEX

    @classmethod
    def for_net(cls, net_idx: int) -> "ExeStep":
        return cls(net_idx=net_idx)

    @classmethod
    def for_phase(cls, comp_idx: int, phase_idx: int) -> "ExeStep":
        return cls(comp_idx=comp_idx, phase_idx=phase_idx)


@dataclass(frozen=True)
class ExeSystemLookup:
    """
    Bidirectional id <-> index tables, built once per compilation and never
    patched. Edits to the layout are followed by a recompilation.
    """
    comp_id_to_idx: Dict[str, int]
    wire_id_to_net_idx: Dict[str, int]
    comp_idx_to_id: List[str]
    net_idx_to_wire_ids: List[List[str]]


@dataclass
class ExeSystem:
    """
    A compiled, runnable circuit. Indices held by steps, nets and port refs are
    valid for the lifetime of this object only.
    """
    hierarchical_id: str
    comps: List[ExeComp]
    nets: List[ExeNet]
    execution_steps: List[ExeStep]
    latch_steps: List[ExeStep]
    lookup: ExeSystemLookup
    run_args: ExeRunArgs
    comp_library: Optional[CompLibrary] = None
    # Payload options the system was compiled with; reused by a reset without options.
    reset_options: Optional[ResetOptions] = None
    issues: List[ValidationIssue] = field(default_factory=list)
    diagnostics: List[ValidationIssue] = field(default_factory=list)
    tick_count: int = 0

    def find_comp(self, comp_id: str) -> Optional[ExeComp]:
        idx = self.lookup.comp_id_to_idx.get(comp_id)
        return self.comps[idx] if idx is not None else None

    def find_net(self, wire_id: str) -> Optional[ExeNet]:
        idx = self.lookup.wire_id_to_net_idx.get(wire_id)
        return self.nets[idx] if idx is not None else None

    def port_value(self, comp_id: str, port_id: str) -> int:
        """Current value of a port. Raises KeyError for unknown components or ports."""
        comp = self.find_comp(comp_id)
        port = comp.port(port_id) if comp else None
        if port is None:
            raise KeyError(f"No port '{port_id}' on component '{comp_id}' in '{self.hierarchical_id}'.")
        return port.value

    @property
    def has_errors(self) -> bool:
        return any(issue.level == ValidationIssueLevel.ERROR for issue in self.issues)

    def sub_systems(self) -> List[ExeSystem]:
        return [c.sub_system for c in self.comps if c.sub_system is not None]

    def all_diagnostics(self) -> List[ValidationIssue]:
        """Runtime diagnostics of this system and, recursively, every sub-system."""
        result = list(self.diagnostics)
        for sub in self.sub_systems():
            result.extend(sub.all_diagnostics())
        return result
