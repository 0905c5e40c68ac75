# src/cpusim_core/components/subcircuit.py
"""
Hierarchical parts.

A `subcircuit` embeds a complete nested layout, carried in its `layout` arg as a
persisted layout document. The nested layout exposes its boundary through
`port_in` and `port_out` parts: each `port_in` becomes an input port of the
subcircuit, each `port_out` an output port, named by their `name` arg.

The compiler compiles the nested layout into its own `ExeSystem`. From the parent's
point of view the whole nested step list is one combinational phase that reads
every boundary input and writes every boundary output, plus one latch phase that
commits the nested latch steps. Outside a subcircuit, `port_in` and `port_out`
serve as the circuit's own input and output pins.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..layout.exceptions import BaseParsingError
from ..layout.model import CpuLayout
from ..layout.serialization import LayoutSerializer
from ..execution.engine import run_execution_steps, run_latch_steps
from .base import ComponentDefinition, PhaseDef, ResetOptions, make_port, register_component
from .elements import IN_DATA, OUT_DATA
from .exceptions import ComponentDefinitionError, ComponentRuntimeError


logger = logging.getLogger(__name__)


# --- Boundary ports ---

@dataclass
class PortInData:
    value: int = 0


@register_component("port_in")
class PortIn(ComponentDefinition):
    """
    An input pin. Inside a subcircuit the parent copies the matching boundary
    input into `value` each tick; at top level it is set like an `input`.
    """
    display_name = "Port In"
    PORT_OUT = 0

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'name': 'in', 'width': None}

    @classmethod
    def declare_ports(cls, args):
        return [make_port('out', OUT_DATA, cls.width_arg(args), name=str(args.get('name')))]

    @classmethod
    def declare_phases(cls, args):
        return [PhaseDef('drive', (), ('out',), cls.drive)]

    @classmethod
    def create_data(cls, args, options: ResetOptions, fqn):
        return PortInData(value=options.register_values.get(fqn, 0))

    @staticmethod
    def drive(comp, run_args):
        comp.ports[PortIn.PORT_OUT].value = comp.data.value


@register_component("port_out")
class PortOut(ComponentDefinition):
    """An output pin. Its single reader port holds the value of the net it sits on."""
    display_name = "Port Out"
    PORT_IN = 0

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'name': 'out', 'width': None}

    @classmethod
    def declare_ports(cls, args):
        return [make_port('in', IN_DATA, cls.width_arg(args), name=str(args.get('name')))]

    @classmethod
    def declare_phases(cls, args):
        return []


# --- Subcircuit ---

@dataclass
class SubcircuitData:
    """
    Boundary wiring of a subcircuit instance: `(parent port index, inner component
    id)` pairs for every input and output.
    """
    inputs: List[Tuple[int, str]] = field(default_factory=list)
    outputs: List[Tuple[int, str]] = field(default_factory=list)


def _boundary_name(comp) -> str:
    args = comp.args or {}
    return str(args.get('name', comp.id))


@register_component("subcircuit")
class Subcircuit(ComponentDefinition):
    """A nested layout used as a single part."""
    display_name = "Subcircuit"

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'layout': {}}

    @classmethod
    def sub_layout(cls, args) -> Optional[CpuLayout]:
        document = args.get('layout')
        if not isinstance(document, dict):
            raise ComponentDefinitionError(def_id=cls.def_id, details="Argument 'layout' must be a layout document (mapping).")
        try:
            return LayoutSerializer().from_dict(document)
        except BaseParsingError as e:
            raise ComponentDefinitionError(
                def_id=cls.def_id, details=f"Nested layout document is invalid: {e.get_diagnostic_report()}"
            ) from e

    @classmethod
    def boundary(cls, args) -> Tuple[List[Tuple[str, Any]], List[Tuple[str, Any]]]:
        """The `(port id, inner comp)` pairs of the nested layout's inputs and outputs, in declaration order."""
        layout = cls.sub_layout(args)
        inputs = [(_boundary_name(c), c) for c in layout.comps if c.def_id == PortIn.def_id]
        outputs = [(_boundary_name(c), c) for c in layout.comps if c.def_id == PortOut.def_id]
        names = [name for name, _ in inputs + outputs]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ComponentDefinitionError(
                def_id=cls.def_id, details=f"Nested layout declares boundary port name(s) {duplicates} more than once."
            )
        return inputs, outputs

    @classmethod
    def declare_ports(cls, args):
        inputs, outputs = cls.boundary(args)
        ports = [make_port(name, IN_DATA, PortIn.width_arg(c.args or {})) for name, c in inputs]
        ports.extend(make_port(name, OUT_DATA, PortOut.width_arg(c.args or {})) for name, c in outputs)
        return ports

    @classmethod
    def declare_phases(cls, args):
        inputs, outputs = cls.boundary(args)
        return [
            PhaseDef('eval', tuple(n for n, _ in inputs), tuple(n for n, _ in outputs), cls.evaluate),
            PhaseDef('commit', (), (), cls.commit, is_latch=True),
        ]

    @classmethod
    def create_data(cls, args, options, fqn):
        inputs, outputs = cls.boundary(args)
        return SubcircuitData(
            inputs=[(idx, c.id) for idx, (_, c) in enumerate(inputs)],
            outputs=[(len(inputs) + idx, c.id) for idx, (_, c) in enumerate(outputs)],
        )

    @staticmethod
    def _require_sub_system(comp, phase_name: str):
        if comp.sub_system is None:
            raise ComponentRuntimeError(
                component_fqn=comp.fqn, phase_name=phase_name, details="The nested layout was not compiled."
            )
        return comp.sub_system

    @staticmethod
    def evaluate(comp, run_args):
        sub = Subcircuit._require_sub_system(comp, 'eval')
        for port_idx, inner_id in comp.data.inputs:
            sub.find_comp(inner_id).data.value = comp.ports[port_idx].value
        run_execution_steps(sub)
        for port_idx, inner_id in comp.data.outputs:
            comp.ports[port_idx].value = sub.find_comp(inner_id).ports[PortOut.PORT_IN].value

    @staticmethod
    def commit(comp, run_args):
        sub = Subcircuit._require_sub_system(comp, 'commit')
        run_latch_steps(sub)
        sub.tick_count += 1
