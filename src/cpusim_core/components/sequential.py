# src/cpusim_core/components/sequential.py
"""
Clocked parts: the general-purpose register and the program counter.

Both split their behaviour into a combinational phase that presents the stored
value on an output port, and a latch phase that updates the stored value at the
clock edge. The output therefore holds the pre-tick value for the whole tick.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from ..constants import mask_value
from ..layout.model import PortDir
from .base import ComponentDefinition, PhaseDef, ResetOptions, make_port, register_component
from .elements import IN_CTRL, IN_DATA, OUT_DATA


logger = logging.getLogger(__name__)


@dataclass
class RegData:
    value: int


@register_component("reg")
class Register(ComponentDefinition):
    """
    Stores `d` at the clock edge and presents it on `q`. With the `enable` arg a
    `we` port is added and the register only loads while `we` is high.
    """
    display_name = "Register"
    PORT_D, PORT_Q, PORT_WE = 0, 1, 2

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'width': None, 'enable': False, 'reset_value': 0}

    @classmethod
    def declare_ports(cls, args):
        width = cls.width_arg(args)
        ports = [make_port('d', IN_DATA, width), make_port('q', OUT_DATA, width)]
        if args.get('enable'):
            ports.append(make_port('we', IN_CTRL, 1))
        return ports

    @classmethod
    def declare_phases(cls, args):
        reads = ('d', 'we') if args.get('enable') else ('d',)
        return [
            PhaseDef('output', (), ('q',), cls.output),
            PhaseDef('commit', reads, (), cls.commit, is_latch=True),
        ]

    @classmethod
    def create_data(cls, args, options: ResetOptions, fqn):
        return RegData(value=options.register_values.get(fqn, cls.int_arg(args, 'reset_value')))

    @staticmethod
    def output(comp, run_args):
        comp.ports[Register.PORT_Q].value = comp.data.value

    @staticmethod
    def commit(comp, run_args):
        ports = comp.ports
        if len(ports) > Register.PORT_WE and not ports[Register.PORT_WE].value:
            return
        comp.data.value = mask_value(ports[Register.PORT_D].value, ports[Register.PORT_Q].width)


@dataclass
class PcData:
    value: int
    step: int = 4


@register_component("pc")
class ProgramCounter(ComponentDefinition):
    """
    Instruction fetch address. Each clock edge loads `branch_addr` when `branch`
    is high, and otherwise advances by the `step` arg (the instruction size).
    """
    display_name = "PC"
    PORT_BRANCH_ADDR, PORT_BRANCH, PORT_PC = 0, 1, 2

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'width': None, 'step': 4, 'reset_value': 0}

    @classmethod
    def declare_ports(cls, args):
        width = cls.width_arg(args)
        return [
            make_port('branch_addr', PortDir.IN | PortDir.ADDR, width),
            make_port('branch', IN_CTRL, 1),
            make_port('pc', PortDir.OUT | PortDir.ADDR, width),
        ]

    @classmethod
    def declare_phases(cls, args):
        cls.int_arg(args, 'step', minimum=0)
        return [
            PhaseDef('output', (), ('pc',), cls.output),
            PhaseDef('advance', ('branch_addr', 'branch'), (), cls.advance, is_latch=True),
        ]

    @classmethod
    def create_data(cls, args, options: ResetOptions, fqn):
        return PcData(
            value=options.register_values.get(fqn, cls.int_arg(args, 'reset_value')),
            step=cls.int_arg(args, 'step', minimum=0),
        )

    @staticmethod
    def output(comp, run_args):
        comp.ports[ProgramCounter.PORT_PC].value = comp.data.value

    @staticmethod
    def advance(comp, run_args):
        ports = comp.ports
        width = ports[ProgramCounter.PORT_PC].width
        if ports[ProgramCounter.PORT_BRANCH].value:
            comp.data.value = mask_value(ports[ProgramCounter.PORT_BRANCH_ADDR].value, width)
        else:
            comp.data.value = mask_value(comp.data.value + comp.data.step, width)
