# src/cpusim_core/components/elements.py
"""
This module provides the combinational, "leaf-level" parts of the library:
constants and user inputs, multiplexers, tristate buffers, the ALU and the
instruction-field splitter.
"""

import logging
import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List

from ..constants import MAX_PORT_WIDTH, mask_value
from ..layout.model import CompPort, PortDir
from .base import ComponentDefinition, PhaseDef, ResetOptions, make_port, register_component
from .exceptions import ComponentDefinitionError, ComponentRuntimeError


logger = logging.getLogger(__name__)

IN_DATA = PortDir.IN | PortDir.DATA
IN_CTRL = PortDir.IN | PortDir.CTRL
OUT_DATA = PortDir.OUT | PortDir.DATA


def to_signed(value: int, width: int) -> int:
    """Interprets the low `width` bits of `value` as a two's complement number."""
    value = mask_value(value, width)
    return value - (1 << width) if value & (1 << (width - 1)) else value


def select_bits(count: int) -> int:
    """Width of a select port that can address `count` inputs."""
    return max(1, (count - 1).bit_length())


# --- Constant source ---

@dataclass
class ConstData:
    value: int


@register_component("const")
class Const(ComponentDefinition):
    """Drives a fixed value."""
    display_name = "Const"
    PORT_OUT = 0

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'value': 0, 'width': None}

    @classmethod
    def declare_ports(cls, args):
        return [make_port('out', OUT_DATA, cls.width_arg(args))]

    @classmethod
    def declare_phases(cls, args):
        return [PhaseDef('drive', (), ('out',), cls.drive)]

    @classmethod
    def create_data(cls, args, options, fqn):
        return ConstData(value=cls.int_arg(args, 'value'))

    @staticmethod
    def drive(comp, run_args):
        comp.ports[Const.PORT_OUT].value = comp.data.value


# --- User-settable input ---

@dataclass
class InputData:
    value: int
    enabled: bool = True


@register_component("input")
class Input(ComponentDefinition):
    """
    A value set from outside the circuit (a switch, a test bench). With
    `tristate` its output only drives the net while `enabled` is set.
    """
    display_name = "Input"
    PORT_OUT = 0

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'value': 0, 'width': None, 'tristate': False, 'enabled': True}

    @classmethod
    def declare_ports(cls, args):
        port_type = PortDir.OUT_TRI | PortDir.DATA if args.get('tristate') else OUT_DATA
        return [make_port('out', port_type, cls.width_arg(args))]

    @classmethod
    def declare_phases(cls, args):
        return [PhaseDef('drive', (), ('out',), cls.drive)]

    @classmethod
    def create_data(cls, args, options: ResetOptions, fqn):
        value = options.register_values.get(fqn, cls.int_arg(args, 'value'))
        return InputData(value=value, enabled=bool(args.get('enabled', True)))

    @staticmethod
    def drive(comp, run_args):
        out = comp.ports[Input.PORT_OUT]
        out.value = comp.data.value
        if out.type.is_tristate:
            out.io_enabled = comp.data.enabled


# --- Multiplexer ---

@register_component("mux")
class Mux(ComponentDefinition):
    """
    N-way multiplexer. Ports are `in0`..`in{n-1}`, then `sel`, then `out`. Inputs
    that are not selected are flagged with `io_enabled = False` for display.
    """
    display_name = "Mux"

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'inputs': 2, 'width': None}

    @classmethod
    def declare_ports(cls, args):
        n = cls.int_arg(args, 'inputs', minimum=2)
        width = cls.width_arg(args)
        ports = [make_port(f'in{i}', IN_DATA, width) for i in range(n)]
        ports.append(make_port('sel', IN_CTRL, select_bits(n)))
        ports.append(make_port('out', OUT_DATA, width))
        return ports

    @classmethod
    def declare_phases(cls, args):
        n = cls.int_arg(args, 'inputs', minimum=2)
        reads = tuple(f'in{i}' for i in range(n)) + ('sel',)
        return [PhaseDef('select', reads, ('out',), cls.select)]

    @staticmethod
    def select(comp, run_args):
        n = len(comp.ports) - 2
        sel = comp.ports[n].value
        if sel >= n:
            raise ComponentRuntimeError(
                component_fqn=comp.fqn, phase_name='select',
                details=f"Select value {sel} addresses no input of a {n}-way mux."
            )
        for i in range(n):
            comp.ports[i].io_enabled = i == sel
        comp.ports[n + 1].value = comp.ports[sel].value


# --- Tristate buffer ---

@register_component("tribuf")
class TriBuf(ComponentDefinition):
    """Passes `in` to a tristate `out` while `en` is high."""
    display_name = "Tristate Buffer"
    PORT_IN, PORT_EN, PORT_OUT = 0, 1, 2

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'width': None}

    @classmethod
    def declare_ports(cls, args):
        width = cls.width_arg(args)
        return [
            make_port('in', IN_DATA, width),
            make_port('en', IN_CTRL, 1),
            make_port('out', PortDir.OUT_TRI | PortDir.DATA, width),
        ]

    @classmethod
    def declare_phases(cls, args):
        return [PhaseDef('drive', ('in', 'en'), ('out',), cls.drive)]

    @staticmethod
    def drive(comp, run_args):
        out = comp.ports[TriBuf.PORT_OUT]
        out.io_enabled = bool(comp.ports[TriBuf.PORT_EN].value)
        out.value = comp.ports[TriBuf.PORT_IN].value


# --- ALU ---

class AluOp(IntEnum):
    ADD = 0
    SUB = 1
    AND = 2
    OR = 3
    XOR = 4
    SHL = 5
    SHR = 6
    SRA = 7
    SLT = 8
    SLTU = 9
    PASS_A = 10
    PASS_B = 11


ALU_OP_WIDTH = 4


@register_component("alu")
class Alu(ComponentDefinition):
    """
    Two-operand ALU. `op` selects an `AluOp`; `zero` is high when the result is 0.
    Shift amounts are taken modulo the operand width.
    """
    display_name = "ALU"
    PORT_A, PORT_B, PORT_OP, PORT_RESULT, PORT_ZERO = 0, 1, 2, 3, 4

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'width': None}

    @classmethod
    def declare_ports(cls, args):
        width = cls.width_arg(args)
        return [
            make_port('a', IN_DATA, width),
            make_port('b', IN_DATA, width),
            make_port('op', IN_CTRL, ALU_OP_WIDTH),
            make_port('result', OUT_DATA, width),
            make_port('zero', PortDir.OUT | PortDir.CTRL, 1),
        ]

    @classmethod
    def declare_phases(cls, args):
        return [PhaseDef('compute', ('a', 'b', 'op'), ('result', 'zero'), cls.compute)]

    @staticmethod
    def evaluate(op: int, a: int, b: int, width: int) -> int:
        shift = b % width
        if op == AluOp.ADD:
            result = a + b
        elif op == AluOp.SUB:
            result = a - b
        elif op == AluOp.AND:
            result = a & b
        elif op == AluOp.OR:
            result = a | b
        elif op == AluOp.XOR:
            result = a ^ b
        elif op == AluOp.SHL:
            result = a << shift
        elif op == AluOp.SHR:
            result = a >> shift
        elif op == AluOp.SRA:
            result = to_signed(a, width) >> shift
        elif op == AluOp.SLT:
            result = int(to_signed(a, width) < to_signed(b, width))
        elif op == AluOp.SLTU:
            result = int(a < b)
        elif op == AluOp.PASS_A:
            result = a
        elif op == AluOp.PASS_B:
            result = b
        else:
            raise ValueError(op)
        return mask_value(result, width)

    @staticmethod
    def compute(comp, run_args):
        ports = comp.ports
        result_port = ports[Alu.PORT_RESULT]
        op = ports[Alu.PORT_OP].value
        try:
            value = Alu.evaluate(op, ports[Alu.PORT_A].value, ports[Alu.PORT_B].value, result_port.width)
        except ValueError:
            raise ComponentRuntimeError(
                component_fqn=comp.fqn, phase_name='compute', details=f"Unknown ALU operation {op}."
            ) from None
        result_port.value = value
        ports[Alu.PORT_ZERO].value = int(value == 0)


# --- Instruction field splitter ---

FIELD_NAME_RE = re.compile(r'^[a-zA-Z0-9_]+$')


@dataclass(frozen=True)
class SplitField:
    name: str
    lo: int
    width: int
    out_width: int
    signed: bool = False


@dataclass
class SplitterData:
    fields: List[SplitField]


@register_component("splitter")
class Splitter(ComponentDefinition):
    """
    Decodes bit fields out of a word, e.g. opcode, register numbers and
    immediates out of an instruction. Each entry of the `fields` arg is
    `{name, lo, width}` with optional `out_width` and `signed` (sign-extend the
    field to `out_width`).
    """
    display_name = "Splitter"
    PORT_IN = 0

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'width': None, 'fields': [{'name': 'lo', 'lo': 0, 'width': 16}, {'name': 'hi', 'lo': 16, 'width': 16}]}

    @classmethod
    def parse_fields(cls, args) -> List[SplitField]:
        raw_fields = args.get('fields')
        if not isinstance(raw_fields, list) or not raw_fields:
            raise ComponentDefinitionError(def_id=cls.def_id, details="Argument 'fields' must be a non-empty list.")
        fields = []
        for raw in raw_fields:
            try:
                name = str(raw['name'])
                lo, width = int(raw['lo']), int(raw['width'])
                out_width = int(raw.get('out_width', width))
                signed = bool(raw.get('signed', False))
            except (KeyError, TypeError, ValueError) as e:
                raise ComponentDefinitionError(def_id=cls.def_id, details=f"Malformed field {raw!r}: {e}") from e
            if not FIELD_NAME_RE.match(name) or name == 'in':
                raise ComponentDefinitionError(def_id=cls.def_id, details=f"Invalid field name '{name}'.")
            if lo < 0 or width < 1 or lo + width > MAX_PORT_WIDTH or not width <= out_width <= MAX_PORT_WIDTH:
                raise ComponentDefinitionError(
                    def_id=cls.def_id, details=f"Field '{name}' (lo={lo}, width={width}, out_width={out_width}) is out of range."
                )
            fields.append(SplitField(name=name, lo=lo, width=width, out_width=out_width, signed=signed))
        names = [f.name for f in fields]
        if len(set(names)) != len(names):
            raise ComponentDefinitionError(def_id=cls.def_id, details=f"Duplicate field names in {names}.")
        return fields

    @classmethod
    def declare_ports(cls, args) -> List[CompPort]:
        ports = [make_port('in', IN_DATA, cls.width_arg(args))]
        ports.extend(make_port(f.name, OUT_DATA, f.out_width) for f in cls.parse_fields(args))
        return ports

    @classmethod
    def declare_phases(cls, args):
        writes = tuple(f.name for f in cls.parse_fields(args))
        return [PhaseDef('split', ('in',), writes, cls.split)]

    @classmethod
    def create_data(cls, args, options, fqn):
        return SplitterData(fields=cls.parse_fields(args))

    @staticmethod
    def split(comp, run_args):
        word = comp.ports[Splitter.PORT_IN].value
        for offset, f in enumerate(comp.data.fields, start=1):
            value = (word >> f.lo) & ((1 << f.width) - 1)
            if f.signed:
                value = to_signed(value, f.width)
            comp.ports[offset].value = mask_value(value, f.out_width)
