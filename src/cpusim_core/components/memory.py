# src/cpusim_core/components/memory.py
"""
Memory-mapped parts: ROM, RAM and the load/store unit.

Each part reads and writes its backing store during its own phases, translating
addresses through a `MemoryMap`. The map comes from `ResetOptions.memory_map`
when one is supplied, so several parts can share one address space; otherwise
each part gets a private map sized by its `size` arg. A private map is
re-created, and therefore cleared, on every reset.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from ..layout.model import PortDir
from ..memory import MemoryMap, parse_image
from ..units import parse_byte_size
from .base import ComponentDefinition, PhaseDef, ResetOptions, make_port, register_component
from .elements import IN_CTRL, IN_DATA, OUT_DATA, to_signed
from .exceptions import ComponentDefinitionError


logger = logging.getLogger(__name__)

IN_ADDR = PortDir.IN | PortDir.ADDR
WORD_SIZES = (1, 2, 4, 8)

# Access size codes driven onto the load/store unit's `size` port.
LS_SIZE_BYTES = {0: 1, 1: 2, 2: 4, 3: 8}


@dataclass
class MemoryData:
    """Payload of every memory-mapped part."""
    memory_map: MemoryMap
    word_size: int = 4


class MemoryDefinition(ComponentDefinition):
    """Shared argument handling and map selection for memory-mapped parts."""

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'width': None, 'size': '256 B', 'word_size': 4}

    @classmethod
    def word_size_arg(cls, args) -> int:
        word_size = cls.int_arg(args, 'word_size')
        if word_size not in WORD_SIZES:
            raise ComponentDefinitionError(
                def_id=cls.def_id, details=f"Argument 'word_size' must be one of {WORD_SIZES}, got {word_size}."
            )
        return word_size

    @classmethod
    def size_arg(cls, args) -> int:
        try:
            return parse_byte_size(args.get('size', 0))
        except ValueError as e:
            raise ComponentDefinitionError(def_id=cls.def_id, details=str(e)) from e

    @classmethod
    def private_map(cls, args, options: ResetOptions) -> MemoryMap:
        return MemoryMap(ram_size=cls.size_arg(args))

    @classmethod
    def create_data(cls, args, options: ResetOptions, fqn):
        word_size = cls.word_size_arg(args)
        if options.memory_map is not None:
            memory_map = options.memory_map
            if options.clear_ram:
                memory_map.clear_ram()
            if options.rom_image is not None:
                memory_map.load_rom(options.rom_image)
        else:
            memory_map = cls.private_map(args, options)
        return MemoryData(memory_map=memory_map, word_size=word_size)


@register_component("rom")
class Rom(MemoryDefinition):
    """Read-only memory: `data` shows the word at `addr`."""
    display_name = "ROM"
    PORT_ADDR, PORT_DATA = 0, 1

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        args = super().default_args()
        args['image'] = None
        return args

    @classmethod
    def private_map(cls, args, options: ResetOptions) -> MemoryMap:
        memory_map = MemoryMap(rom_size=cls.size_arg(args))
        image = options.rom_image if options.rom_image is not None else args.get('image')
        if image is not None:
            memory_map.load_rom(parse_image(image))
        return memory_map

    @classmethod
    def declare_ports(cls, args):
        return [
            make_port('addr', IN_ADDR, cls.width_arg(args, 'addr_width')),
            make_port('data', OUT_DATA, cls.width_arg(args)),
        ]

    @classmethod
    def declare_phases(cls, args):
        return [PhaseDef('read', ('addr',), ('data',), cls.read)]

    @staticmethod
    def read(comp, run_args):
        data = comp.data
        comp.ports[Rom.PORT_DATA].value = data.memory_map.read(comp.ports[Rom.PORT_ADDR].value, data.word_size)


@register_component("ram")
class Ram(MemoryDefinition):
    """
    Read/write memory with a tristate read port. `rdata` drives its net only
    while `re` is high; a write of `wdata` to `addr` is committed at the clock
    edge while `we` is high.
    """
    display_name = "RAM"
    PORT_ADDR, PORT_WDATA, PORT_WE, PORT_RE, PORT_RDATA = 0, 1, 2, 3, 4

    @classmethod
    def declare_ports(cls, args):
        width = cls.width_arg(args)
        return [
            make_port('addr', IN_ADDR, cls.width_arg(args, 'addr_width')),
            make_port('wdata', IN_DATA, width),
            make_port('we', IN_CTRL, 1),
            make_port('re', IN_CTRL, 1),
            make_port('rdata', PortDir.OUT_TRI | PortDir.DATA, width),
        ]

    @classmethod
    def declare_phases(cls, args):
        return [
            PhaseDef('read', ('addr', 're'), ('rdata',), cls.read),
            PhaseDef('write', ('addr', 'wdata', 'we'), (), cls.write, is_latch=True),
        ]

    @staticmethod
    def read(comp, run_args):
        ports = comp.ports
        rdata = ports[Ram.PORT_RDATA]
        rdata.io_enabled = bool(ports[Ram.PORT_RE].value)
        if rdata.io_enabled:
            rdata.value = comp.data.memory_map.read(ports[Ram.PORT_ADDR].value, comp.data.word_size)

    @staticmethod
    def write(comp, run_args):
        ports = comp.ports
        if ports[Ram.PORT_WE].value:
            comp.data.memory_map.write(ports[Ram.PORT_ADDR].value, ports[Ram.PORT_WDATA].value, comp.data.word_size)


@register_component("ls")
class LoadStore(MemoryDefinition):
    """
    Load/store unit. `size` selects a byte, half, word or double-word access
    (codes 0-3); loads are sign-extended to the `rdata` width while `signed` is
    high. Loads are combinational, stores are committed at the clock edge.
    """
    display_name = "Load/Store"
    PORT_ADDR, PORT_WDATA, PORT_SIZE, PORT_SIGNED, PORT_LOAD, PORT_STORE, PORT_RDATA = range(7)

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {'width': None, 'size': '1 KiB', 'word_size': 4}

    @classmethod
    def declare_ports(cls, args):
        width = cls.width_arg(args)
        return [
            make_port('addr', IN_ADDR, cls.width_arg(args, 'addr_width')),
            make_port('wdata', IN_DATA, width),
            make_port('size', IN_CTRL, 2),
            make_port('signed', IN_CTRL, 1),
            make_port('load', IN_CTRL, 1),
            make_port('store', IN_CTRL, 1),
            make_port('rdata', OUT_DATA, width),
        ]

    @classmethod
    def declare_phases(cls, args):
        return [
            PhaseDef('load', ('addr', 'size', 'signed', 'load'), ('rdata',), cls.load),
            PhaseDef('store', ('addr', 'wdata', 'size', 'store'), (), cls.store, is_latch=True),
        ]

    @staticmethod
    def load(comp, run_args):
        ports = comp.ports
        rdata = ports[LoadStore.PORT_RDATA]
        if not ports[LoadStore.PORT_LOAD].value:
            rdata.value = 0
            return
        n_bytes = LS_SIZE_BYTES[ports[LoadStore.PORT_SIZE].value]
        value = comp.data.memory_map.read(ports[LoadStore.PORT_ADDR].value, n_bytes)
        if ports[LoadStore.PORT_SIGNED].value:
            value = to_signed(value, 8 * n_bytes)
        rdata.value = value

    @staticmethod
    def store(comp, run_args):
        ports = comp.ports
        if ports[LoadStore.PORT_STORE].value:
            n_bytes = LS_SIZE_BYTES[ports[LoadStore.PORT_SIZE].value]
            comp.data.memory_map.write(ports[LoadStore.PORT_ADDR].value, ports[LoadStore.PORT_WDATA].value, n_bytes)
