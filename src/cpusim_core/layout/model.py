# src/cpusim_core/layout/model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import Any, Dict, List, Optional, Sequence, Tuple

# The classes in this module define the Layout Model: the static, user-authored
# graph of components and wires. They are plain data. The compiler reads them
# and never mutates them; structural edits are followed by a recompilation.

Vec2 = Tuple[float, float]


class PortDir(IntFlag):
    """
    Direction and category flags of a port.

    IN/OUT/TRISTATE decide the electrical role of a port on its net. DATA/ADDR/CTRL
    are display and diagnostic groupings only; they propagate onto the net.
    """
    NONE = 0
    IN = 1 << 0
    OUT = 1 << 1
    TRISTATE = 1 << 2

    DATA = 1 << 3
    ADDR = 1 << 4
    CTRL = 1 << 5

    OUT_TRI = OUT | TRISTATE

    @property
    def is_output(self) -> bool:
        return bool(self & PortDir.OUT)

    @property
    def is_tristate(self) -> bool:
        return bool(self & PortDir.TRISTATE)

    @property
    def semantic_flags(self) -> "PortDir":
        return self & (PortDir.DATA | PortDir.ADDR | PortDir.CTRL)


# Flag names in the order they are written to a persisted document.
PORT_DIR_FLAG_NAMES: Tuple[str, ...] = ("in", "out", "tristate", "data", "addr", "ctrl")


def port_dir_to_names(port_dir: PortDir) -> List[str]:
    return [name for name in PORT_DIR_FLAG_NAMES if port_dir & PortDir[name.upper()]]


def port_dir_from_names(names: Sequence[str]) -> PortDir:
    result = PortDir.NONE
    for name in names:
        result |= PortDir[name.upper()]
    return result


class RefType(Enum):
    """What an `ElRef` points at."""
    COMP = "comp"
    WIRE = "wire"
    COMP_NODE = "comp_node"


@dataclass(frozen=True)
class ElRef:
    """
    A reference to a layout element.

    COMP_NODE: `id` is a component id, `comp_node_id` the port id on it.
    WIRE: `id` is a wire id, `wire_node0_id`/`wire_node1_id` node ids within it.
    COMP: `id` is a component id.
    """
    type: RefType
    id: str
    comp_node_id: Optional[str] = None
    wire_node0_id: Optional[int] = None
    wire_node1_id: Optional[int] = None


@dataclass
class CompPort:
    """A design-time port. `width=None` inherits the width of the net it sits on."""
    id: str
    pos: Vec2
    name: str
    type: PortDir
    width: Optional[int] = None


@dataclass
class Comp:
    """A design-time component instance."""
    id: str
    def_id: str
    name: str
    pos: Vec2
    size: Vec2
    ports: List[CompPort] = field(default_factory=list)
    args: Optional[Dict[str, Any]] = None

    def get_port(self, port_id: str) -> Optional[CompPort]:
        return next((p for p in self.ports if p.id == port_id), None)


@dataclass
class WireGraphNode:
    """A routing node. `edges` index into the owning graph's node list and are bidirectional."""
    id: int
    pos: Vec2
    edges: List[int] = field(default_factory=list)
    ref: Optional[ElRef] = None


@dataclass
class WireGraph:
    id: str
    nodes: List[WireGraphNode] = field(default_factory=list)


@dataclass
class CpuLayout:
    """
    The complete user-authored layout: components, wire graphs, selection state and
    the id counters the editor uses to mint new ids.
    """
    selected: List[ElRef] = field(default_factory=list)
    next_comp_id: int = 0
    next_wire_id: int = 0
    comps: List[Comp] = field(default_factory=list)
    wires: List[WireGraph] = field(default_factory=list)

    def get_comp(self, comp_id: str) -> Optional[Comp]:
        return next((c for c in self.comps if c.id == comp_id), None)

    def get_wire(self, wire_id: str) -> Optional[WireGraph]:
        return next((w for w in self.wires if w.id == wire_id), None)

    def new_comp_id(self) -> str:
        comp_id = f"c{self.next_comp_id}"
        self.next_comp_id += 1
        return comp_id

    def new_wire_id(self) -> str:
        wire_id = f"w{self.next_wire_id}"
        self.next_wire_id += 1
        return wire_id

    def add_comp(self, comp: Comp) -> Comp:
        self.comps.append(comp)
        return comp

    def add_wire(self, endpoints: Sequence[Tuple[str, str]], wire_id: Optional[str] = None) -> WireGraph:
        """
        Adds a wire graph connecting the given `(comp_id, port_id)` endpoints.

        Nodes are chained in the given order; each node terminates at one endpoint
        and sits at the absolute position of that port when it can be found.
        """
        if wire_id is None:
            wire_id = self.new_wire_id()
        nodes: List[WireGraphNode] = []
        for idx, (comp_id, port_id) in enumerate(endpoints):
            edges = [i for i in (idx - 1, idx + 1) if 0 <= i < len(endpoints)]
            nodes.append(WireGraphNode(
                id=idx,
                pos=self._port_position(comp_id, port_id),
                edges=edges,
                ref=ElRef(type=RefType.COMP_NODE, id=comp_id, comp_node_id=port_id),
            ))
        wire = WireGraph(id=wire_id, nodes=nodes)
        self.wires.append(wire)
        return wire

    def _port_position(self, comp_id: str, port_id: str) -> Vec2:
        comp = self.get_comp(comp_id)
        port = comp.get_port(port_id) if comp else None
        if comp is None or port is None:
            return (0.0, 0.0)
        return (comp.pos[0] + port.pos[0], comp.pos[1] + port.pos[1])
