# src/cpusim_core/components/base.py

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

from ..constants import MAX_PORT_WIDTH
from ..layout.model import Comp, CompPort, CpuLayout, PortDir, Vec2
from ..memory import MemoryMap
from .exceptions import ComponentDefinitionError, UnknownComponentError


logger = logging.getLogger(__name__)

# Phase functions receive the compiled component and the run-wide arguments.
# They may read only their declared read ports and the payload, and may write
# only their declared write ports (combinational) or the payload (latch).
PhaseFunc = Callable[[Any, Any], None]

# Grid spacing used to place ports on a freshly created component.
PORT_PITCH: float = 20.0
DEFAULT_COMP_WIDTH: float = 80.0


@dataclass(frozen=True)
class PhaseDef:
    """A declared phase of a component definition. Ports are named by id."""
    name: str
    reads: Tuple[str, ...]
    writes: Tuple[str, ...]
    func: PhaseFunc
    is_latch: bool = False


@dataclass
class ResetOptions:
    """
    Inputs to payload (re-)creation.

    Attributes:
        memory_map: Shared map for memory-mapped parts. Parts without one get a
                    private map sized from their args.
        rom_image: Bytes loaded into ROM when a payload is created.
        register_values: Initial stored values, keyed by component FQN.
        clear_ram: Zero RAM/IO of the shared map when a payload is created.
    """
    memory_map: Optional[MemoryMap] = None
    rom_image: Optional[bytes] = None
    register_values: Dict[str, int] = field(default_factory=dict)
    clear_ram: bool = False


@dataclass
class BuiltComponent:
    """The result of `CompLibrary.build`: everything the compiler needs from a definition."""
    ports: List[CompPort]
    phases: List[PhaseDef]
    data: Any


def make_port(port_id: str, port_type: PortDir, width: Optional[int] = None, name: Optional[str] = None) -> CompPort:
    """Builds a declared port; positions are assigned when a layout component is created."""
    return CompPort(id=port_id, pos=(0.0, 0.0), name=name or port_id, type=port_type, width=width)


class ComponentDefinition(ABC):
    """
    The abstract base class for every part in the component library.

    A definition is stateless: it describes, for a given args dict, which ports a
    component has, which phases it runs, and how its payload is created. All
    hooks are class methods so the library never instantiates definitions.
    """
    def_id: ClassVar[str] = "base"
    display_name: ClassVar[str] = "Component"

    @classmethod
    def default_args(cls) -> Dict[str, Any]:
        return {}

    @classmethod
    def resolve_args(cls, args: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Default args overlaid with the given ones."""
        resolved = dict(cls.default_args())
        resolved.update(args or {})
        return resolved

    @classmethod
    @abstractmethod
    def declare_ports(cls, args: Dict[str, Any]) -> List[CompPort]:
        """
        Declare the component's ports in a fixed order. Phase functions address
        ports by their position in this list.
        """
        pass

    @classmethod
    @abstractmethod
    def declare_phases(cls, args: Dict[str, Any]) -> List[PhaseDef]:
        pass

    @classmethod
    def create_data(cls, args: Dict[str, Any], options: ResetOptions, fqn: str) -> Any:
        """Create the payload for a fresh or reset instance."""
        return None

    @classmethod
    def sub_layout(cls, args: Dict[str, Any]) -> Optional[CpuLayout]:
        """The nested layout of a hierarchical part, None for leaf parts."""
        return None

    # --- Argument helpers shared by concrete definitions ---

    @classmethod
    def width_arg(cls, args: Dict[str, Any], key: str = 'width') -> Optional[int]:
        """Reads an optional bit width argument, validating its range."""
        width = args.get(key)
        if width is None:
            return None
        if isinstance(width, bool) or not isinstance(width, int) or not 1 <= width <= MAX_PORT_WIDTH:
            raise ComponentDefinitionError(
                def_id=cls.def_id,
                details=f"Argument '{key}' must be an integer between 1 and {MAX_PORT_WIDTH}, got {width!r}."
            )
        return width

    @classmethod
    def int_arg(cls, args: Dict[str, Any], key: str, minimum: Optional[int] = None) -> int:
        value = args.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ComponentDefinitionError(def_id=cls.def_id, details=f"Argument '{key}' must be an integer, got {value!r}.")
        if minimum is not None and value < minimum:
            raise ComponentDefinitionError(def_id=cls.def_id, details=f"Argument '{key}' must be >= {minimum}, got {value}.")
        return value


# --- Global Component Registry and Decorator ---

COMPONENT_REGISTRY: Dict[str, type] = {}


def register_component(def_id: str):
    """
    A class decorator to register a component definition in the global registry,
    making it available to the component library and the compiler.

    The definition's contract is checked against its default args when the class
    is defined: ports must be `CompPort`s with unique, non-empty ids, and every
    phase must name declared ports only. Latch phases write the payload, never
    ports.
    """
    def decorator(cls: type):
        if not issubclass(cls, ComponentDefinition):
            raise TypeError(f"Class {cls.__name__} must inherit from ComponentDefinition.")

        cls.def_id = def_id
        args = cls.resolve_args(None)

        # --- VALIDATION FOR 'declare_ports' ---
        try:
            ports = cls.declare_ports(args)
            if not isinstance(ports, list) or not all(isinstance(p, CompPort) and p.id for p in ports):
                raise TypeError(
                    f"declare_ports() must return a list of CompPort with non-empty ids, but returned: {ports}."
                )
            port_ids = [p.id for p in ports]
            if len(set(port_ids)) != len(port_ids):
                raise TypeError(f"declare_ports() must return unique port ids, but found duplicates in: {port_ids}.")
        except Exception as e:
            raise TypeError(
                f"A failure occurred while attempting to validate the API contract of "
                f"component definition '{cls.__name__}'. Error during call to declare_ports(): {e}"
            ) from e

        # --- VALIDATION FOR 'declare_phases' ---
        try:
            phases = cls.declare_phases(args)
            if not isinstance(phases, list) or not all(isinstance(p, PhaseDef) for p in phases):
                raise TypeError(f"declare_phases() must return a list of PhaseDef, but returned: {phases}.")
            for phase in phases:
                if not callable(phase.func):
                    raise TypeError(f"Phase '{phase.name}' has a non-callable func.")
                unknown = [p for p in (*phase.reads, *phase.writes) if p not in port_ids]
                if unknown:
                    raise TypeError(f"Phase '{phase.name}' references undeclared port(s) {unknown}.")
                if phase.is_latch and phase.writes:
                    raise TypeError(f"Latch phase '{phase.name}' may not write ports, but declares {list(phase.writes)}.")
        except Exception as e:
            raise TypeError(
                f"A failure occurred while attempting to validate the API contract of "
                f"component definition '{cls.__name__}'. Error during call to declare_phases(): {e}"
            ) from e

        if def_id in COMPONENT_REGISTRY:
            logger.warning(f"Component definition '{def_id}' is being redefined/overwritten.")
        COMPONENT_REGISTRY[def_id] = cls
        logger.info(f"Registered component definition '{def_id}' -> {cls.__name__}")
        return cls
    return decorator


class CompLibrary:
    """
    The lookup and build service the compiler and engine use to turn a
    `(def_id, args)` pair into ports, phases and a payload. Building is
    deterministic per `(def_id, args)`.
    """

    def __init__(self, definitions: Optional[Dict[str, type]] = None):
        self._definitions: Dict[str, type] = dict(COMPONENT_REGISTRY if definitions is None else definitions)

    @property
    def def_ids(self) -> List[str]:
        return list(self._definitions)

    def has_definition(self, def_id: str) -> bool:
        return def_id in self._definitions

    def get_definition(self, def_id: str) -> type:
        try:
            return self._definitions[def_id]
        except KeyError:
            raise UnknownComponentError(def_id=def_id, available=sorted(self._definitions)) from None

    def build(
        self,
        def_id: str,
        args: Optional[Dict[str, Any]] = None,
        fqn: str = "",
        options: Optional[ResetOptions] = None,
    ) -> BuiltComponent:
        definition = self.get_definition(def_id)
        try:
            resolved = definition.resolve_args(args)
            ports = definition.declare_ports(resolved)
            phases = definition.declare_phases(resolved)
            data = definition.create_data(resolved, options or ResetOptions(), fqn)
        except ComponentDefinitionError as e:
            if e.component_fqn is None:
                e.component_fqn = fqn or None
            raise
        except (KeyError, ValueError, TypeError) as e:
            raise ComponentDefinitionError(def_id=def_id, details=str(e), component_fqn=fqn or None) from e
        return BuiltComponent(ports=ports, phases=phases, data=data)

    def sub_layout(self, def_id: str, args: Optional[Dict[str, Any]] = None) -> Optional[CpuLayout]:
        definition = self.get_definition(def_id)
        return definition.sub_layout(definition.resolve_args(args))

    def reset(self, exe_comp, options: Optional[ResetOptions] = None) -> Any:
        """Creates a new payload for `exe_comp`; its ports and phases keep their shape."""
        definition = self.get_definition(exe_comp.comp.def_id)
        resolved = definition.resolve_args(exe_comp.comp.args)
        return definition.create_data(resolved, options or ResetOptions(), exe_comp.fqn)

    def create_comp(
        self,
        def_id: str,
        comp_id: str,
        name: Optional[str] = None,
        pos: Vec2 = (0.0, 0.0),
        args: Optional[Dict[str, Any]] = None,
    ) -> Comp:
        """
        Creates a layout component with the definition's ports laid out along its
        edges: inputs on the left, outputs on the right.
        """
        definition = self.get_definition(def_id)
        resolved = definition.resolve_args(args)
        ports = definition.declare_ports(resolved)

        inputs = [p for p in ports if not p.type.is_output]
        outputs = [p for p in ports if p.type.is_output]
        rows = max(len(inputs), len(outputs), 1)
        size = (DEFAULT_COMP_WIDTH, PORT_PITCH * (rows + 1))
        for row, port in enumerate(inputs, start=1):
            port.pos = (0.0, PORT_PITCH * row)
        for row, port in enumerate(outputs, start=1):
            port.pos = (size[0], PORT_PITCH * row)

        return Comp(
            id=comp_id,
            def_id=def_id,
            name=name or definition.display_name,
            pos=pos,
            size=size,
            ports=ports,
            args=dict(args) if args else None,
        )
