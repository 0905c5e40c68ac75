# src/cpusim_core/components/__init__.py
import logging
logger = logging.getLogger(__name__)

# Import base first to define registry and decorator
from .base import (
    ComponentDefinition, PhaseDef, ResetOptions, BuiltComponent, CompLibrary,
    COMPONENT_REGISTRY, register_component, make_port,
)
from .exceptions import ComponentRuntimeError, UnknownComponentError, ComponentDefinitionError
# Import concrete parts to trigger registration
from .elements import Const, Input, Mux, TriBuf, Alu, AluOp, Splitter
from .sequential import Register, ProgramCounter
from .memory import Rom, Ram, LoadStore
from .subcircuit import Subcircuit, PortIn, PortOut

logger.info(f"Available component definitions: {list(COMPONENT_REGISTRY.keys())}")

__all__ = [
    "ComponentDefinition",
    "PhaseDef",
    "ResetOptions",
    "BuiltComponent",
    "CompLibrary",
    "COMPONENT_REGISTRY",
    "register_component",
    "make_port",
    "ComponentRuntimeError",
    "UnknownComponentError",
    "ComponentDefinitionError",
    "Const",
    "Input",
    "Mux",
    "TriBuf",
    "Alu",
    "AluOp",
    "Splitter",
    "Register",
    "ProgramCounter",
    "Rom",
    "Ram",
    "LoadStore",
    "Subcircuit",
    "PortIn",
    "PortOut",
]
