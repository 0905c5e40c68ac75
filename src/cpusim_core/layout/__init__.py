# src/cpusim_core/layout/__init__.py
from .model import (
    PortDir,
    RefType,
    ElRef,
    CompPort,
    Comp,
    WireGraphNode,
    WireGraph,
    CpuLayout,
)
from .serialization import LayoutSerializer, layout_to_dict, layout_from_dict
from .exceptions import ParsingError, SchemaValidationError

__all__ = [
    # Layout Model
    "PortDir",
    "RefType",
    "ElRef",
    "CompPort",
    "Comp",
    "WireGraphNode",
    "WireGraph",
    "CpuLayout",
    # Persistence and Exceptions
    "LayoutSerializer",
    "layout_to_dict",
    "layout_from_dict",
    "ParsingError",
    "SchemaValidationError",
]
