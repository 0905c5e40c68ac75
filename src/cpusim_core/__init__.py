# src/cpusim_core/__init__.py
import logging
from .log_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)
logger.info("CPUSim Core package initialized.")

from .units import ureg, pint, Quantity, parse_byte_size
from .constants import FLOATING_NET_VALUE, DEFAULT_PORT_WIDTH, MAX_PORT_WIDTH
from .layout import CpuLayout, Comp, CompPort, PortDir, LayoutSerializer
from .memory import MemoryMap, MemoryAccessError
from .components import CompLibrary, ResetOptions, COMPONENT_REGISTRY
from .compiler import ExeSystemCompiler, compile_layout, compile_layout_file
from .execution import (
    ExeSystem, ExecutionEngine, RunConfig, SimulationResult,
    parse_memory_map_config, parse_run_config, run_simulation,
)
from .validation import ValidationIssue, ValidationIssueLevel
from .errors import CpuSimError, CircuitBuildError, SimulationRunError

__all__ = [
    # Units
    "ureg", "pint", "Quantity", "parse_byte_size",
    # Constants
    "FLOATING_NET_VALUE", "DEFAULT_PORT_WIDTH", "MAX_PORT_WIDTH",
    # Layout Model
    "CpuLayout", "Comp", "CompPort", "PortDir", "LayoutSerializer",
    # Memory
    "MemoryMap", "MemoryAccessError",
    # Component Library
    "CompLibrary", "ResetOptions", "COMPONENT_REGISTRY",
    # Compiler
    "ExeSystemCompiler", "compile_layout", "compile_layout_file",
    # Execution
    "ExeSystem", "ExecutionEngine", "RunConfig", "SimulationResult",
    "parse_memory_map_config", "parse_run_config", "run_simulation",
    # Issues
    "ValidationIssue", "ValidationIssueLevel",
    # Top-Level Errors (Actionable Diagnostics)
    "CpuSimError", "CircuitBuildError", "SimulationRunError",
]
