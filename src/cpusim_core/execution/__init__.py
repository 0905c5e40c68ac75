# src/cpusim_core/execution/__init__.py
from .model import (
    ExeRunArgs,
    ExePort,
    ExePhase,
    ExeComp,
    ExePortRef,
    ExeNet,
    ExeStep,
    ExeSystemLookup,
    ExeSystem,
)
from .engine import (
    ExecutionEngine,
    record_diagnostic,
    reset_system,
    run_net_step,
    run_phase_step,
    run_step,
    run_execution_steps,
    run_latch_steps,
)
from .config import ConfigParsingError, RunConfig, parse_memory_map_config, parse_run_config
from .runner import SimulationResult, run_simulation

__all__ = [
    # Runtime model
    "ExeRunArgs",
    "ExePort",
    "ExePhase",
    "ExeComp",
    "ExePortRef",
    "ExeNet",
    "ExeStep",
    "ExeSystemLookup",
    "ExeSystem",
    # Engine
    "ExecutionEngine",
    "record_diagnostic",
    "reset_system",
    "run_net_step",
    "run_phase_step",
    "run_step",
    "run_execution_steps",
    "run_latch_steps",
    # Configuration
    "ConfigParsingError",
    "RunConfig",
    "parse_memory_map_config",
    "parse_run_config",
    # Facade
    "SimulationResult",
    "run_simulation",
]
