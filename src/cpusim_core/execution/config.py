# src/cpusim_core/execution/config.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..memory import MemoryMap, parse_image
from ..units import parse_byte_size

logger = logging.getLogger(__name__)


class ConfigParsingError(ValueError):
    """Custom exception for errors during run or memory-map configuration parsing."""
    pass


@dataclass(frozen=True)
class RunConfig:
    """Settings for a `run_simulation` call."""
    max_ticks: int = 1
    halt_on_error: bool = False


def _parse_address(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid address {value!r}.")
    if isinstance(value, int):
        address = value
    else:
        # Accepts decimal as well as 0x/0o/0b prefixed strings.
        address = int(str(value).strip(), 0)
    if address < 0:
        raise ValueError(f"Address must be non-negative, got {address}.")
    return address


def parse_memory_map_config(raw_config: Optional[Dict[str, Any]]) -> MemoryMap:
    """
    Parses a raw memory-map configuration dictionary into a `MemoryMap`.

    Recognised keys (all optional): `rom_offset`, `rom_size`, `ram_offset`,
    `ram_size`, `io_offset`, `io_size` and `rom_image`. Offsets are ints or strings
    such as "0x8000"; sizes are ints or byte quantities such as "4 KiB"; the ROM
    image is a hex string or a list of byte values. A ROM image without a ROM size
    sizes the ROM to the image.
    """
    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigParsingError(f"Memory map configuration must be a mapping, got {type(raw_config).__name__}.")

    known = {'rom_offset', 'rom_size', 'ram_offset', 'ram_size', 'io_offset', 'io_size', 'rom_image'}
    unknown = sorted(set(raw_config) - known)
    if unknown:
        raise ConfigParsingError(f"Unknown memory map configuration key(s): {unknown}.")

    try:
        rom_image = parse_image(raw_config['rom_image']) if 'rom_image' in raw_config else None
        rom_size = parse_byte_size(raw_config['rom_size']) if 'rom_size' in raw_config else None
        if rom_image is not None and rom_size is not None and len(rom_image) > rom_size:
            raise ValueError(f"ROM image of {len(rom_image)} bytes does not fit a ROM of {rom_size} bytes.")

        memory_map = MemoryMap(
            rom_offset=_parse_address(raw_config.get('rom_offset', 0)),
            ram_offset=_parse_address(raw_config.get('ram_offset', 0)),
            io_offset=_parse_address(raw_config.get('io_offset', 0)),
            io_size=parse_byte_size(raw_config.get('io_size', 0)),
            ram_size=parse_byte_size(raw_config.get('ram_size', 0)),
            rom_size=rom_size if rom_size is not None else len(rom_image or b""),
        )
        if rom_image:
            memory_map.load_rom(rom_image)
    except (KeyError, ValueError, TypeError) as e:
        raise ConfigParsingError(f"Failed to parse memory map configuration: {e}") from e

    logger.debug(f"Parsed memory map with regions: {[(r.kind.value, hex(r.offset), r.size) for r in memory_map.regions]}")
    return memory_map


def parse_run_config(raw_config: Optional[Dict[str, Any]]) -> RunConfig:
    """Parses a raw run configuration dictionary (`max_ticks`, `halt_on_error`)."""
    if raw_config is None:
        return RunConfig()
    if not isinstance(raw_config, dict):
        raise ConfigParsingError(f"Run configuration must be a mapping, got {type(raw_config).__name__}.")
    try:
        max_ticks = raw_config.get('max_ticks', RunConfig.max_ticks)
        if isinstance(max_ticks, bool) or int(max_ticks) != max_ticks:
            raise ValueError(f"max_ticks must be an integer, got {max_ticks!r}.")
        if max_ticks < 0:
            raise ValueError("max_ticks must be non-negative.")
        halt_on_error = raw_config.get('halt_on_error', RunConfig.halt_on_error)
        if not isinstance(halt_on_error, bool):
            raise ValueError(f"halt_on_error must be a boolean, got {halt_on_error!r}.")
        return RunConfig(max_ticks=int(max_ticks), halt_on_error=halt_on_error)
    except (TypeError, ValueError) as e:
        raise ConfigParsingError(f"Failed to parse run configuration: {e}") from e
