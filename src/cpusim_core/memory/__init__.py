# src/cpusim_core/memory/__init__.py
"""
Exposes the memory map used by memory-mapped components.
"""
from .map import MemoryMap, MemoryRegion, RegionKind, parse_image
from .exceptions import MemoryAccessError

__all__ = [
    "MemoryMap",
    "MemoryRegion",
    "RegionKind",
    "parse_image",
    "MemoryAccessError",
]
