# src/cpusim_core/memory/map.py
"""
Defines the `MemoryMap`, the flat address-space view backing memory-mapped
components.

The map is pure data: three byte stores (ROM, RAM, IO) placed at offsets in one
address space. Memory components translate addresses through it during their own
phase evaluation. The execution engine never touches it.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

import numpy as np

from .exceptions import MemoryAccessError

logger = logging.getLogger(__name__)

ByteSource = Union[bytes, bytearray, np.ndarray]


class RegionKind(Enum):
    ROM = "rom"
    RAM = "ram"
    IO = "io"


@dataclass(frozen=True, eq=False)
class MemoryRegion:
    """One mapped region: `[offset, offset + size)` backed by `store`."""
    kind: RegionKind
    offset: int
    store: np.ndarray

    @property
    def size(self) -> int:
        return int(self.store.shape[0])

    @property
    def end(self) -> int:
        return self.offset + self.size

    @property
    def writable(self) -> bool:
        return self.kind is not RegionKind.ROM

    def contains(self, address: int, size: int = 1) -> bool:
        return self.offset <= address and address + size <= self.end


def _as_store(source: Optional[ByteSource], size: Optional[int] = None) -> np.ndarray:
    if source is None:
        return np.zeros(size or 0, dtype=np.uint8)
    if isinstance(source, np.ndarray):
        store = source.astype(np.uint8).copy()
    else:
        store = np.frombuffer(bytes(source), dtype=np.uint8).copy()
    if size is not None and store.shape[0] != size:
        resized = np.zeros(size, dtype=np.uint8)
        n = min(size, store.shape[0])
        resized[:n] = store[:n]
        store = resized
    return store


class MemoryMap:
    """
    A byte-addressable view of ROM, RAM and IO regions.

    Multi-byte accesses are little-endian and must lie entirely within a single
    region. Regions may not overlap.
    """

    def __init__(
        self,
        rom_offset: int = 0,
        ram_offset: int = 0,
        io_offset: int = 0,
        io_size: int = 0,
        rom: Optional[ByteSource] = None,
        ram: Optional[ByteSource] = None,
        ram_size: Optional[int] = None,
        rom_size: Optional[int] = None,
    ):
        self.rom_offset = int(rom_offset)
        self.ram_offset = int(ram_offset)
        self.io_offset = int(io_offset)
        self.io_size = int(io_size)

        self.rom: np.ndarray = _as_store(rom, rom_size)
        self.ram: np.ndarray = _as_store(ram, ram_size)
        self.io: np.ndarray = np.zeros(self.io_size, dtype=np.uint8)

        self._check_overlaps()
        logger.debug(
            f"MemoryMap created: ROM {self.rom.shape[0]}B @0x{self.rom_offset:x}, "
            f"RAM {self.ram.shape[0]}B @0x{self.ram_offset:x}, IO {self.io_size}B @0x{self.io_offset:x}"
        )

    @property
    def regions(self) -> List[MemoryRegion]:
        """The non-empty regions, ordered by offset."""
        candidates = [
            MemoryRegion(RegionKind.ROM, self.rom_offset, self.rom),
            MemoryRegion(RegionKind.RAM, self.ram_offset, self.ram),
            MemoryRegion(RegionKind.IO, self.io_offset, self.io),
        ]
        return sorted((r for r in candidates if r.size > 0), key=lambda r: r.offset)

    def _check_overlaps(self):
        regions = self.regions
        for a, b in zip(regions, regions[1:]):
            if b.offset < a.end:
                raise ValueError(
                    f"Memory regions overlap: {a.kind.value} [0x{a.offset:x}, 0x{a.end:x}) and "
                    f"{b.kind.value} [0x{b.offset:x}, 0x{b.end:x})."
                )

    def region_for(self, address: int, size: int = 1) -> Tuple[MemoryRegion, int]:
        """
        Translates an address into `(region, offset within the region)`.

        Raises:
            MemoryAccessError: If `[address, address + size)` is not inside one region.
        """
        if size < 1:
            raise MemoryAccessError(address=address, size=size, details="Access size must be at least one byte.")
        for region in self.regions:
            if region.contains(address, size):
                return region, address - region.offset
            if region.offset <= address < region.end:
                raise MemoryAccessError(
                    address=address, size=size, region=region.kind.value,
                    details=f"Access runs past the end of the {region.kind.value} region (ends at 0x{region.end:x}).",
                )
        raise MemoryAccessError(address=address, size=size, details="Address is not mapped to any region.")

    def read(self, address: int, size: int = 1) -> int:
        region, local = self.region_for(address, size)
        return int.from_bytes(region.store[local:local + size].tobytes(), "little")

    def write(self, address: int, value: int, size: int = 1):
        region, local = self.region_for(address, size)
        if not region.writable:
            raise MemoryAccessError(
                address=address, size=size, region=region.kind.value,
                details=f"The {region.kind.value} region is read-only.",
            )
        data = (int(value) & ((1 << (8 * size)) - 1)).to_bytes(size, "little")
        region.store[local:local + size] = np.frombuffer(data, dtype=np.uint8)

    def load_rom(self, image: ByteSource):
        """Copies `image` into the start of ROM. The image must fit."""
        data = _as_store(image)
        if data.shape[0] > self.rom.shape[0]:
            raise ValueError(f"ROM image of {data.shape[0]} bytes does not fit in a {self.rom.shape[0]}-byte ROM.")
        self.rom[:data.shape[0]] = data
        logger.debug(f"Loaded {data.shape[0]}-byte ROM image.")

    def clear_ram(self):
        self.ram[:] = 0
        self.io[:] = 0


def parse_image(value: Union[ByteSource, List[int], str]) -> bytes:
    """
    Normalises a memory image given as bytes, a list of byte values, or a hex
    string (whitespace and a leading "0x" are ignored).
    """
    if isinstance(value, np.ndarray):
        return value.astype(np.uint8).tobytes()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, list):
        return bytes(int(b) for b in value)
    text = "".join(str(value).split())
    if text.lower().startswith("0x"):
        text = text[2:]
    return bytes.fromhex(text)
