# src/cpusim_core/memory/exceptions.py
"""
Defines the diagnosable exception for memory-map accesses.
"""
from dataclasses import dataclass
from typing import Optional

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class MemoryAccessError(DiagnosableError):
    """
    Raised when an access falls outside every mapped region, straddles the end of a
    region, or writes to read-only memory.
    """
    address: int
    size: int
    details: str
    region: Optional[str] = None

    def __str__(self):
        return f"Memory access of {self.size} byte(s) at 0x{self.address:x} failed: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Memory Access Error",
            details=str(self),
            suggestion="Check the address computation feeding this memory component and the region offsets/sizes of the memory map.",
            context={'region': self.region, 'address': f"0x{self.address:x}"}
        )
