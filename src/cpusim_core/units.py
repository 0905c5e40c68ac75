# --- src/cpusim_core/units.py ---
import pint
import logging
from typing import Union

logger = logging.getLogger(__name__)
ureg = pint.UnitRegistry()
Quantity = ureg.Quantity
logger.info("Pint Unit Registry initialized.")

# --- Memory size units ---
# Information units are matched by name: some pint releases define `byte` as
# dimensionless, so dimensionality alone cannot tell "4 KiB" from "4 percent".
SIZE_UNIT_SUFFIXES = ('byte', 'bit')


def _is_size_unit(qty) -> bool:
    return qty.is_compatible_with('byte') and all(
        name.endswith(SIZE_UNIT_SUFFIXES) and exponent == 1 for name, exponent in qty.unit_items()
    )


def parse_byte_size(value: Union[int, str]) -> int:
    """
    Converts a memory size to a whole number of bytes.

    Integers are taken as a byte count. Strings are parsed by pint, so both
    plain numbers ("4096") and quantities ("4 KiB", "2 kB", "64 bit") work.

    Raises:
        ValueError: If the value is negative, not a whole number of bytes, or
                    carries units that are not a memory size.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid byte size {value!r}.")
    if isinstance(value, int):
        n_bytes = value
    else:
        try:
            qty = ureg.Quantity(str(value))
        except (pint.errors.PintError, AttributeError, TypeError, SyntaxError) as e:
            raise ValueError(f"Cannot parse byte size '{value}': {e}") from e
        if qty.unitless:
            magnitude = qty.magnitude
        elif _is_size_unit(qty):
            magnitude = qty.to('byte').magnitude
        else:
            raise ValueError(f"Byte size '{value}' has units '{qty.units}', expected a memory size.")
        if float(magnitude) != int(magnitude):
            raise ValueError(f"Byte size '{value}' is not a whole number of bytes ({magnitude}).")
        n_bytes = int(magnitude)

    if n_bytes < 0:
        raise ValueError(f"Byte size must be non-negative, got {n_bytes}.")
    return n_bytes
