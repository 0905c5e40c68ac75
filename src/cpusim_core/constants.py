# --- src/cpusim_core/constants.py ---
import logging

logger = logging.getLogger(__name__)

# --- Net and Port Value Constants ---

#: Value reported by a net with no enabled driver, and by a net whose value is
#: undefined for the current tick (bus contention, failed component phase).
FLOATING_NET_VALUE: int = 0

#: Width used for ports declared without a width when no port on their net
#: declares one either.
DEFAULT_PORT_WIDTH: int = 32

#: Widest supported port/net, in bits.
MAX_PORT_WIDTH: int = 64

#: Index sentinel used by execution steps and port references.
NO_INDEX: int = -1


def width_mask(width: int) -> int:
    """Returns the all-ones mask for a value of `width` bits."""
    return (1 << width) - 1


def mask_value(value: int, width: int) -> int:
    """Truncates `value` to its low `width` bits (two's complement for negatives)."""
    return int(value) & width_mask(width)


logger.debug("Defined core constants: FLOATING_NET_VALUE, DEFAULT_PORT_WIDTH, MAX_PORT_WIDTH")
