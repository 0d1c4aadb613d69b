# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

from __future__ import annotations
from enum import IntEnum
from typing import Dict


class Colour(IntEnum):
    GREEN = 0
    RED = 1


DEFAULT_COLOURS: Dict[Colour, int] = {
    Colour.GREEN: 0x2ECC71,
    Colour.RED: 0xFC3F35,
}

# Only these roles are exported; anything else stored for a guild is ignored.
ACTIVE_COLOURS = (Colour.GREEN, Colour.RED)


def hex_colour(value: int) -> str:
    return f"{int(value) & 0xFFFFFF:06x}"


def build_colour_map(raw: Dict[int, int]) -> Dict[str, str]:
    """
    Turn the stored {colour_id: rgb} rows into the exported colour map.
    Keys are the colour ids as strings, values 6-digit hex.
    Every active colour is present, falling back to its default.
    """
    out: Dict[str, str] = {}
    for colour in ACTIVE_COLOURS:
        value = raw.get(int(colour))
        if value is None:
            value = DEFAULT_COLOURS[colour]
        out[str(int(colour))] = hex_colour(value)
    return out
