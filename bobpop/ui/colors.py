"""Theme colors and color utilities for the UI."""

from bobpop.core.blocks import BlockColor


class BoardColors:
    """Light theme palette for the board screen."""

    BG_TOP = "#eef2ff"
    BG_BOTTOM = "#e3d9f7"
    BOARD_BG = "#f7f7fb"
    CELL_BORDER = "#d0d4e4"

    TEXT_PRIMARY = "#1f2340"
    TEXT_SECONDARY = "#4a5072"
    TEXT_MUTED = "#8a8fa8"

    GEM = "#2fa4e7"
    LIFE = "#ed2a50"


BLOCK_HEX = {
    BlockColor.RED: "#ED2A50",
    BlockColor.ORANGE: "#FF8200",
    BlockColor.BLUE: "#0087CE",
    BlockColor.GREEN: "#7CBA2E",
    BlockColor.YELLOW: "#FFD200",
    BlockColor.PURPLE: "#9444AE",
}


def block_hex(color: BlockColor) -> str:
    return BLOCK_HEX[color]


def blend_hex(a: str, b: str, t: float) -> str:
    """Blend two #RRGGBB colors. t=0 -> a, t=1 -> b."""
    a = a.strip()
    b = b.strip()
    if not (a.startswith("#") and b.startswith("#") and len(a) == 7 and len(b) == 7):
        return a
    try:
        ar, ag, ab = int(a[1:3], 16), int(a[3:5], 16), int(a[5:7], 16)
        br, bg, bb = int(b[1:3], 16), int(b[3:5], 16), int(b[5:7], 16)
    except ValueError:
        return a
    t = max(0.0, min(1.0, float(t)))
    r = int(ar + (br - ar) * t)
    g = int(ag + (bg - ag) * t)
    bl = int(ab + (bb - ab) * t)
    return f"#{r:02X}{g:02X}{bl:02X}"
