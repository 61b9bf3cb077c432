from __future__ import annotations


KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB

STUB_TEMPLATE = """\
{magic}

size:       {size}
human_size: {human_size}
"""


def human_size(size: int) -> str:
    if size < KIB:
        return f"{size} B"
    if size < MIB:
        return f"{size / KIB:.2f} KiB"
    if size < GIB:
        return f"{size / MIB:.2f} MiB"
    return f"{size / GIB:.2f} GiB"


def render_stub(size: int, magic: str) -> bytes:
    """Return the exact content of a placeholder file for a file of ``size`` bytes."""
    text = STUB_TEMPLATE.format(magic=magic, size=size, human_size=human_size(size))
    return text.encode("utf-8")
