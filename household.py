# household.py
"""Household ids: ``GCC-<initials>-<4 hex chars of an address hash>``."""

PREFIX = "GCC"


def _utf16_units(text: str):
    raw = text.encode("utf-16-le")
    for i in range(0, len(raw), 2):
        yield raw[i] | (raw[i + 1] << 8)


def address_hash(address: str) -> int:
    """31-multiplier rolling hash over UTF-16 code units, wrapped to signed 32 bits."""
    h = 0
    for unit in _utf16_units(address):
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def initials(name: str) -> str:
    return "".join(part[0] for part in name.split(" ") if part).upper()


def household_id(name: str, address: str) -> str:
    short_hash = format(abs(address_hash(address)), "x")[:4].upper()
    return f"{PREFIX}-{initials(name)}-{short_hash}"
