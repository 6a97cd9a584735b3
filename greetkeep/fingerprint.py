"""
Content fingerprints for greeting text.

The fingerprint is the only signal used to decide whether a greeting is
"the same" entry as one seen before. It is the 53-bit cyrb53 hash computed
over UTF-16 code units, matching the ``contentHash`` values already stored
in existing character cards.
"""

_MASK32 = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    """32-bit integer multiply, result as unsigned."""
    return (a * b) & _MASK32


def _utf16_units(text: str):
    data = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def fingerprint(text: str, seed: int = 0) -> int:
    """
    Hash greeting text to a non-negative integer below 2**53.

    Deterministic and order-sensitive; defined for the empty string.

    Args:
        text: Greeting content
        seed: Optional hash seed (0 for stored content hashes)

    Returns:
        Integer fingerprint
    """
    h1 = (0xDEADBEEF ^ seed) & _MASK32
    h2 = (0x41C6CE57 ^ seed) & _MASK32
    for ch in _utf16_units(text):
        h1 = _imul(h1 ^ ch, 2654435761)
        h2 = _imul(h2 ^ ch, 1597334677)

    h1 = _imul(h1 ^ (h1 >> 16), 2246822507) ^ _imul(h2 ^ (h2 >> 13), 3266489909)
    h2 = _imul(h2 ^ (h2 >> 16), 2246822507) ^ _imul(h1 ^ (h1 >> 13), 3266489909)

    return 4294967296 * (0x1FFFFF & h2) + h1
