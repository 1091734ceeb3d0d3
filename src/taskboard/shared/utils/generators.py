"""Identifier generation for persisted records"""
from cuid2 import cuid_wrapper

# One generator per process; cuid2 keeps its own counter and fingerprint
_cuid = cuid_wrapper()


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier for a new row"""
    value = _cuid()
    if not isinstance(value, str):
        raise TypeError(f"cuid2 returned {type(value).__name__}, expected str")
    return value
