from __future__ import annotations

import hashlib

_UNIT_SCALE = float(1 << 64)


def _digest_u64(text: str) -> int:
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=False)


def luck(key: str) -> float:
    """Map a key string to a stable, uniformly distributed value in [0, 1)."""
    return _digest_u64(key) / _UNIT_SCALE


def derive_cell_key(world_seed: int, cell_key: str) -> str:
    return f"{world_seed}:{cell_key}"
