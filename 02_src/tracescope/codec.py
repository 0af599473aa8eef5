"""Binary encoding of captured values.

Snapshots, messages and responses are pickled so that a state read back
from storage equals the state that was captured (tuples, non-string dict
keys, sets and dataclasses included). JSON is only used for the HTTP view.
"""

import pickle
from typing import Any

from .errors import SnapshotEncodingError


def encode_value(value: Any) -> bytes | None:
    """Encode a captured value; None stays None."""
    if value is None:
        return None
    try:
        return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
    except Exception as e:
        raise SnapshotEncodingError(f"{type(e).__name__}: {e}") from e


def decode_value(raw: bytes | None) -> Any:
    if raw is None:
        return None
    return pickle.loads(raw)


def encoded_size(value: Any) -> int:
    """Size in bytes of the encoded value (0 for None)."""
    encoded = encode_value(value)
    return len(encoded) if encoded is not None else 0
