"""
Mutable byte buffer for seeds and private keys that is overwritten on release.

Python ``bytes`` are immutable and linger until the allocator reuses them, so
secret material is kept in a ``bytearray`` that can be zeroed in place:

    with SecretBuffer(seed_bytes) as seed:
        master = master_from_seed(seed)
    # seed is all zeros here, even if master_from_seed raised

``__del__`` wipes as a last resort when a buffer is dropped without ``with``.
Anything read out through ``bytes(buf)`` is a copy the buffer cannot reach.
"""

from __future__ import annotations

import hmac


class SecretBuffer:
    """Owns a ``bytearray`` holding secret material."""

    __slots__ = ("_buf", "_wiped")

    def __init__(self, data: bytes | bytearray | memoryview = b""):
        self._buf = bytearray(data)
        self._wiped = False
        # Zero a caller-owned bytearray so only this buffer holds the secret
        if isinstance(data, bytearray):
            data[:] = bytes(len(data))

    @classmethod
    def copy_of(cls, data: bytes | bytearray) -> SecretBuffer:
        """Create a buffer without touching the caller's object."""
        return cls(bytes(data))

    # ---- access ----

    def view(self) -> memoryview:
        """Zero-copy read-only view; invalid after ``wipe()``."""
        if self._wiped:
            raise ValueError("SecretBuffer has been wiped")
        return memoryview(self._buf).toreadonly()

    def __bytes__(self) -> bytes:
        if self._wiped:
            raise ValueError("SecretBuffer has been wiped")
        return bytes(self._buf)

    def hex(self) -> str:
        return bytes(self).hex()

    def __getitem__(self, item):
        return bytes(self)[item]

    def __len__(self) -> int:
        return len(self._buf)

    def __bool__(self) -> bool:
        return not self._wiped and len(self._buf) > 0

    @property
    def wiped(self) -> bool:
        return self._wiped

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecretBuffer):
            if self._wiped or other._wiped:
                return self._wiped and other._wiped
            return hmac.compare_digest(self._buf, other._buf)
        if isinstance(other, (bytes, bytearray)):
            return not self._wiped and hmac.compare_digest(self._buf, bytes(other))
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    # ---- release ----

    def wipe(self) -> None:
        """Overwrite the contents in place with zeros."""
        buf = self._buf
        buf[:] = bytes(len(buf))
        self._wiped = True

    def __enter__(self) -> SecretBuffer:
        return self

    def __exit__(self, *exc_info) -> None:
        self.wipe()

    def __del__(self) -> None:
        try:
            self.wipe()
        except AttributeError:
            # __init__ never finished
            pass

    def __repr__(self) -> str:
        state = "wiped" if self._wiped else f"{len(self._buf)} bytes"
        return f"SecretBuffer(<{state}>)"
