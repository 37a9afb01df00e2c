"""Storage key hashers: xxHash64-based "twox" hashes and BLAKE2b digests."""

from __future__ import annotations

import enum
import hashlib
import struct
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview, str]

_MASK = (1 << 64) - 1
_PRIME1 = 11400714785074694791
_PRIME2 = 14029467366897019727
_PRIME3 = 1609587929392839161
_PRIME4 = 9650029242287828579
_PRIME5 = 2870177450012600261


def _as_bytes(data: BytesLike) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def _rotl(value: int, shift: int) -> int:
    return ((value << shift) | (value >> (64 - shift))) & _MASK


def _round(acc: int, lane: int) -> int:
    acc = (acc + lane * _PRIME2) & _MASK
    return (_rotl(acc, 31) * _PRIME1) & _MASK


def _merge(acc: int, value: int) -> int:
    acc ^= _round(0, value)
    return (acc * _PRIME1 + _PRIME4) & _MASK


def _xxh64(data: bytes, seed: int) -> int:
    length = len(data)
    view = memoryview(data)

    if length >= 32:
        v1 = (seed + _PRIME1 + _PRIME2) & _MASK
        v2 = (seed + _PRIME2) & _MASK
        v3 = seed & _MASK
        v4 = (seed - _PRIME1) & _MASK
        stripe_end = length - length % 32
        for a, b, c, d in struct.iter_unpack("<4Q", view[:stripe_end]):
            v1 = _round(v1, a)
            v2 = _round(v2, b)
            v3 = _round(v3, c)
            v4 = _round(v4, d)
        acc = (_rotl(v1, 1) + _rotl(v2, 7) + _rotl(v3, 12) + _rotl(v4, 18)) & _MASK
        for value in (v1, v2, v3, v4):
            acc = _merge(acc, value)
        tail = view[stripe_end:]
    else:
        acc = (seed + _PRIME5) & _MASK
        tail = view

    acc = (acc + length) & _MASK

    lanes_end = len(tail) - len(tail) % 8
    for (lane,) in struct.iter_unpack("<Q", tail[:lanes_end]):
        acc ^= _round(0, lane)
        acc = (_rotl(acc, 27) * _PRIME1 + _PRIME4) & _MASK
    tail = tail[lanes_end:]

    if len(tail) >= 4:
        (word,) = struct.unpack_from("<I", tail)
        acc ^= (word * _PRIME1) & _MASK
        acc = (_rotl(acc, 23) * _PRIME2 + _PRIME3) & _MASK
        tail = tail[4:]

    for byte in tail:
        acc ^= (byte * _PRIME5) & _MASK
        acc = (_rotl(acc, 11) * _PRIME1) & _MASK

    acc ^= acc >> 33
    acc = (acc * _PRIME2) & _MASK
    acc ^= acc >> 29
    acc = (acc * _PRIME3) & _MASK
    acc ^= acc >> 32
    return acc


def _twox(data: BytesLike, rounds: int) -> bytes:
    raw = _as_bytes(data)
    return b"".join(_xxh64(raw, seed).to_bytes(8, "little") for seed in range(rounds))


def twox_64(data: BytesLike) -> bytes:
    """Return the 8-byte little-endian xxHash64 (seed 0) of ``data``."""
    return _twox(data, 1)


def twox_128(data: BytesLike) -> bytes:
    """Return xxHash64 with seeds 0 and 1, concatenated (16 bytes)."""
    return _twox(data, 2)


def twox_256(data: BytesLike) -> bytes:
    """Return xxHash64 with seeds 0 to 3, concatenated (32 bytes)."""
    return _twox(data, 4)


def blake2_128(data: BytesLike) -> bytes:
    """Return the 16-byte BLAKE2b digest of ``data``."""
    return hashlib.blake2b(_as_bytes(data), digest_size=16).digest()


def blake2_256(data: BytesLike) -> bytes:
    """Return the 32-byte BLAKE2b digest of ``data``."""
    return hashlib.blake2b(_as_bytes(data), digest_size=32).digest()


class StorageHasher(enum.Enum):
    """The hashers a storage map may use for its keys."""

    IDENTITY = "Identity"
    BLAKE2_128 = "Blake2_128"
    BLAKE2_128_CONCAT = "Blake2_128Concat"
    BLAKE2_256 = "Blake2_256"
    TWOX_128 = "Twox128"
    TWOX_256 = "Twox256"
    TWOX_64_CONCAT = "Twox64Concat"

    def hash(self, data: BytesLike) -> bytes:
        """Hash ``data`` the way this hasher builds storage map keys."""
        raw = _as_bytes(data)
        if self is StorageHasher.IDENTITY:
            return raw
        if self is StorageHasher.BLAKE2_128:
            return blake2_128(raw)
        if self is StorageHasher.BLAKE2_128_CONCAT:
            return blake2_128(raw) + raw
        if self is StorageHasher.BLAKE2_256:
            return blake2_256(raw)
        if self is StorageHasher.TWOX_128:
            return twox_128(raw)
        if self is StorageHasher.TWOX_256:
            return twox_256(raw)
        return twox_64(raw) + raw