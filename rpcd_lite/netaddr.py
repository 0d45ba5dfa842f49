"""
Conversions for the hex-encoded addresses found in /proc/net tables.
"""

from __future__ import annotations

import socket
import struct
from typing import Optional


def hex_to_ipv4(word: str) -> str:
    """``0100007F`` -> ``127.0.0.1``.

    /proc/net/route prints each address as the in-memory 32-bit word, so the
    native byte order recovers the network-order bytes.
    """
    packed = struct.pack("=I", int(word, 16) & 0xFFFFFFFF)
    return socket.inet_ntop(socket.AF_INET, packed)


def hex_mask_bits(word: str) -> int:
    """Count the leading one-bits of a hex netmask word (``00FFFFFF`` -> 24)."""
    packed = struct.pack("=I", int(word, 16) & 0xFFFFFFFF)
    value = int.from_bytes(packed, "big")
    bits = 0
    while value & 0x80000000:
        bits += 1
        value = (value << 1) & 0xFFFFFFFF
    return bits


def hex_to_ipv6(digits: str) -> str:
    """32 hex digits in network order -> presentation form."""
    return socket.inet_ntop(socket.AF_INET6, bytes.fromhex(digits[:32]))


def hexaddr(addr: str, mask: Optional[str] = None) -> str:
    text = hex_to_ipv4(addr)
    if mask is not None:
        text += f"/{hex_mask_bits(mask)}"
    return text


def hex6addr(addr: str, prefix: Optional[str] = None) -> str:
    text = hex_to_ipv6(addr)
    if prefix is not None:
        text += f"/{int(prefix, 16)}"
    return text
