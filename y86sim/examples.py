"""Reference versions of the small routines written in Y86-64 assembly."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .isa import to_signed


@dataclass
class ListNode:
    """Element of a singly linked list of words."""

    val: int
    next: Optional["ListNode"] = None


def sum_list(ls: Optional[ListNode]) -> int:
    """Sum the elements of a linked list."""
    val = 0
    while ls is not None:
        val = to_signed(val + ls.val)
        ls = ls.next
    return val


def rsum_list(ls: Optional[ListNode]) -> int:
    """Recursive version of sum_list."""
    if ls is None:
        return 0
    return to_signed(ls.val + rsum_list(ls.next))


def copy_block(src: Sequence[int]) -> tuple[list[int], int]:
    """Copy src; return the copy and the xor checksum of its words."""
    dest: list[int] = []
    result = 0
    for val in src:
        dest.append(val)
        result ^= val
    return dest, result


def ncopy(src: Sequence[int]) -> tuple[list[int], int]:
    """Copy src; return the copy and the number of positive words in it."""
    dst = list(src)
    return dst, sum(1 for val in dst if val > 0)