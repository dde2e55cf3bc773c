from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Set

from .models import Stack
from .resolver import ResolvedSet


def merge_compatible(stacks_a: Dict[str, Set[str]], stacks_b: Sequence[Stack]) -> Dict[str, Set[str]]:
    """Keep the stack ids present in both inputs, unioning their mixins."""

    merged: Dict[str, Set[str]] = {}
    for stack in stacks_b:
        if stack.id in stacks_a:
            merged[stack.id] = merged.get(stack.id, set()) | stacks_a[stack.id] | set(stack.mixins)
    return merged


def merge_stack_lists(stack_lists: Iterable[Sequence[Stack]]) -> List[Stack]:
    """Intersect stack ids across non-empty lists; empty lists are meta-buildpacks and skipped.

    Output is sorted descending by id with each stack's mixins ascending.
    """

    running: Optional[Dict[str, Set[str]]] = None
    for stacks in stack_lists:
        if not stacks:
            continue
        if running is None:
            running = {}
            for stack in stacks:
                running.setdefault(stack.id, set()).update(stack.mixins)
        else:
            running = merge_compatible(running, stacks)

    if not running:
        return []
    return [
        Stack(id=stack_id, mixins=tuple(sorted(running[stack_id])))
        for stack_id in sorted(running, reverse=True)
    ]


def merge_stacks(resolved: ResolvedSet) -> List[Stack]:
    """Stacks every buildpack in ``resolved`` is compatible with."""
    return merge_stack_lists(info.stacks for info in resolved.infos())
