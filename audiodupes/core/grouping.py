"""Connected-component extraction over the file similarity graph."""

from __future__ import annotations

from collections.abc import Iterable, Mapping


def components(edges: Mapping[int, Iterable[int]]) -> list[set[int]]:
    """Return all components of the undirected graph described by edges.

    edges maps each file ID to its neighbors. Only IDs that appear in edges
    (as a key or a neighbor) are returned, and each appears in exactly one
    component. The search uses an explicit stack since components can be large.
    """
    visited: set[int] = set()
    comps: list[set[int]] = []

    # Keys without neighbors have no edges and are left out.
    nodes: list[int] = []
    for src, neighbors in edges.items():
        neighbors = list(neighbors)
        if neighbors:
            nodes.append(src)
            nodes.extend(neighbors)

    for src in nodes:
        if src in visited:
            continue
        visited.add(src)
        comp = {src}
        stack = [src]
        while stack:
            for dst in edges.get(stack.pop(), ()):
                if dst not in visited:
                    visited.add(dst)
                    comp.add(dst)
                    stack.append(dst)
        comps.append(comp)
    return comps
