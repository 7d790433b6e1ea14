"""Post-extraction graph analysis (cycle detection, inheritance depth)."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence


def find_cycles(adjacency: Mapping[str, Sequence[str]]) -> list[list[str]]:
    """Return strongly-connected components of size ≥ 2 using Tarjan's algorithm.

    Each returned list is a group of node IDs that are mutually reachable via
    the adjacency edges, i.e. a dependency cycle.  Nodes that are not part
    of any cycle are omitted, and so are self-loops.  Groups are sorted
    internally and the list of groups is sorted, so the result does not
    depend on dict ordering.

    The traversal keeps an explicit stack instead of recursing.
    """
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    sccs: list[list[str]] = []
    counter = 0

    for root in sorted(adjacency):
        if root in index:
            continue

        # Each frame: (node, iterator over its successors).
        work: list[tuple[str, Iterator[str]]] = []
        index[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work.append((root, iter(sorted(adjacency.get(root, ())))))

        while work:
            v, successors = work[-1]
            advanced = False
            for w in successors:
                if w not in adjacency:
                    continue
                if w not in index:
                    index[w] = lowlink[w] = counter
                    counter += 1
                    stack.append(w)
                    on_stack.add(w)
                    work.append((w, iter(sorted(adjacency.get(w, ())))))
                    advanced = True
                    break
                if w in on_stack:
                    lowlink[v] = min(lowlink[v], index[w])
            if advanced:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[v])

            if lowlink[v] == index[v]:
                scc: list[str] = []
                while True:
                    w = stack.pop()
                    on_stack.discard(w)
                    scc.append(w)
                    if w == v:
                        break
                if len(scc) >= 2:
                    sccs.append(sorted(scc))

    return sorted(sccs)


def inheritance_depths(superclasses: Mapping[str, str | None]) -> dict[str, int]:
    """Depth of each class along superclass links that stay inside the set.

    A class whose superclass is absent from *superclasses* (or None) is a
    root with depth 0.  A malformed superclass loop stops at the first
    repeated class instead of looping forever.
    """
    depths: dict[str, int] = {}

    for name in superclasses:
        if name in depths:
            continue
        chain: list[str] = []
        seen: set[str] = set()
        current: str | None = name
        base = -1
        while current is not None and current in superclasses:
            if current in depths:
                base = depths[current]
                break
            if current in seen:
                break
            seen.add(current)
            chain.append(current)
            current = superclasses[current]

        # chain[-1] is the topmost class reached; assign depths top-down.
        for offset, cls in enumerate(reversed(chain)):
            depths[cls] = base + 1 + offset

    return depths
