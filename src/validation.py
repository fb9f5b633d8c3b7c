"""Relationship validation for a family snapshot."""

from collections import Counter
from collections.abc import Sequence

import networkx as nx

from models import Member, Relationship

# Youngest plausible age of a parent at a child's birth
MIN_PARENT_AGE = 12


def validate_family(members: Sequence[Member], relationships: Sequence[Relationship]) -> list[str]:
    """
    Validate the recorded relationships for:
    - Self links and references to unknown members
    - Duplicate edges
    - Children with more than two recorded parents
    - Cycles in parent-child relationships
    - Impossible ages (child born before parent, or parent too young)

    None of these stop the tree from being built; they are reported so the
    family can fix their data. Returns a list of warning messages.
    """
    warnings: list[str] = []
    members_by_id = {m.id: m for m in members}

    def name_of(member_id: int) -> str:
        m = members_by_id.get(member_id)
        return m.name if m else f"#{member_id}"

    edge_counts = Counter((r.parent_id, r.child_id) for r in relationships)

    for (parent_id, child_id), count in edge_counts.items():
        if parent_id == child_id:
            warnings.append(f"Self link: {name_of(parent_id)} is recorded as their own parent")
        for member_id in dict.fromkeys((parent_id, child_id)):
            if member_id not in members_by_id:
                warnings.append(
                    f"Unknown member #{member_id} in link {name_of(parent_id)} -> {name_of(child_id)}"
                )
        if count > 1:
            warnings.append(
                f"Duplicate link: {name_of(parent_id)} -> {name_of(child_id)} recorded {count} times"
            )

    parents_by_child: dict[int, list[int]] = {}
    for parent_id, child_id in edge_counts:
        parents_by_child.setdefault(child_id, []).append(parent_id)

    for child_id, parent_ids in parents_by_child.items():
        if len(parent_ids) > 2:
            names = ", ".join(name_of(pid) for pid in parent_ids)
            warnings.append(
                f"{name_of(child_id)} has {len(parent_ids)} recorded parents: {names}"
            )

    # Self links are already reported above
    parent_graph = nx.DiGraph([(p, c) for p, c in edge_counts if p != c])
    try:
        cycle = nx.find_cycle(parent_graph, orientation="original")
        cycle_names = [name_of(edge[0]) for edge in cycle]
        warnings.append(f"Cycle detected in parent-child relationships: {cycle_names}")
    except nx.NetworkXNoCycle:
        pass

    for parent_id, child_id in edge_counts:
        parent = members_by_id.get(parent_id)
        child = members_by_id.get(child_id)
        if parent is None or child is None:
            continue
        if parent.birth_year is None or child.birth_year is None:
            continue

        if child.birth_year < parent.birth_year:
            warnings.append(f"Impossible: {child.name} born before parent {parent.name}")
        elif child.birth_year - parent.birth_year < MIN_PARENT_AGE:
            warnings.append(
                f"Suspicious: {parent.name} was less than {MIN_PARENT_AGE} years old "
                f"when {child.name} was born"
            )

    return warnings
