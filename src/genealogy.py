"""Family-unit forest reconstruction from members and parent->child edges."""

from collections.abc import Callable, Iterable, Iterator, Sequence
import itertools

from models import FamilyTree, FamilyUnit, Member, Relationship

# Insertion-ordered set: dict keys with None values
OrderedIds = dict[int, None]


def unit_id(parent_ids: Iterable[int]) -> str:
    """Stable rendering key for a unit: sorted, hyphen-joined parent ids."""
    return "-".join(sorted((str(pid) for pid in parent_ids)))


def build_indices(
    members_by_id: dict[int, Member], relationships: Sequence[Relationship]
) -> tuple[dict[int, OrderedIds], dict[int, OrderedIds]]:
    """
    Build the child->parents and parent->children maps.

    Edges naming an id that is not in `members_by_id` are left out, as if the
    unresolved side did not exist. Duplicate edges collapse. Both maps keep the
    order in which ids first appear in `relationships`.
    """
    child_to_parents: dict[int, OrderedIds] = {}
    parent_to_children: dict[int, OrderedIds] = {}

    for rel in relationships:
        if rel.parent_id not in members_by_id or rel.child_id not in members_by_id:
            continue
        child_to_parents.setdefault(rel.child_id, {})[rel.parent_id] = None
        parent_to_children.setdefault(rel.parent_id, {})[rel.child_id] = None

    return child_to_parents, parent_to_children


def infer_couples(child_to_parents: dict[int, OrderedIds]) -> dict[int, OrderedIds]:
    """
    Pair up parents who share a child.

    Every unordered pair drawn from one child's parents is a couple, so a child
    with three recorded parents yields three couples. A member may have several
    partners.
    """
    couples: dict[int, OrderedIds] = {}
    for parents in child_to_parents.values():
        for a, b in itertools.combinations(parents, 2):
            couples.setdefault(a, {})[b] = None
            couples.setdefault(b, {})[a] = None
    return couples


def build_family_tree(
    members: Sequence[Member], relationships: Sequence[Relationship]
) -> FamilyTree:
    """
    Reconstruct the family tree as a forest of family units.

    Roots are members with children but no recorded parent. Each root is paired
    with a partner who is also a root when one is free, and every unit then
    pulls in the units of its children, depth first. A member is placed at most
    once; the first path to reach a member wins and any later path skips it,
    which also breaks cycles. Components with no root at all (pure cycles) are
    seeded from their first member in `members` order.

    Children are listed in the order their edges first appear in
    `relationships`; roots follow the order of `members`.

    Args:
        members: Members of one family, unique by id
        relationships: Parent->child edges; may be duplicated, cyclic or dangling

    Returns:
        FamilyTree with the unit forest, the orphans (members touched by no
        edge), and the members that have edges but could not be placed
    """
    members_by_id = {m.id: m for m in members}
    child_to_parents, parent_to_children = build_indices(members_by_id, relationships)
    couples = infer_couples(child_to_parents)

    placed: set[int] = set()

    def first_free_partner(
        member_id: int, eligible: Callable[[int], bool] | None = None
    ) -> int | None:
        for partner in couples.get(member_id, {}):
            if partner in placed:
                continue
            if eligible is None or eligible(partner):
                return partner
        return None

    def open_unit(parent_ids: list[int]) -> tuple[FamilyUnit, list[int], Iterator[int]]:
        """Place the parents and return the unit with an iterator over its candidate children."""
        parents = [members_by_id[pid] for pid in parent_ids if pid in members_by_id]

        child_ids: OrderedIds = {}
        for pid in parent_ids:
            child_ids.update(parent_to_children.get(pid, {}))

        placed.update(parent_ids)
        return FamilyUnit(id=unit_id(parent_ids), parents=parents), parent_ids, iter(child_ids)

    def build_unit(parent_ids: list[int]) -> FamilyUnit:
        # Explicit stack instead of recursion, so long chains cannot hit the
        # interpreter's recursion limit. Each child is finished before its next
        # sibling is looked at, as a depth-first walk would.
        top = open_unit(parent_ids)
        stack = [top]
        while stack:
            unit, unit_parent_ids, pending = stack[-1]
            for child_id in pending:
                if child_id in placed:
                    continue
                recorded = child_to_parents.get(child_id, {})
                if not any(pid in recorded for pid in unit_parent_ids):
                    continue

                placed.add(child_id)
                partner = first_free_partner(child_id)
                frame = open_unit([child_id] if partner is None else [child_id, partner])
                unit.children.append(frame[0])
                stack.append(frame)
                break
            else:
                stack.pop()

        return top[0]

    def seed_unit(member_id: int, eligible: Callable[[int], bool] | None = None):
        partner = first_free_partner(member_id, eligible)
        if partner is None:
            return build_unit([member_id])
        return build_unit([member_id, partner])

    def is_root(member_id: int) -> bool:
        return member_id in parent_to_children and member_id not in child_to_parents

    family_units: list[FamilyUnit] = []

    for member in members:
        if is_root(member.id) and member.id not in placed:
            family_units.append(seed_unit(member.id, is_root))

    # Cycles leave every member with a parent, so nothing above reached them
    for member in members:
        if member.id in parent_to_children and member.id not in placed:
            family_units.append(seed_unit(member.id))

    connected_ids: set[int] = set()
    for rel in relationships:
        connected_ids.add(rel.parent_id)
        connected_ids.add(rel.child_id)

    orphans = [m for m in members if m.id not in connected_ids]
    unplaced = [m for m in members if m.id in connected_ids and m.id not in placed]

    return FamilyTree(family_units=family_units, orphans=orphans, unplaced=unplaced)
