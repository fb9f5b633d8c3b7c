"""NetworkX views of a family snapshot."""

from collections.abc import Sequence

import networkx as nx

from models import FamilyTree, Member, Relationship


def build_graph(members: Sequence[Member], relationships: Sequence[Relationship]) -> nx.DiGraph:
    """Build a directed PARENT_OF graph from fetched members and edges."""
    G = nx.DiGraph()

    # Note: use 'member_name' instead of 'name' to avoid conflict with pydot
    for m in members:
        G.add_node(
            m.id,
            member_name=m.name,
            birth_year=m.birth_year,
            is_deceased=m.is_deceased,
        )

    # Edges to unknown members are skipped rather than creating bare nodes
    for r in relationships:
        if r.parent_id in G and r.child_id in G:
            G.add_edge(r.parent_id, r.child_id, relationship_type="PARENT_OF")

    return G


def get_ego_subgraph(G: nx.DiGraph, center_id: int, radius: int = 2) -> nx.DiGraph:
    """
    Extract a subgraph containing members within a given degree of a center member.

    Args:
        G: The full graph
        center_id: The member ID to center the subgraph on
        radius: Maximum distance from center (default 2)

    Returns:
        A subgraph containing only nodes within `radius` edges of `center_id`
    """
    if center_id not in G:
        raise ValueError(f"Member ID {center_id} not found in graph")

    # Undirected view so both parents and children count toward the radius
    ego = nx.ego_graph(G.to_undirected(), center_id, radius=radius)
    return G.subgraph(ego.nodes()).copy()


def get_descendants_subgraph(G: nx.DiGraph, member_id: int) -> nx.DiGraph:
    """A member and everyone descended from them."""
    if member_id not in G:
        raise ValueError(f"Member ID {member_id} not found in graph")

    nodes = nx.descendants(G, member_id) | {member_id}
    return G.subgraph(nodes).copy()


def build_union_layout_graph(tree: FamilyTree) -> nx.DiGraph:
    """
    Build a layout graph using the union-node model from a built family tree.

    Every family unit becomes a small "family" node. Its parents point at it
    and the parents of each child unit hang from it, so couples share a rank
    and siblings align. Orphans are added as unconnected person nodes.

    Args:
        tree: Result of genealogy.build_family_tree

    Returns:
        A graph with `node_type` "person" or "family" suitable for hierarchical layout
    """
    H = nx.DiGraph()

    def add_person(m: Member):
        H.add_node(
            m.id,
            node_type="person",
            member_name=m.name,
            birth_year=m.birth_year,
            is_deceased=m.is_deceased,
        )

    for unit in tree.iter_units():
        fam_id = f"FAM_{unit.id}"
        H.add_node(fam_id, node_type="family", spouses=tuple(p.id for p in unit.parents))
        for parent in unit.parents:
            add_person(parent)
            H.add_edge(parent.id, fam_id, edge_type="spouse_to_family")

        # The child unit's own parent at index 0 is the child of this unit
        for child_unit in unit.children:
            if child_unit.parents:
                add_person(child_unit.parents[0])
                H.add_edge(fam_id, child_unit.parents[0].id, edge_type="family_to_child")

    for m in tree.orphans:
        add_person(m)

    return H
