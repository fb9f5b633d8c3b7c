"""Rendering of a built family tree, as a Graphviz chart or as indented text."""

from pathlib import Path

import pydot

from graph import build_union_layout_graph
from models import FamilyTree, FamilyUnit, Member


def member_label(m: Member, recipe_count: int = 0) -> str:
    """One-line description: name, birth year, dagger for deceased, recipe count."""
    label = m.name
    if m.birth_year is not None:
        label += f" (b. {m.birth_year})"
    if m.is_deceased:
        label += " †"
    if recipe_count:
        label += f" [{recipe_count} recipe{'s' if recipe_count != 1 else ''}]"
    return label


def format_tree(tree: FamilyTree, recipe_counts: dict[int, int] | None = None) -> str:
    """Indented text rendering of the forest, followed by unconnected members."""
    counts = recipe_counts or {}
    lines: list[str] = []

    stack: list[tuple[FamilyUnit, int]] = [(u, 0) for u in reversed(tree.family_units)]
    while stack:
        unit, depth = stack.pop()
        labels = [member_label(p, counts.get(p.id, 0)) for p in unit.parents]
        lines.append("    " * depth + " + ".join(labels))
        stack.extend((child, depth + 1) for child in reversed(unit.children))

    if tree.orphans:
        if lines:
            lines.append("")
        lines.append("Not yet connected:")
        for m in tree.orphans:
            lines.append("  - " + member_label(m, counts.get(m.id, 0)))

    if not lines:
        lines.append("No family members yet")

    return "\n".join(lines)


def plot_tree(tree: FamilyTree, output_path: Path | None = None):
    """
    Plot the family tree using the union-node model and Graphviz hierarchical layout.

    - Parents appear above children (ancestors at top)
    - Couples are aligned horizontally on the same rank
    - Siblings hang from their parents' family node
    - Deceased members are drawn grey; orphans float unconnected

    Args:
        tree: Result of genealogy.build_family_tree
        output_path: Path to save the output image (PNG). If None, displays interactively.
    """
    H = build_union_layout_graph(tree)

    P = pydot.Dot(graph_type="digraph")
    P.set("rankdir", "TB")  # Top-to-bottom (ancestors at top)
    P.set("splines", "ortho")
    P.set("nodesep", "0.4")
    P.set("ranksep", "0.6")

    couples: list[tuple] = []

    for node, data in H.nodes(data=True):
        if data.get("node_type") == "family":
            P.add_node(pydot.Node(str(node), shape="point", width="0.1", height="0.1", label=""))
            spouses = data.get("spouses", ())
            if len(spouses) == 2:
                couples.append(spouses)
            continue

        birth_year = data.get("birth_year")
        label = data.get("member_name", "")
        if birth_year is not None:
            label += f"\n{birth_year}"
        if data.get("is_deceased"):
            label += " †"

        P.add_node(
            pydot.Node(
                str(node),
                label=label,
                shape="box",
                style="rounded,filled",
                fillcolor="lightgray" if data.get("is_deceased") else "wheat",
                fontsize="10",
            )
        )

    for u, v, data in H.edges(data=True):
        if data.get("edge_type") == "spouse_to_family":
            P.add_edge(pydot.Edge(str(u), str(v), dir="none", color="darkgray"))
        else:
            P.add_edge(pydot.Edge(str(u), str(v), color="darkgray"))

    for i, (a, b) in enumerate(couples):
        sg = pydot.Subgraph(f"couple_{i}", rank="same")
        sg.add_node(pydot.Node(str(a)))
        sg.add_node(pydot.Node(str(b)))
        P.add_subgraph(sg)

    if output_path:
        ext = output_path.suffix.lower().lstrip(".")
        if ext not in ("png", "svg", "pdf", "dot"):
            ext = "png"
        # "raw" writes the DOT source without calling Graphviz
        P.write(str(output_path), format="raw" if ext == "dot" else ext)
        print(f"Tree saved to {output_path}")
    else:
        import os
        import tempfile

        import matplotlib.image as mpimg
        import matplotlib.pyplot as plt

        with tempfile.NamedTemporaryFile(suffix=".png", delete=False) as f:
            preview_path = f.name
        try:
            P.write(preview_path, format="png")
            img = mpimg.imread(preview_path)
            plt.figure(figsize=(20, 16))
            plt.imshow(img)
            plt.axis("off")
            plt.tight_layout()
            plt.show()
        finally:
            os.unlink(preview_path)

    return P
