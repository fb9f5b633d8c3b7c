"""
Command line for a family's shared recipe book and family tree.

1) Create or join a family, add members (living or deceased).
2) Link members as parent -> child, or import them from a GEDCOM export.
3) Add recipes with their ingredients and steps, attributed to the members
   who created or taught them.
4) Build the family tree from the stored links and print, validate or plot it.
"""

import argparse
from pathlib import Path
import sys

from database import (
    add_comment,
    add_member,
    add_recipe,
    add_relationship,
    create_database,
    create_family,
    delete_recipe,
    fetch_members,
    fetch_relationships,
    get_family,
    get_member_recipe_counts,
    get_recipe,
    import_members,
    join_family,
    remove_relationship,
)
from genealogy import build_family_tree
from graph import build_graph, get_ego_subgraph
from models import RecipeAttribution
from parsing import normalize_data, parse_gedcom
from plotting import format_tree, plot_tree
from validation import validate_family

DEFAULT_DB_NAME = "family_recipes.db"
MAX_WARNINGS_SHOWN = 10


def default_db_path() -> Path:
    project_root = Path(__file__).parent.parent
    return project_root / DEFAULT_DB_NAME


def load_snapshot(conn, family_id: int):
    """Fetch a fresh copy of a family's members and links."""
    if get_family(conn, family_id) is None:
        raise ValueError(f"Family ID {family_id} not found")
    return fetch_members(conn, family_id), fetch_relationships(conn, family_id)


# ============================================================================
# Commands
# ============================================================================


def cmd_create_family(conn, args):
    family = create_family(conn, args.name, args.user, args.member_name)
    print(f"Created family '{family.name}' (id {family.id})")
    print(f"  Invite code: {family.invite_code}")


def cmd_join(conn, args):
    family = join_family(conn, args.invite_code, args.member_name, args.user)
    print(f"Joined family '{family.name}' (id {family.id})")


def cmd_add_member(conn, args):
    member = add_member(
        conn,
        args.family,
        args.name,
        birth_year=args.birth_year,
        is_deceased=args.deceased,
        added_by=args.user,
    )
    print(f"Added {member.name} (id {member.id})")


def cmd_link(conn, args):
    rel = add_relationship(conn, args.family, args.parent, args.child)
    print(f"Linked parent {rel.parent_id} -> child {rel.child_id} (link id {rel.id})")


def cmd_unlink(conn, args):
    remove_relationship(conn, args.link)
    print(f"Removed link {args.link}")


def cmd_import_gedcom(conn, args):
    print(f"Parsing GEDCOM file: {args.path}")
    reader = parse_gedcom(args.path)
    members, relationships = normalize_data(reader)
    print(f"  Found {len(members)} people and {len(relationships)} parent links")

    stored_members, stored_links = import_members(
        conn, args.family, members, relationships, added_by=args.user
    )
    print(f"  Imported {len(stored_members)} members and {len(stored_links)} links")


def cmd_add_recipe(conn, args):
    attributions = [
        RecipeAttribution(None, None, member_id, "created_by") for member_id in args.created_by
    ] + [
        RecipeAttribution(None, None, member_id, "learned_from", args.year_learned)
        for member_id in args.learned_from
    ]
    recipe = add_recipe(
        conn,
        args.family,
        args.title,
        created_by=args.user,
        attributions=attributions,
        ingredients=args.ingredient,
        steps=args.step,
        description=args.description,
    )
    print(f"Added recipe '{recipe.title}' (id {recipe.id})")


def cmd_show_recipe(conn, args):
    details = get_recipe(conn, args.recipe)
    recipe = details.recipe
    print(recipe.title)
    if recipe.description:
        print(f"  {recipe.description}")

    members = {m.id: m for m in fetch_members(conn, recipe.family_id)}
    for a in details.attributions:
        member = members.get(a.family_member_id)
        name = member.name if member else f"#{a.family_member_id}"
        line = f"  {a.attribution_type.replace('_', ' ').capitalize()}: {name}"
        if a.year_learned is not None:
            line += f" ({a.year_learned})"
        print(line)

    print("\nIngredients:")
    for ingredient in details.ingredients:
        print(f"  - {ingredient.text}")
    if not details.ingredients:
        print("  (none)")

    print("\nSteps:")
    for i, step in enumerate(details.steps, start=1):
        print(f"  {i}. {step.instruction}")
    if not details.steps:
        print("  (none)")

    if details.comments:
        print(f"\nComments ({len(details.comments)}):")
        for c in details.comments:
            print(f"  {c.user_id}: {c.content}")


def cmd_delete_recipe(conn, args):
    delete_recipe(conn, args.recipe)
    print(f"Deleted recipe {args.recipe}")


def cmd_comment(conn, args):
    if args.user is None:
        raise ValueError("Commenting needs --user")
    comment = add_comment(conn, args.recipe, args.user, args.content)
    print(f"Added comment {comment.id} to recipe {comment.recipe_id}")


def cmd_tree(conn, args):
    members, relationships = load_snapshot(conn, args.family)
    tree = build_family_tree(members, relationships)
    print(format_tree(tree, get_member_recipe_counts(conn, args.family)))

    if tree.unplaced:
        names = ", ".join(m.name for m in tree.unplaced)
        print(f"\nWarning: {len(tree.unplaced)} linked member(s) could not be placed: {names}")


def cmd_validate(conn, args):
    members, relationships = load_snapshot(conn, args.family)
    print(f"Validating {len(members)} members and {len(relationships)} links...")
    warnings = validate_family(members, relationships)
    if warnings:
        print(f"  Found {len(warnings)} validation warnings:")
        for w in warnings[:MAX_WARNINGS_SHOWN]:
            print(f"    - {w}")
        if len(warnings) > MAX_WARNINGS_SHOWN:
            print(f"    ... and {len(warnings) - MAX_WARNINGS_SHOWN} more")
    else:
        print("  No validation issues found")


def cmd_plot(conn, args):
    members, relationships = load_snapshot(conn, args.family)

    if args.center is not None:
        G = get_ego_subgraph(build_graph(members, relationships), args.center, args.radius)
        members = [m for m in members if m.id in G]
        relationships = [r for r in relationships if G.has_edge(r.parent_id, r.child_id)]

    tree = build_family_tree(members, relationships)
    plot_tree(tree, args.output)


# ============================================================================
# Main
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--db", type=Path, default=None, help="SQLite database file")
    parser.add_argument("--user", default=None, help="Account id acting on the family")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create-family", help="Create a family and join it")
    p.add_argument("name")
    p.add_argument("--member-name", required=True, help="Your name in the family")
    p.set_defaults(func=cmd_create_family)

    p = sub.add_parser("join", help="Join a family with an invite code")
    p.add_argument("invite_code")
    p.add_argument("--member-name", required=True)
    p.set_defaults(func=cmd_join)

    p = sub.add_parser("add-member", help="Add a member to a family")
    p.add_argument("family", type=int)
    p.add_argument("name")
    p.add_argument("--birth-year", type=int)
    p.add_argument("--deceased", action="store_true")
    p.set_defaults(func=cmd_add_member)

    p = sub.add_parser("link", help="Record a parent -> child link")
    p.add_argument("family", type=int)
    p.add_argument("parent", type=int)
    p.add_argument("child", type=int)
    p.set_defaults(func=cmd_link)

    p = sub.add_parser("unlink", help="Remove a parent -> child link")
    p.add_argument("link", type=int)
    p.set_defaults(func=cmd_unlink)

    p = sub.add_parser("import-gedcom", help="Import members and links from a GEDCOM file")
    p.add_argument("family", type=int)
    p.add_argument("path", type=Path)
    p.set_defaults(func=cmd_import_gedcom)

    p = sub.add_parser("add-recipe", help="Add a recipe attributed to family members")
    p.add_argument("family", type=int)
    p.add_argument("title")
    p.add_argument("--description")
    p.add_argument("--created-by", type=int, action="append", default=[], metavar="MEMBER")
    p.add_argument("--learned-from", type=int, action="append", default=[], metavar="MEMBER")
    p.add_argument("--year-learned", type=int)
    p.add_argument("--ingredient", action="append", default=[], help="Repeat in order of use")
    p.add_argument("--step", action="append", default=[], help="Repeat in cooking order")
    p.set_defaults(func=cmd_add_recipe)

    p = sub.add_parser("show-recipe", help="Print a recipe with its ingredients and steps")
    p.add_argument("recipe", type=int)
    p.set_defaults(func=cmd_show_recipe)

    p = sub.add_parser("delete-recipe", help="Delete a recipe and everything attached to it")
    p.add_argument("recipe", type=int)
    p.set_defaults(func=cmd_delete_recipe)

    p = sub.add_parser("comment", help="Comment on a recipe")
    p.add_argument("recipe", type=int)
    p.add_argument("content")
    p.set_defaults(func=cmd_comment)

    p = sub.add_parser("tree", help="Print the family tree")
    p.add_argument("family", type=int)
    p.set_defaults(func=cmd_tree)

    p = sub.add_parser("validate", help="Check the family links for problems")
    p.add_argument("family", type=int)
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("plot", help="Render the family tree with Graphviz")
    p.add_argument("family", type=int)
    p.add_argument("--output", type=Path, help="png, svg, pdf or dot file; shown if omitted")
    p.add_argument("--center", type=int, help="Only plot members around this member id")
    p.add_argument("--radius", type=int, default=2)
    p.set_defaults(func=cmd_plot)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    db_path = args.db or default_db_path()

    conn = create_database(db_path)
    try:
        args.func(conn, args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
