"""SQLite storage for families, members, relationships and recipes."""

from collections.abc import Sequence
from pathlib import Path
import sqlite3

from models import (
    Comment,
    Family,
    Ingredient,
    Member,
    MemberWithRelations,
    Recipe,
    RecipeAttribution,
    RecipeWithDetails,
    Relationship,
    Step,
)

MEMBER_COLUMNS = (
    "id, family_id, name, birth_year, is_deceased, user_id, photo_url, added_by, created_at"
)
RECIPE_COLUMNS = (
    "id, family_id, title, description, origin_story, origin_year, prep_time, "
    "cook_time, servings, difficulty, created_by, created_at, updated_at"
)

# Columns a caller may change through update_member / pass to add_recipe and update_recipe
MEMBER_UPDATABLE = {"name", "birth_year", "is_deceased", "user_id", "photo_url"}
RECIPE_DETAILS = {
    "description",
    "origin_story",
    "origin_year",
    "prep_time",
    "cook_time",
    "servings",
    "difficulty",
}
ATTRIBUTION_TYPES = ("created_by", "learned_from")


def create_database(db_path: Path | str) -> sqlite3.Connection:
    """Open (or create) the SQLite database and make sure all tables exist."""
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA foreign_keys = ON")
    cursor = conn.cursor()

    # Invite codes are produced here, not by the application
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS family (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            invite_code TEXT NOT NULL UNIQUE DEFAULT (lower(hex(randomblob(4)))),
            created_by TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS family_member (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            family_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            birth_year INTEGER,
            is_deceased INTEGER NOT NULL DEFAULT 0,
            user_id TEXT,
            photo_url TEXT,
            added_by TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (family_id) REFERENCES family(id)
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS family_member_relationship (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            family_id INTEGER NOT NULL,
            parent_id INTEGER NOT NULL,
            child_id INTEGER NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (family_id) REFERENCES family(id),
            FOREIGN KEY (parent_id) REFERENCES family_member(id) ON DELETE CASCADE,
            FOREIGN KEY (child_id) REFERENCES family_member(id) ON DELETE CASCADE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS recipe (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            family_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            origin_story TEXT,
            origin_year INTEGER,
            prep_time INTEGER,
            cook_time INTEGER,
            servings INTEGER,
            difficulty TEXT CHECK (difficulty IN ('easy', 'medium', 'hard')),
            created_by TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (family_id) REFERENCES family(id)
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS recipe_attribution (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            recipe_id INTEGER NOT NULL,
            family_member_id INTEGER NOT NULL,
            attribution_type TEXT NOT NULL CHECK (attribution_type IN ('created_by', 'learned_from')),
            year_learned INTEGER,
            FOREIGN KEY (recipe_id) REFERENCES recipe(id) ON DELETE CASCADE,
            FOREIGN KEY (family_member_id) REFERENCES family_member(id) ON DELETE CASCADE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS ingredient (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            recipe_id INTEGER NOT NULL,
            text TEXT NOT NULL,
            order_index INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (recipe_id) REFERENCES recipe(id) ON DELETE CASCADE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS step (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            recipe_id INTEGER NOT NULL,
            instruction TEXT NOT NULL,
            order_index INTEGER NOT NULL DEFAULT 0,
            image_url TEXT,
            video_url TEXT,
            FOREIGN KEY (recipe_id) REFERENCES recipe(id) ON DELETE CASCADE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS comment (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            recipe_id INTEGER NOT NULL,
            user_id TEXT NOT NULL,
            content TEXT NOT NULL,
            image_url TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (recipe_id) REFERENCES recipe(id) ON DELETE CASCADE
        )
    """)

    conn.commit()
    return conn


def _member_from_row(row: tuple) -> Member:
    member = Member(*row)
    member.is_deceased = bool(member.is_deceased)
    return member


# ============================================================================
# Families
# ============================================================================


def get_family(conn: sqlite3.Connection, family_id: int) -> Family | None:
    row = conn.execute(
        "SELECT id, name, invite_code, created_by, created_at FROM family WHERE id = ?",
        (family_id,),
    ).fetchone()
    return Family(*row) if row else None


def get_family_by_invite_code(conn: sqlite3.Connection, invite_code: str) -> Family | None:
    row = conn.execute(
        "SELECT id, name, invite_code, created_by, created_at FROM family WHERE invite_code = ?",
        (invite_code.strip().lower(),),
    ).fetchone()
    return Family(*row) if row else None


def get_user_families(conn: sqlite3.Connection, user_id: str) -> list[Family]:
    """Families the account belongs to through a linked member."""
    rows = conn.execute(
        """
        SELECT DISTINCT f.id, f.name, f.invite_code, f.created_by, f.created_at
        FROM family f
        JOIN family_member m ON m.family_id = f.id
        WHERE m.user_id = ?
        ORDER BY f.id
        """,
        (user_id,),
    ).fetchall()
    return [Family(*row) for row in rows]


def create_family(
    conn: sqlite3.Connection, name: str, user_id: str, creator_name: str
) -> Family:
    """Create a family and add its creator as the first member."""
    cursor = conn.cursor()
    cursor.execute("INSERT INTO family (name, created_by) VALUES (?, ?)", (name, user_id))
    family_id = cursor.lastrowid
    cursor.execute(
        "INSERT INTO family_member (family_id, name, user_id, added_by) VALUES (?, ?, ?, ?)",
        (family_id, creator_name, user_id, user_id),
    )
    conn.commit()
    return get_family(conn, family_id)


def join_family(
    conn: sqlite3.Connection, invite_code: str, member_name: str, user_id: str
) -> Family:
    """Add the account to the family behind `invite_code`."""
    family = get_family_by_invite_code(conn, invite_code)
    if family is None:
        raise ValueError("Family not found. Check your invite code.")

    existing = conn.execute(
        "SELECT id FROM family_member WHERE family_id = ? AND user_id = ?",
        (family.id, user_id),
    ).fetchone()
    if existing:
        raise ValueError("You are already a member of this family.")

    add_member(conn, family.id, member_name, user_id=user_id, added_by=user_id)
    return family


# ============================================================================
# Members
# ============================================================================


def fetch_members(conn: sqlite3.Connection, family_id: int) -> list[Member]:
    """All members of a family in creation order."""
    rows = conn.execute(
        f"SELECT {MEMBER_COLUMNS} FROM family_member WHERE family_id = ? ORDER BY created_at, id",
        (family_id,),
    ).fetchall()
    return [_member_from_row(row) for row in rows]


def get_member(conn: sqlite3.Connection, member_id: int) -> Member | None:
    row = conn.execute(
        f"SELECT {MEMBER_COLUMNS} FROM family_member WHERE id = ?", (member_id,)
    ).fetchone()
    return _member_from_row(row) if row else None


def add_member(
    conn: sqlite3.Connection,
    family_id: int,
    name: str,
    birth_year: int | None = None,
    is_deceased: bool = False,
    added_by: str | None = None,
    user_id: str | None = None,
    photo_url: str | None = None,
) -> Member:
    if get_family(conn, family_id) is None:
        raise ValueError(f"Family ID {family_id} not found")

    cursor = conn.cursor()
    cursor.execute(
        """
        INSERT INTO family_member (family_id, name, birth_year, is_deceased, user_id, photo_url, added_by)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (family_id, name, birth_year, int(is_deceased), user_id, photo_url, added_by),
    )
    conn.commit()
    return get_member(conn, cursor.lastrowid)


def update_member(conn: sqlite3.Connection, member_id: int, **updates) -> Member:
    """Update the given columns of a member. Unknown columns raise ValueError."""
    unknown = set(updates) - MEMBER_UPDATABLE
    if unknown:
        raise ValueError(f"Cannot update member fields: {sorted(unknown)}")
    if get_member(conn, member_id) is None:
        raise ValueError(f"Member ID {member_id} not found")

    if "is_deceased" in updates:
        updates["is_deceased"] = int(updates["is_deceased"])
    if updates:
        assignments = ", ".join(f"{column} = ?" for column in updates)
        conn.execute(
            f"UPDATE family_member SET {assignments} WHERE id = ?",
            (*updates.values(), member_id),
        )
        conn.commit()
    return get_member(conn, member_id)


# ============================================================================
# Relationships
# ============================================================================


def fetch_relationships(conn: sqlite3.Connection, family_id: int) -> list[Relationship]:
    """All parent->child edges of a family in creation order."""
    rows = conn.execute(
        """
        SELECT id, family_id, parent_id, child_id, created_at
        FROM family_member_relationship
        WHERE family_id = ?
        ORDER BY created_at, id
        """,
        (family_id,),
    ).fetchall()
    return [Relationship(*row) for row in rows]


def add_relationship(
    conn: sqlite3.Connection, family_id: int, parent_id: int, child_id: int
) -> Relationship:
    """Record that `parent_id` is a parent of `child_id`."""
    if parent_id == child_id:
        raise ValueError("Parent and child cannot be the same person")

    for member_id in (parent_id, child_id):
        member = get_member(conn, member_id)
        if member is None or member.family_id != family_id:
            raise ValueError(f"Member ID {member_id} not found in family {family_id}")

    existing = conn.execute(
        """
        SELECT id FROM family_member_relationship
        WHERE family_id = ? AND parent_id = ? AND child_id = ?
        """,
        (family_id, parent_id, child_id),
    ).fetchone()
    if existing:
        raise ValueError("This relationship already exists")

    cursor = conn.cursor()
    cursor.execute(
        "INSERT INTO family_member_relationship (family_id, parent_id, child_id) VALUES (?, ?, ?)",
        (family_id, parent_id, child_id),
    )
    conn.commit()

    row = conn.execute(
        "SELECT id, family_id, parent_id, child_id, created_at FROM family_member_relationship WHERE id = ?",
        (cursor.lastrowid,),
    ).fetchone()
    return Relationship(*row)


def remove_relationship(conn: sqlite3.Connection, relationship_id: int) -> None:
    cursor = conn.cursor()
    cursor.execute("DELETE FROM family_member_relationship WHERE id = ?", (relationship_id,))
    if cursor.rowcount == 0:
        raise ValueError(f"Relationship ID {relationship_id} not found")
    conn.commit()


def import_members(
    conn: sqlite3.Connection,
    family_id: int,
    members: Sequence[Member],
    relationships: Sequence[Relationship],
    added_by: str | None = None,
) -> tuple[list[Member], list[Relationship]]:
    """
    Store members and edges parsed from an external source (e.g. GEDCOM).

    The incoming ids are only used to wire up the edges; every member gets a
    fresh row id. Edges to unknown ids, self links and repeated edges are
    skipped.
    """
    if get_family(conn, family_id) is None:
        raise ValueError(f"Family ID {family_id} not found")

    cursor = conn.cursor()
    id_map: dict[int, int] = {}
    for m in members:
        cursor.execute(
            """
            INSERT INTO family_member (family_id, name, birth_year, is_deceased, user_id, photo_url, added_by)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (family_id, m.name, m.birth_year, int(m.is_deceased), m.user_id, m.photo_url, added_by),
        )
        id_map[m.id] = cursor.lastrowid

    edges = dict.fromkeys(
        (id_map[r.parent_id], id_map[r.child_id])
        for r in relationships
        if r.parent_id in id_map and r.child_id in id_map and r.parent_id != r.child_id
    )
    cursor.executemany(
        "INSERT INTO family_member_relationship (family_id, parent_id, child_id) VALUES (?, ?, ?)",
        [(family_id, parent_id, child_id) for parent_id, child_id in edges],
    )

    conn.commit()

    new_ids = set(id_map.values())
    stored_members = [m for m in fetch_members(conn, family_id) if m.id in new_ids]
    stored_edges = [
        r for r in fetch_relationships(conn, family_id) if (r.parent_id, r.child_id) in edges
    ]
    return stored_members, stored_edges


# ============================================================================
# Recipes
# ============================================================================


def add_recipe(
    conn: sqlite3.Connection,
    family_id: int,
    title: str,
    created_by: str | None = None,
    attributions: Sequence[RecipeAttribution] = (),
    ingredients: Sequence[str] = (),
    steps: Sequence[str] = (),
    **details,
) -> Recipe:
    """
    Insert a recipe with its ingredients, steps and the members it is attributed to.

    Ingredients and steps are stored in the order given; blank entries are
    dropped before numbering.
    """
    unknown = set(details) - RECIPE_DETAILS
    if unknown:
        raise ValueError(f"Unknown recipe fields: {sorted(unknown)}")
    if not title.strip():
        raise ValueError("Please enter a recipe title")
    for attribution in attributions:
        if attribution.attribution_type not in ATTRIBUTION_TYPES:
            raise ValueError(f"Unknown attribution type: {attribution.attribution_type}")
        member = get_member(conn, attribution.family_member_id)
        if member is None or member.family_id != family_id:
            raise ValueError(
                f"Member ID {attribution.family_member_id} not found in family {family_id}"
            )

    columns = ["family_id", "title", "created_by", *details]
    placeholders = ", ".join("?" for _ in columns)
    cursor = conn.cursor()
    cursor.execute(
        f"INSERT INTO recipe ({', '.join(columns)}) VALUES ({placeholders})",
        (family_id, title.strip(), created_by, *details.values()),
    )
    recipe_id = cursor.lastrowid

    cursor.executemany(
        """
        INSERT INTO recipe_attribution (recipe_id, family_member_id, attribution_type, year_learned)
        VALUES (?, ?, ?, ?)
        """,
        [
            (recipe_id, a.family_member_id, a.attribution_type, a.year_learned)
            for a in attributions
        ],
    )
    _store_ingredients_and_steps(cursor, recipe_id, ingredients, steps)
    conn.commit()

    return get_recipe(conn, recipe_id).recipe


def _store_ingredients_and_steps(
    cursor: sqlite3.Cursor,
    recipe_id: int,
    ingredients: Sequence[str] | None,
    steps: Sequence[str] | None,
):
    """Number the non-blank entries from 0; None leaves that list untouched."""
    if ingredients is not None:
        cursor.execute("DELETE FROM ingredient WHERE recipe_id = ?", (recipe_id,))
        cursor.executemany(
            "INSERT INTO ingredient (recipe_id, text, order_index) VALUES (?, ?, ?)",
            [
                (recipe_id, text, i)
                for i, text in enumerate(t.strip() for t in ingredients if t.strip())
            ],
        )
    if steps is not None:
        cursor.execute("DELETE FROM step WHERE recipe_id = ?", (recipe_id,))
        cursor.executemany(
            "INSERT INTO step (recipe_id, instruction, order_index) VALUES (?, ?, ?)",
            [
                (recipe_id, instruction, i)
                for i, instruction in enumerate(s.strip() for s in steps if s.strip())
            ],
        )


def fetch_recipes(conn: sqlite3.Connection, family_id: int) -> list[Recipe]:
    rows = conn.execute(
        f"SELECT {RECIPE_COLUMNS} FROM recipe WHERE family_id = ? ORDER BY created_at DESC, id DESC",
        (family_id,),
    ).fetchall()
    return [Recipe(*row) for row in rows]


def get_recipe(conn: sqlite3.Connection, recipe_id: int) -> RecipeWithDetails:
    """A recipe with ingredients and steps in order_index order, attributions and comments."""
    row = conn.execute(f"SELECT {RECIPE_COLUMNS} FROM recipe WHERE id = ?", (recipe_id,)).fetchone()
    if row is None:
        raise ValueError(f"Recipe ID {recipe_id} not found")

    ingredients = conn.execute(
        "SELECT id, recipe_id, text, order_index FROM ingredient WHERE recipe_id = ? ORDER BY order_index, id",
        (recipe_id,),
    ).fetchall()
    steps = conn.execute(
        """
        SELECT id, recipe_id, instruction, order_index, image_url, video_url
        FROM step WHERE recipe_id = ? ORDER BY order_index, id
        """,
        (recipe_id,),
    ).fetchall()
    attributions = conn.execute(
        """
        SELECT id, recipe_id, family_member_id, attribution_type, year_learned
        FROM recipe_attribution WHERE recipe_id = ? ORDER BY id
        """,
        (recipe_id,),
    ).fetchall()
    comments = conn.execute(
        """
        SELECT id, recipe_id, user_id, content, image_url, created_at
        FROM comment WHERE recipe_id = ? ORDER BY created_at, id
        """,
        (recipe_id,),
    ).fetchall()

    return RecipeWithDetails(
        recipe=Recipe(*row),
        ingredients=[Ingredient(*r) for r in ingredients],
        steps=[Step(*r) for r in steps],
        attributions=[RecipeAttribution(*r) for r in attributions],
        comments=[Comment(*r) for r in comments],
    )


def update_recipe(
    conn: sqlite3.Connection,
    recipe_id: int,
    ingredients: Sequence[str] | None = None,
    steps: Sequence[str] | None = None,
    **updates,
) -> RecipeWithDetails:
    """
    Change recipe fields and optionally replace its ingredient or step list.

    Only `title` and the add_recipe detail fields may be updated. A list that
    is passed replaces the stored one entirely and is renumbered from 0.
    """
    unknown = set(updates) - RECIPE_DETAILS - {"title"}
    if unknown:
        raise ValueError(f"Cannot update recipe fields: {sorted(unknown)}")
    if "title" in updates and not str(updates["title"]).strip():
        raise ValueError("Please enter a recipe title")
    get_recipe(conn, recipe_id)

    cursor = conn.cursor()
    assignments = "".join(f"{column} = ?, " for column in updates)
    cursor.execute(
        f"UPDATE recipe SET {assignments}updated_at = CURRENT_TIMESTAMP WHERE id = ?",
        (*updates.values(), recipe_id),
    )
    _store_ingredients_and_steps(cursor, recipe_id, ingredients, steps)
    conn.commit()

    return get_recipe(conn, recipe_id)


def delete_recipe(conn: sqlite3.Connection, recipe_id: int) -> None:
    """Delete a recipe; its ingredients, steps, attributions and comments go with it."""
    cursor = conn.cursor()
    cursor.execute("DELETE FROM recipe WHERE id = ?", (recipe_id,))
    if cursor.rowcount == 0:
        raise ValueError(f"Recipe ID {recipe_id} not found")
    conn.commit()


def add_comment(
    conn: sqlite3.Connection,
    recipe_id: int,
    user_id: str,
    content: str,
    image_url: str | None = None,
) -> Comment:
    get_recipe(conn, recipe_id)
    if not content.strip():
        raise ValueError("Comment cannot be empty")

    cursor = conn.cursor()
    cursor.execute(
        "INSERT INTO comment (recipe_id, user_id, content, image_url) VALUES (?, ?, ?, ?)",
        (recipe_id, user_id, content.strip(), image_url),
    )
    conn.commit()

    row = conn.execute(
        "SELECT id, recipe_id, user_id, content, image_url, created_at FROM comment WHERE id = ?",
        (cursor.lastrowid,),
    ).fetchone()
    return Comment(*row)


def get_member_recipe_counts(conn: sqlite3.Connection, family_id: int) -> dict[int, int]:
    """Number of distinct recipes attributed to each member of a family."""
    rows = conn.execute(
        """
        SELECT a.family_member_id, COUNT(DISTINCT a.recipe_id)
        FROM recipe_attribution a
        JOIN recipe r ON r.id = a.recipe_id
        WHERE r.family_id = ?
        GROUP BY a.family_member_id
        """,
        (family_id,),
    ).fetchall()
    return {member_id: count for member_id, count in rows}


def get_member_with_relations(conn: sqlite3.Connection, member_id: int) -> MemberWithRelations:
    """A member with their recorded parents, children and attributed recipes."""
    member = get_member(conn, member_id)
    if member is None:
        raise ValueError(f"Member ID {member_id} not found")

    prefixed = ", ".join(f"m.{column.strip()}" for column in MEMBER_COLUMNS.split(","))
    parents = conn.execute(
        f"""
        SELECT {prefixed} FROM family_member m
        JOIN family_member_relationship r ON r.parent_id = m.id
        WHERE r.child_id = ?
        ORDER BY r.id
        """,
        (member_id,),
    ).fetchall()
    children = conn.execute(
        f"""
        SELECT {prefixed} FROM family_member m
        JOIN family_member_relationship r ON r.child_id = m.id
        WHERE r.parent_id = ?
        ORDER BY r.id
        """,
        (member_id,),
    ).fetchall()

    recipe_prefixed = ", ".join(f"r.{column.strip()}" for column in RECIPE_COLUMNS.split(","))
    recipes = conn.execute(
        f"""
        SELECT DISTINCT {recipe_prefixed} FROM recipe r
        JOIN recipe_attribution a ON a.recipe_id = r.id
        WHERE a.family_member_id = ?
        ORDER BY r.id
        """,
        (member_id,),
    ).fetchall()

    return MemberWithRelations(
        member=member,
        parents=[_member_from_row(row) for row in dict.fromkeys(parents)],
        children=[_member_from_row(row) for row in dict.fromkeys(children)],
        recipes=[Recipe(*row) for row in recipes],
    )
