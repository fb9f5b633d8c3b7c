"""Tests for the SQLite family store."""

import sqlite3

import pytest

from database import (
    add_comment,
    add_member,
    add_recipe,
    add_relationship,
    create_family,
    delete_recipe,
    fetch_members,
    fetch_recipes,
    fetch_relationships,
    get_family_by_invite_code,
    get_member_recipe_counts,
    get_member_with_relations,
    get_recipe,
    get_user_families,
    import_members,
    join_family,
    remove_relationship,
    update_member,
    update_recipe,
)
from genealogy import build_family_tree
from models import Member, RecipeAttribution, Relationship


class TestFamilies:
    """Tests for creating and joining families."""

    def test_create_family_adds_creator(self, conn, family):
        members = fetch_members(conn, family.id)
        assert [m.name for m in members] == ["Grandma Rose"]
        assert members[0].user_id == "user-1"
        assert len(family.invite_code) == 8

    def test_invite_code_lookup_ignores_case(self, conn, family):
        found = get_family_by_invite_code(conn, family.invite_code.upper())
        assert found.id == family.id

    def test_join_family(self, conn, family):
        joined = join_family(conn, family.invite_code, "Cousin Ann", "user-2")
        assert joined.id == family.id
        assert [f.id for f in get_user_families(conn, "user-2")] == [family.id]

    def test_join_with_bad_code(self, conn, family):
        with pytest.raises(ValueError, match="Family not found"):
            join_family(conn, "nope", "Cousin Ann", "user-2")

    def test_join_twice(self, conn, family):
        with pytest.raises(ValueError, match="already a member"):
            join_family(conn, family.invite_code, "Rose again", "user-1")


class TestMembers:
    """Tests for member storage."""

    def test_members_in_creation_order(self, conn, family):
        add_member(conn, family.id, "Grandpa Joe", birth_year=1931, is_deceased=True)
        add_member(conn, family.id, "Mum", birth_year=1960, added_by="user-1")

        members = fetch_members(conn, family.id)
        assert [m.name for m in members] == ["Grandma Rose", "Grandpa Joe", "Mum"]
        assert members[1].is_deceased is True
        assert members[2].is_deceased is False
        assert members[2].added_by == "user-1"

    def test_add_member_unknown_family(self, conn):
        with pytest.raises(ValueError):
            add_member(conn, 42, "Nobody")

    def test_update_member(self, conn, family):
        member = add_member(conn, family.id, "Grandpa Joe")
        updated = update_member(conn, member.id, birth_year=1931, is_deceased=True)
        assert updated.birth_year == 1931
        assert updated.is_deceased is True

    def test_update_rejects_unknown_columns(self, conn, family):
        member = add_member(conn, family.id, "Grandpa Joe")
        with pytest.raises(ValueError):
            update_member(conn, member.id, family_id=99)


class TestRelationships:
    """Tests for parent -> child links."""

    def test_links_in_creation_order(self, conn, family):
        mum = add_member(conn, family.id, "Mum")
        kid = add_member(conn, family.id, "Kid")
        rose = fetch_members(conn, family.id)[0]

        add_relationship(conn, family.id, rose.id, mum.id)
        add_relationship(conn, family.id, mum.id, kid.id)

        links = fetch_relationships(conn, family.id)
        assert [(r.parent_id, r.child_id) for r in links] == [(rose.id, mum.id), (mum.id, kid.id)]

    def test_self_link_rejected(self, conn, family):
        rose = fetch_members(conn, family.id)[0]
        with pytest.raises(ValueError, match="same person"):
            add_relationship(conn, family.id, rose.id, rose.id)

    def test_duplicate_link_rejected(self, conn, family):
        rose = fetch_members(conn, family.id)[0]
        mum = add_member(conn, family.id, "Mum")
        add_relationship(conn, family.id, rose.id, mum.id)
        with pytest.raises(ValueError, match="already exists"):
            add_relationship(conn, family.id, rose.id, mum.id)

    def test_link_to_other_family_rejected(self, conn, family):
        other = create_family(conn, "The Oaks", "user-9", "Old Oak")
        stranger = fetch_members(conn, other.id)[0]
        rose = fetch_members(conn, family.id)[0]
        with pytest.raises(ValueError, match="not found in family"):
            add_relationship(conn, family.id, rose.id, stranger.id)

    def test_remove_link(self, conn, family):
        rose = fetch_members(conn, family.id)[0]
        mum = add_member(conn, family.id, "Mum")
        link = add_relationship(conn, family.id, rose.id, mum.id)

        remove_relationship(conn, link.id)
        assert fetch_relationships(conn, family.id) == []

        with pytest.raises(ValueError):
            remove_relationship(conn, link.id)

    def test_member_with_relations(self, conn, family):
        rose = fetch_members(conn, family.id)[0]
        joe = add_member(conn, family.id, "Grandpa Joe")
        mum = add_member(conn, family.id, "Mum")
        add_relationship(conn, family.id, rose.id, mum.id)
        add_relationship(conn, family.id, joe.id, mum.id)
        add_recipe(
            conn,
            family.id,
            "Sunday Roast",
            attributions=[RecipeAttribution(None, None, mum.id, "learned_from", 1975)],
        )

        details = get_member_with_relations(conn, mum.id)
        assert [p.name for p in details.parents] == ["Grandma Rose", "Grandpa Joe"]
        assert details.children == []
        assert [r.title for r in details.recipes] == ["Sunday Roast"]

    def test_fresh_snapshot_feeds_the_tree(self, conn, family):
        rose = fetch_members(conn, family.id)[0]
        joe = add_member(conn, family.id, "Grandpa Joe")
        mum = add_member(conn, family.id, "Mum")
        add_relationship(conn, family.id, rose.id, mum.id)
        add_relationship(conn, family.id, joe.id, mum.id)

        tree = build_family_tree(fetch_members(conn, family.id), fetch_relationships(conn, family.id))
        assert len(tree.family_units) == 1
        assert tree.family_units[0].id == "-".join(sorted([str(rose.id), str(joe.id)]))


class TestRecipes:
    """Tests for recipes and attributions."""

    def test_recipe_counts(self, conn, family):
        rose = fetch_members(conn, family.id)[0]
        mum = add_member(conn, family.id, "Mum")

        add_recipe(
            conn,
            family.id,
            "Apple Pie",
            created_by="user-1",
            attributions=[
                RecipeAttribution(None, None, rose.id, "created_by"),
                RecipeAttribution(None, None, mum.id, "learned_from", 1982),
            ],
            difficulty="easy",
            servings=8,
        )
        add_recipe(
            conn,
            family.id,
            "Lemon Curd",
            attributions=[RecipeAttribution(None, None, rose.id, "created_by")],
        )

        assert get_member_recipe_counts(conn, family.id) == {rose.id: 2, mum.id: 1}
        assert {r.title for r in fetch_recipes(conn, family.id)} == {"Apple Pie", "Lemon Curd"}

    def test_unknown_attribution_type(self, conn, family):
        rose = fetch_members(conn, family.id)[0]
        with pytest.raises(ValueError):
            add_recipe(
                conn,
                family.id,
                "Mystery Stew",
                attributions=[RecipeAttribution(None, None, rose.id, "invented")],
            )

    def test_invalid_difficulty_rejected_by_schema(self, conn, family):
        with pytest.raises(sqlite3.IntegrityError):
            add_recipe(conn, family.id, "Souffle", difficulty="impossible")

    def test_ingredients_and_steps_keep_their_order(self, conn, family):
        recipe = add_recipe(
            conn,
            family.id,
            "Apple Pie",
            ingredients=["6 apples", "  ", "1 cup sugar", "Pastry"],
            steps=["Peel the apples", "Line the dish", "Bake for 45 minutes"],
        )

        details = get_recipe(conn, recipe.id)
        assert [i.text for i in details.ingredients] == ["6 apples", "1 cup sugar", "Pastry"]
        assert [i.order_index for i in details.ingredients] == [0, 1, 2]
        assert [s.instruction for s in details.steps] == [
            "Peel the apples",
            "Line the dish",
            "Bake for 45 minutes",
        ]
        assert [s.order_index for s in details.steps] == [0, 1, 2]

    def test_get_recipe_sorts_by_order_index(self, conn, family):
        recipe = add_recipe(conn, family.id, "Scones")
        conn.executemany(
            "INSERT INTO step (recipe_id, instruction, order_index) VALUES (?, ?, ?)",
            [(recipe.id, "Bake", 2), (recipe.id, "Mix", 0), (recipe.id, "Cut", 1)],
        )

        details = get_recipe(conn, recipe.id)
        assert [s.instruction for s in details.steps] == ["Mix", "Cut", "Bake"]

    def test_get_recipe_includes_attributions(self, conn, family):
        rose = fetch_members(conn, family.id)[0]
        recipe = add_recipe(
            conn,
            family.id,
            "Lemon Curd",
            attributions=[RecipeAttribution(None, None, rose.id, "learned_from", 1975)],
        )

        [attribution] = get_recipe(conn, recipe.id).attributions
        assert attribution.family_member_id == rose.id
        assert attribution.attribution_type == "learned_from"
        assert attribution.year_learned == 1975

    def test_get_unknown_recipe(self, conn):
        with pytest.raises(ValueError, match="Recipe ID 42 not found"):
            get_recipe(conn, 42)

    def test_blank_title_rejected(self, conn, family):
        with pytest.raises(ValueError):
            add_recipe(conn, family.id, "   ")

    def test_update_recipe_fields(self, conn, family):
        recipe = add_recipe(conn, family.id, "Pie", ingredients=["Apples"], steps=["Bake"])

        details = update_recipe(conn, recipe.id, title="Apple Pie", servings=6)

        assert details.recipe.title == "Apple Pie"
        assert details.recipe.servings == 6
        assert details.recipe.updated_at is not None
        # Lists not passed are left alone
        assert [i.text for i in details.ingredients] == ["Apples"]
        assert [s.instruction for s in details.steps] == ["Bake"]

    def test_update_recipe_replaces_lists(self, conn, family):
        recipe = add_recipe(
            conn, family.id, "Pie", ingredients=["Apples", "Sugar"], steps=["Mix", "Bake"]
        )

        details = update_recipe(conn, recipe.id, ingredients=["Pears", "Honey", "Butter"], steps=[])

        assert [i.text for i in details.ingredients] == ["Pears", "Honey", "Butter"]
        assert [i.order_index for i in details.ingredients] == [0, 1, 2]
        assert details.steps == []

    def test_update_recipe_rejects_unknown_fields(self, conn, family):
        recipe = add_recipe(conn, family.id, "Pie")
        with pytest.raises(ValueError):
            update_recipe(conn, recipe.id, family_id=99)
        with pytest.raises(ValueError):
            update_recipe(conn, recipe.id, title=" ")
        with pytest.raises(ValueError):
            update_recipe(conn, recipe.id + 1, title="Other")

    def test_delete_recipe_cascades(self, conn, family):
        rose = fetch_members(conn, family.id)[0]
        recipe = add_recipe(
            conn,
            family.id,
            "Apple Pie",
            attributions=[RecipeAttribution(None, None, rose.id, "created_by")],
            ingredients=["Apples"],
            steps=["Bake"],
        )
        add_comment(conn, recipe.id, "user-1", "Just like Grandma's")

        delete_recipe(conn, recipe.id)

        assert fetch_recipes(conn, family.id) == []
        for table in ("ingredient", "step", "comment", "recipe_attribution"):
            count = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            assert count == 0, table
        assert get_member_recipe_counts(conn, family.id) == {}

        with pytest.raises(ValueError):
            delete_recipe(conn, recipe.id)

    def test_comments(self, conn, family):
        recipe = add_recipe(conn, family.id, "Apple Pie")

        first = add_comment(conn, recipe.id, "user-1", "  Made this for Easter  ")
        add_comment(conn, recipe.id, "user-2", "Add more cinnamon")

        assert first.content == "Made this for Easter"
        assert first.created_at is not None
        comments = get_recipe(conn, recipe.id).comments
        assert [(c.user_id, c.content) for c in comments] == [
            ("user-1", "Made this for Easter"),
            ("user-2", "Add more cinnamon"),
        ]

        with pytest.raises(ValueError):
            add_comment(conn, recipe.id, "user-1", "   ")
        with pytest.raises(ValueError):
            add_comment(conn, recipe.id + 1, "user-1", "Lost")


class TestImport:
    """Tests for storing parsed GEDCOM records."""

    def test_ids_are_remapped(self, conn, family):
        members = [
            Member(id=101, family_id=None, name="Anna", birth_year=1900, is_deceased=True),
            Member(id=102, family_id=None, name="Ben", birth_year=1898, is_deceased=True),
            Member(id=103, family_id=None, name="Clara", birth_year=1925),
        ]
        links = [
            Relationship(None, None, 101, 103),
            Relationship(None, None, 102, 103),
            Relationship(None, None, 102, 103),
            Relationship(None, None, 103, 103),
            Relationship(None, None, 999, 103),
        ]

        stored_members, stored_links = import_members(conn, family.id, members, links)

        by_name = {m.name: m for m in stored_members}
        assert set(by_name) == {"Anna", "Ben", "Clara"}
        assert by_name["Anna"].is_deceased is True
        assert [(r.parent_id, r.child_id) for r in stored_links] == [
            (by_name["Anna"].id, by_name["Clara"].id),
            (by_name["Ben"].id, by_name["Clara"].id),
        ]
