"""Data classes for family and recipe entities."""

from collections.abc import Iterator
from dataclasses import dataclass, field


@dataclass
class Family:
    id: int
    name: str
    invite_code: str
    created_by: str | None = None
    created_at: str | None = None


@dataclass
class Member:
    id: int
    family_id: int | None
    name: str
    birth_year: int | None = None
    is_deceased: bool = False
    user_id: str | None = None  # linked account, None for relatives without one
    photo_url: str | None = None
    added_by: str | None = None
    created_at: str | None = None


@dataclass
class Relationship:
    id: int | None
    family_id: int | None
    parent_id: int
    child_id: int
    created_at: str | None = None


@dataclass
class Recipe:
    id: int
    family_id: int
    title: str
    description: str | None = None
    origin_story: str | None = None
    origin_year: int | None = None
    prep_time: int | None = None  # minutes
    cook_time: int | None = None  # minutes
    servings: int | None = None
    difficulty: str | None = None  # easy, medium, hard
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class RecipeAttribution:
    id: int | None
    recipe_id: int | None
    family_member_id: int
    attribution_type: str  # created_by, learned_from
    year_learned: int | None = None


@dataclass
class Ingredient:
    id: int
    recipe_id: int
    text: str
    order_index: int = 0


@dataclass
class Step:
    id: int
    recipe_id: int
    instruction: str
    order_index: int = 0
    image_url: str | None = None
    video_url: str | None = None


@dataclass
class Comment:
    id: int
    recipe_id: int
    user_id: str
    content: str
    image_url: str | None = None
    created_at: str | None = None


@dataclass
class RecipeWithDetails:
    """A recipe with everything needed to show or cook it."""

    recipe: Recipe
    ingredients: list[Ingredient] = field(default_factory=list)  # by order_index
    steps: list[Step] = field(default_factory=list)  # by order_index
    attributions: list[RecipeAttribution] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)


@dataclass
class MemberWithRelations:
    member: Member
    parents: list[Member] = field(default_factory=list)
    children: list[Member] = field(default_factory=list)
    recipes: list[Recipe] = field(default_factory=list)


@dataclass
class FamilyUnit:
    """One or two parents plus the units of their children.

    `id` is the sorted, hyphen-joined parent ids. It only changes when the
    parent set changes, so it is safe to use as a rendering key.
    """

    id: str
    parents: list[Member]
    children: list["FamilyUnit"] = field(default_factory=list)

    @property
    def is_couple(self) -> bool:
        return len(self.parents) == 2


@dataclass
class FamilyTree:
    family_units: list[FamilyUnit] = field(default_factory=list)
    orphans: list[Member] = field(default_factory=list)
    # Members with relationship edges that ended up in no unit
    unplaced: list[Member] = field(default_factory=list)

    def iter_units(self) -> Iterator[FamilyUnit]:
        """Yield every unit in the forest, depth first."""
        stack = list(reversed(self.family_units))
        while stack:
            unit = stack.pop()
            yield unit
            stack.extend(reversed(unit.children))

    def placed_ids(self) -> list[int]:
        """Member ids in the order they appear in the forest."""
        return [p.id for unit in self.iter_units() for p in unit.parents]
