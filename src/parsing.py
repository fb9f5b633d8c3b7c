"""GEDCOM import: turn an exported family tree into members and parent->child edges."""

from pathlib import Path
import re

from ged4py import GedcomReader

from models import Member, Relationship


def extract_numeric_id(xref_id: str) -> int:
    """Extract numeric part from GEDCOM xref_id like '@I_347421849@' or 'I674624289'."""
    digits = re.sub(r"[^0-9]", "", xref_id)
    if not digits:
        raise ValueError(f"No numeric ID found in: {xref_id}")
    return int(digits)


def extract_year(date_str: str | None) -> int | None:
    """
    Pull a four-digit year out of a free-form GEDCOM date.

    "25 NOV 1954", "ABT 1905", "(05/15/1923)" and "BET 1850 AND 1855" all work;
    for ranges the first year wins. Returns None when no year is present.
    """
    if not date_str:
        return None
    match = re.search(r"(?<!\d)(\d{4})(?!\d)", date_str)
    return int(match.group(1)) if match else None


def parse_gedcom(filepath: Path) -> GedcomReader:
    """Parse a GEDCOM file and return the reader object."""
    return GedcomReader(str(filepath))


def extract_name(indi) -> str:
    """Display name of an individual record, "Unknown" when it has none."""
    name_rec = indi.sub_tag("NAME")
    if name_rec is None or name_rec.value is None:
        return "Unknown"

    # ged4py returns NAME as tuple: (given, surname, suffix)
    if isinstance(name_rec.value, tuple):
        parts = [p for p in name_rec.value if p]
        return " ".join(parts) if parts else "Unknown"

    return str(name_rec.value).replace("/", "").strip() or "Unknown"


def extract_birth_year(indi) -> int | None:
    event = indi.sub_tag("BIRT")
    if event is None:
        return None
    date_rec = event.sub_tag("DATE")
    if date_rec is None or not date_rec.value:
        return None
    return extract_year(str(date_rec.value))


def is_deceased(indi) -> bool:
    """A DEAT record, even an empty one, marks the person as deceased."""
    return indi.sub_tag("DEAT") is not None


def normalize_data(reader: GedcomReader) -> tuple[list[Member], list[Relationship]]:
    """
    Extract members and parent->child edges from parsed GEDCOM data.

    Member ids are the numeric part of the GEDCOM xref ids; they are replaced by
    database ids on import. FAM records only contribute HUSB->CHIL and
    WIFE->CHIL edges, since couples are derived from shared children.
    """
    members: list[Member] = []
    relationships: list[Relationship] = []

    for rec in reader.records0("INDI"):
        if rec.xref_id is None:
            continue

        members.append(
            Member(
                id=extract_numeric_id(rec.xref_id),
                family_id=None,
                name=extract_name(rec),
                birth_year=extract_birth_year(rec),
                is_deceased=is_deceased(rec),
            )
        )

    for rec in reader.records0("FAM"):
        if rec.xref_id is None:
            continue

        parent_ids = []
        for tag in ("HUSB", "WIFE"):
            parent = rec.sub_tag(tag)
            if parent and parent.xref_id:
                parent_ids.append(extract_numeric_id(parent.xref_id))

        for child in rec.sub_tags("CHIL"):
            if not child.xref_id:
                continue
            child_id = extract_numeric_id(child.xref_id)
            for parent_id in parent_ids:
                relationships.append(
                    Relationship(id=None, family_id=None, parent_id=parent_id, child_id=child_id)
                )

    return members, relationships
