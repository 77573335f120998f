"""Level sequences, level navigation and level-relative criteria lookup.

Levels are fixed per role type: five IC levels and four management levels.
Criteria authored before levels were keyed per role live under legacy keys
(`associate` .. `principal`); lookups translate between the two key spaces.

Navigation helpers return None when an offset runs past either end of the
sequence or the key is unknown. Criteria lookups never raise; an empty list
is a normal "No criteria" state.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from assessment_engine.models.domain import Level, Rating, RoleType, SubCompetency

IC_LEVELS: List[Level] = [
    Level(key="p1_entry", label="P1 Entry", description="Early Career", index=0),
    Level(key="p2_developing", label="P2 Developing", description="Emerging Talent", index=1),
    Level(key="p3_career", label="P3 Career", description="Fully Competent", index=2),
    Level(key="p4_advanced", label="P4 Advanced", description="Senior/Lead", index=3),
    Level(key="p5_principal", label="P5 Principal", description="Expert/Authority", index=4),
]

MANAGEMENT_LEVELS: List[Level] = [
    Level(key="m1_team_lead", label="M1 Team Lead", description="Tactical Supervision", index=0),
    Level(key="m2_manager", label="M2 Manager", description="Operational Management", index=1),
    Level(key="m3_director", label="M3 Director", description="Strategic Management", index=2),
    Level(key="m4_senior_director", label="M4 Senior Director", description="Organizational Leadership", index=3),
]

OLD_TO_NEW_KEY_MAP: Dict[str, str] = {
    "associate": "p1_entry",
    "intermediate": "p2_developing",
    "senior": "p3_career",
    "lead": "p4_advanced",
    "principal": "p5_principal",
}

NEW_TO_OLD_KEY_MAP: Dict[str, str] = {new: old for old, new in OLD_TO_NEW_KEY_MAP.items()}

# Base score used for members whose level is not part of the sequence.
DEFAULT_BASE_SCORE = 4
# Headroom above the highest base score (a member rated well_above on everything).
WELL_ABOVE_HEADROOM = 4
MIN_MAX_SCORE = 6

# Steps away from the assessed level that each rating points at.
_RATING_LEVEL_OFFSETS: Dict[Rating, int] = {
    Rating.WELL_BELOW: -2,
    Rating.BELOW: -1,
    Rating.TARGET: 0,
    Rating.ABOVE: 1,
    Rating.WELL_ABOVE: 2,
}


# PUBLIC_INTERFACE
def levels_for_role_type(role_type: RoleType | str) -> List[Level]:
    """Return the ordered level sequence for a role type."""
    if RoleType(role_type) == RoleType.MANAGEMENT:
        return list(MANAGEMENT_LEVELS)
    return list(IC_LEVELS)


def level_keys(levels: Iterable[Level]) -> List[str]:
    return [lvl.key for lvl in levels]


def _index_of(levels: List[Level], key: str) -> int:
    keys = level_keys(levels)
    return keys.index(key) if key in keys else -1


# PUBLIC_INTERFACE
def label_to_key(levels: List[Level], label: str) -> str:
    """Map a display label to its key; unknown labels are lower-cased."""
    for lvl in levels:
        if lvl.label.lower() == label.lower():
            return lvl.key
    return label.lower()


# PUBLIC_INTERFACE
def key_to_label(levels: List[Level], key: str) -> str:
    """Map a key to its display label; unknown keys are capitalised."""
    for lvl in levels:
        if lvl.key == key:
            return lvl.label
    return key[:1].upper() + key[1:]


# PUBLIC_INTERFACE
def resolve_level_key(levels: List[Level], value: str) -> Optional[str]:
    """Resolve a key, label or legacy key to a key of `levels`."""
    if not value:
        return None
    keys = level_keys(levels)
    if value in keys:
        return value
    candidate = label_to_key(levels, value.strip())
    if candidate in keys:
        return candidate
    for mapped in (OLD_TO_NEW_KEY_MAP.get(candidate), NEW_TO_OLD_KEY_MAP.get(candidate)):
        if mapped and mapped in keys:
            return mapped
    return None


# PUBLIC_INTERFACE
def get_level_below(levels: List[Level], key: str) -> Optional[str]:
    return get_level_n_below(levels, key, 1)


# PUBLIC_INTERFACE
def get_level_above(levels: List[Level], key: str) -> Optional[str]:
    return get_level_n_above(levels, key, 1)


# PUBLIC_INTERFACE
def get_level_n_below(levels: List[Level], key: str, n: int) -> Optional[str]:
    """Key `n` levels below `key`, or None if that runs past the lowest level."""
    index = _index_of(levels, key)
    if index < 0:
        return None
    target = index - n
    if 0 <= target < len(levels):
        return levels[target].key
    return None


# PUBLIC_INTERFACE
def get_level_n_above(levels: List[Level], key: str, n: int) -> Optional[str]:
    """Key `n` levels above `key`, or None if that runs past the highest level."""
    index = _index_of(levels, key)
    if index < 0:
        return None
    target = index + n
    if 0 <= target < len(levels):
        return levels[target].key
    return None


# PUBLIC_INTERFACE
def get_criteria_for_level_with_fallback(sub: SubCompetency, level_key: str) -> List[str]:
    """Criteria of `sub` at `level_key`, falling back to legacy keys and columns.

    Order: direct key, mapped key (new<->legacy) in the keyed criteria, legacy
    column for the key, legacy column for the mapped key. Returns [] when
    nothing matches.
    """
    direct = sub.criteria_for(level_key)
    if direct is not None:
        return direct

    mapped_key = NEW_TO_OLD_KEY_MAP.get(level_key) or OLD_TO_NEW_KEY_MAP.get(level_key)
    if mapped_key:
        mapped = sub.criteria_for(mapped_key)
        if mapped is not None:
            return mapped

    legacy = sub.legacy_column(level_key)
    if legacy is not None:
        return legacy

    if mapped_key:
        legacy = sub.legacy_column(mapped_key)
        if legacy is not None:
            return legacy

    return []


# PUBLIC_INTERFACE
def display_level_for_rating(levels: List[Level], base_key: str, rating: Rating) -> Optional[str]:
    """Level whose bar a rating corresponds to; None for target.

    A two-step rating that runs off the sequence settles on the adjacent level
    when one exists.
    """
    offset = _RATING_LEVEL_OFFSETS[Rating(rating)]
    if offset == 0:
        return None
    step = get_level_n_above if offset > 0 else get_level_n_below
    found = step(levels, base_key, abs(offset))
    if found is None and abs(offset) > 1:
        found = step(levels, base_key, 1)
    return found


# PUBLIC_INTERFACE
def criterion_hint(
    sub: SubCompetency,
    levels: List[Level],
    base_key: str,
    index: int,
    rating: Rating,
) -> Optional[str]:
    """Same-position criterion at the level a rating points to.

    Criteria lists are index-aligned across levels, so position `index` at the
    display level phrases the same behaviour at that level's bar.
    """
    display_key = display_level_for_rating(levels, base_key, rating)
    if display_key is None:
        return None
    criteria = get_criteria_for_level_with_fallback(sub, display_key)
    if 0 <= index < len(criteria):
        return criteria[index]
    return None


# PUBLIC_INTERFACE
def level_base_score(levels: List[Level], key: str) -> int:
    """(index + 1) * 2, so consecutive levels sit two points apart."""
    resolved = resolve_level_key(levels, key)
    return build_level_base_scores(levels).get(resolved, DEFAULT_BASE_SCORE)


# PUBLIC_INTERFACE
def build_level_base_scores(levels: List[Level]) -> Dict[str, int]:
    return {lvl.key: (lvl.index + 1) * 2 for lvl in levels}


# PUBLIC_INTERFACE
def max_possible_score(levels: List[Level], member_level_keys: Iterable[str]) -> int:
    """Upper bound of team-relative scores for the current team composition."""
    best = MIN_MAX_SCORE
    for key in member_level_keys:
        best = max(best, level_base_score(levels, key) + WELL_ABOVE_HEADROOM)
    return best
