"""Marker legend: point markers grouped by marker type, then by tag set.

Within one marker type, markers sharing exactly the same tags form a tag
group. A group whose tag set is contained in a strictly larger group's set is
nested under it, so the legend reads from the most specific combination down.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from .models import MarkerGroup, PointMarker, Tag, TagGroup

NO_TAGS_KEY = "no-tags"


def tag_key(tags: Iterable[Tag]) -> str:
    """Canonical key of a tag set: sorted ids joined with ``-``."""
    ids = sorted(t.id for t in tags)
    return "-".join(str(i) for i in ids) if ids else NO_TAGS_KEY


def build_marker_groups(point_markers: Iterable[PointMarker], tags: Iterable[Tag]) -> list[MarkerGroup]:
    """Build the legend tree for a set of point markers.

    Unknown tag ids are ignored. Marker types with no marker definition are
    left out of the legend.
    """
    tags_by_id = {t.id: t for t in tags}

    # arena: marker_id -> tag_key -> group, in first-seen order
    arena: dict[int, dict[str, TagGroup]] = {}
    for item in point_markers:
        item_tags = sorted(
            (tags_by_id[i] for i in item.tag_ids if i in tags_by_id),
            key=lambda t: t.id,
        )
        key = tag_key(item_tags)
        groups = arena.setdefault(item.marker_id, {})
        if key not in groups:
            groups[key] = TagGroup(tag_key=key, tags=item_tags)
        groups[key].items.append(item)

    result: list[MarkerGroup] = []
    for marker_id, groups in arena.items():
        first_item = next(iter(groups.values())).items[0]
        if first_item.marker is None:
            continue
        result.append(
            MarkerGroup(
                marker_id=marker_id,
                marker=first_item.marker,
                tag_groups=_nest(list(groups.values())),
                total_items=sum(len(g.items) for g in groups.values()),
            )
        )
    return result


def _nest(groups: list[TagGroup]) -> list[TagGroup]:
    """Attach every group to the first strictly larger superset group.

    Groups are visited by tag count, largest first, tag-less groups last.
    Returns the groups left at the top level.
    """
    ordered = sorted(groups, key=lambda g: (len(g.tags) == 0, -len(g.tags)))
    tag_sets = {g.tag_key: {t.id for t in g.tags} for g in ordered}

    top_level: list[TagGroup] = []
    for group in ordered:
        own = tag_sets[group.tag_key]
        parent = next(
            (
                candidate
                for candidate in ordered
                if len(candidate.tags) > len(group.tags) and own <= tag_sets[candidate.tag_key]
            ),
            None,
        )
        if parent is None:
            top_level.append(group)
        else:
            parent.sub_groups.append(group)
    return top_level


def visible_markers(
    point_markers: Iterable[PointMarker],
    visible_groups: Mapping[int, bool],
    visible_tags: Mapping[int, bool],
) -> list[PointMarker]:
    """Markers to draw on the map given the legend's visibility toggles.

    Ids missing from either mapping count as visible. A tagged marker needs at
    least one visible tag.
    """
    shown = []
    for item in point_markers:
        if not visible_groups.get(item.marker_id, True):
            continue
        if item.tag_ids and not any(visible_tags.get(t, True) for t in item.tag_ids):
            continue
        shown.append(item)
    return shown
