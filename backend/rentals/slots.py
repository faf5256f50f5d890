"""
Slot registry: turns a template's slot field into concrete window instances.

The stored slot field has grown several shapes over time (legacy numeric id,
named id, comma-separated names, lists of either). `parse_slot_spec` maps all
of them onto one tagged variant, and `resolve_slots` consumes that variant
exhaustively.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .base import MISSING, SlotChoice, SlotDefinition, Template, WindowInstance
from .config import ScrapeConfig, get_legacy_offset
from .utils.normalizers import format_hours, to_number
from .utils.urls import inject_window_params, strip_window_params
from .windows import compute_window

logger = logging.getLogger(__name__)


# ============================================================
# SLOT SPEC VARIANTS
# ============================================================

@dataclass(frozen=True)
class NamedRef:
    """Reference to a slot definition by id."""
    slot_id: str


@dataclass(frozen=True)
class LegacyRef:
    """Reference to a legacy numeric slot."""
    number: int


SlotRef = Union[NamedRef, LegacyRef]


@dataclass(frozen=True)
class Absent:
    """No usable slot field: the template is scraped raw."""


@dataclass(frozen=True)
class SingleLegacy:
    ref: LegacyRef


@dataclass(frozen=True)
class SingleNamed:
    ref: NamedRef


@dataclass(frozen=True)
class ListLegacy:
    refs: Tuple[LegacyRef, ...]


@dataclass(frozen=True)
class ListNamed:
    refs: Tuple[NamedRef, ...]


@dataclass(frozen=True)
class MixedList:
    """A list holding both named and legacy references, in stored order."""
    refs: Tuple[SlotRef, ...]


SlotSpec = Union[Absent, SingleLegacy, SingleNamed, ListLegacy, ListNamed, MixedList]


def _to_ref(item: Any) -> Optional[SlotRef]:
    """Classify one stored slot entry, or None if it is unusable."""
    if isinstance(item, bool):
        return None
    if isinstance(item, int):
        return LegacyRef(item)
    if isinstance(item, float) and item.is_integer():
        return LegacyRef(int(item))
    if isinstance(item, str) and item.strip():
        return NamedRef(item.strip())
    return None


def parse_slot_spec(raw: Any, template_id: str = '?') -> SlotSpec:
    """
    Parse a stored slot field into a SlotSpec.

    Examples:
        (missing) -> Absent()
        2 -> SingleLegacy(LegacyRef(2))
        "weekend" -> SingleNamed(NamedRef("weekend"))
        "A, B" -> ListNamed((NamedRef("A"), NamedRef("B")))
        [1, 3] -> ListLegacy((LegacyRef(1), LegacyRef(3)))
        ["A", 1] -> MixedList((NamedRef("A"), LegacyRef(1)))

    Malformed fields (empty strings, empty lists, other types) parse as
    Absent with a warning; malformed list entries are dropped with a warning.
    """
    if raw is MISSING or raw is None:
        return Absent()

    if isinstance(raw, str):
        items = [part for part in raw.split(',') if part.strip()]
    elif isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        items = [raw]

    refs = []
    for item in items:
        ref = _to_ref(item)
        if ref is None:
            logger.warning(f"Template {template_id}: ignoring unusable slot entry {item!r}")
            continue
        refs.append(ref)

    if not refs:
        logger.warning(f"Template {template_id}: slot field {raw!r} holds no usable slots, scraping raw")
        return Absent()

    is_list = isinstance(raw, (list, tuple)) or len(refs) > 1
    if not is_list:
        ref = refs[0]
        return SingleLegacy(ref) if isinstance(ref, LegacyRef) else SingleNamed(ref)

    if all(isinstance(ref, LegacyRef) for ref in refs):
        return ListLegacy(tuple(refs))
    if all(isinstance(ref, NamedRef) for ref in refs):
        return ListNamed(tuple(refs))
    return MixedList(tuple(refs))


# ============================================================
# RESOLUTION
# ============================================================

def _refs_of(spec: SlotSpec) -> Tuple[SlotRef, ...]:
    if isinstance(spec, Absent):
        return ()
    if isinstance(spec, (SingleLegacy, SingleNamed)):
        return (spec.ref,)
    if isinstance(spec, (ListLegacy, ListNamed, MixedList)):
        return spec.refs
    raise TypeError(f"Unknown slot spec: {spec!r}")


def _clamp(offset: Optional[float], duration: Optional[float], config: ScrapeConfig,
           context: str) -> Tuple[float, float]:
    """Clamp negative offsets to 0 and replace non-positive durations with the default."""
    if offset is None:
        offset = 0.0
    elif offset < 0:
        logger.warning(f"{context}: negative offset {offset}h clamped to 0")
        offset = 0.0

    if duration is None:
        duration = float(config.default_duration_hours)
    elif duration <= 0:
        logger.warning(
            f"{context}: non-positive duration {duration}h, "
            f"using default {format_hours(config.default_duration_hours)}h"
        )
        duration = float(config.default_duration_hours)
    return offset, duration


def _resolve_ref(ref: SlotRef, lookup: Dict[str, SlotDefinition], config: ScrapeConfig,
                 template_id: str) -> SlotChoice:
    if isinstance(ref, LegacyRef):
        return SlotChoice(
            offset_hours=float(get_legacy_offset(ref.number)),
            duration_hours=float(config.default_duration_hours),
            slot_legacy=ref.number,
        )

    definition = lookup.get(ref.slot_id)
    if definition is None:
        logger.warning(
            f"Template {template_id}: unknown slot '{ref.slot_id}', "
            f"using offset 0h and default duration {format_hours(config.default_duration_hours)}h"
        )
        return SlotChoice(
            offset_hours=0.0,
            duration_hours=float(config.default_duration_hours),
            slot_id=ref.slot_id,
        )

    return SlotChoice(
        offset_hours=to_number(definition.offset_hours),
        duration_hours=to_number(definition.duration_hours),
        slot_id=ref.slot_id,
    )


def resolve_slots(
    spec: SlotSpec,
    lookup: Dict[str, SlotDefinition],
    config: ScrapeConfig,
    template_id: str = '?',
    offset_override: Any = None,
    duration_override: Any = None,
) -> List[SlotChoice]:
    """
    Resolve a parsed slot spec into offset/duration pairs.

    Template-level overrides win over slot values. Negative offsets clamp to
    0 and non-positive (or missing) durations fall back to the default.

    Returns:
        One SlotChoice per reference, in stored order; empty for Absent
    """
    offset_override = to_number(offset_override)
    duration_override = to_number(duration_override)

    choices = []
    for ref in _refs_of(spec):
        choice = _resolve_ref(ref, lookup, config, template_id)
        offset = offset_override if offset_override is not None else choice.offset_hours
        duration = duration_override if duration_override is not None else choice.duration_hours
        offset, duration = _clamp(offset, duration, config, f"Template {template_id}")
        choices.append(SlotChoice(
            offset_hours=offset,
            duration_hours=duration,
            slot_id=choice.slot_id,
            slot_legacy=choice.slot_legacy,
        ))
    return choices


def build_slot_lookup(definitions: Iterable[SlotDefinition]) -> Dict[str, SlotDefinition]:
    """Index slot definitions by id (first definition wins on duplicates)."""
    lookup = {}
    for definition in definitions:
        if definition.id in lookup:
            logger.warning(f"Duplicate slot definition '{definition.id}', keeping the first")
            continue
        lookup[definition.id] = definition
    return lookup


# ============================================================
# TEMPLATE EXPANSION
# ============================================================

def expand_template(
    template: Template,
    lookup: Dict[str, SlotDefinition],
    config: ScrapeConfig,
    now: datetime,
) -> List[WindowInstance]:
    """
    Expand one template into its window instances.

    A template without slots is one raw instance whose URL is used
    unmodified; template overrides only replace slot-sourced values.
    """
    spec = parse_slot_spec(template.raw_slots, template.id)

    if isinstance(spec, Absent):
        if template.has_override:
            logger.info(f"Template {template.id}: no slots, ignoring offset/duration override")
        return [WindowInstance(
            template_id=template.id,
            template_label=template.label,
            resolved_url=template.url,
        )]

    choices = resolve_slots(
        spec,
        lookup,
        config,
        template_id=template.id,
        offset_override=template.offset_hours,
        duration_override=template.duration_hours,
    )

    base_url = strip_window_params(template.url)
    instances = []
    for choice in choices:
        start, end = compute_window(
            now,
            config.min_lead_minutes,
            config.granularity_minutes,
            choice.offset_hours,
            choice.duration_hours,
        )
        instances.append(WindowInstance(
            template_id=template.id,
            template_label=template.label,
            resolved_url=inject_window_params(base_url, start, end),
            slot_id=choice.slot_id,
            slot_legacy=choice.slot_legacy,
            offset_hours=choice.offset_hours,
            duration_hours=choice.duration_hours,
            start=start,
            end=end,
        ))
    return instances


def expand_templates(
    templates: Iterable[Template],
    definitions: Iterable[SlotDefinition],
    config: ScrapeConfig,
    now: datetime,
) -> List[WindowInstance]:
    """
    Expand every active template into window instances, in template order.

    Inactive templates are skipped.
    """
    lookup = build_slot_lookup(definitions)
    instances = []
    for template in templates:
        if not template.active:
            logger.debug(f"Skipping inactive template {template.id}")
            continue
        instances.extend(expand_template(template, lookup, config, now))
    logger.info(f"Expanded templates into {len(instances)} window instance(s)")
    return instances
