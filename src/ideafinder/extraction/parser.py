"""Parse free-form model output into fully defaulted field mappings.

The model is asked for labelled sections (``Business Idea:``, ``Target
Customers:`` ...) but routinely drifts from the format: blank lines between
sections go missing, delimiters change, labels get bolded or lower-cased.
Each field is therefore resolved by an ordered chain of strategies:

1. Section-boundary extraction. Content runs from ``"<Label>:"`` to the
   nearest occurrence of any other known label, never merely to the next
   newline, so multi-line bullet lists survive a missing separator.
2. Labelled-line regexes over the whole text (``:``, ``=`` or whitespace).
3. Case-insensitive substring search, taking the rest of the line.
4. For classification fields only, a vocabulary scan and lookup tables.

The first strategy returning a value wins. Parsing never raises; every key
of the template is present in the result.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from ideafinder.core.models import ExtractedRecord
from ideafinder.extraction.templates import (
    DEFAULT_CATEGORY,
    DEFAULT_IMPACT,
    IMPACT_LEVELS,
    ExtractionTemplate,
    FieldKind,
    FieldSpec,
    NICHE_TO_CATEGORY,
    NICHE_VOCABULARY,
)

logger = logging.getLogger(__name__)

FieldValue = Union[str, List[str]]

HEADER_PATTERN = re.compile(r"^[ \t]*===[ \t]*Post[ \t]+(\d+)[ \t]*-[ \t]*Idea[ \t]+(\d+)[ \t]*===[ \t]*$", re.MULTILINE)
BULLET_PATTERN = re.compile(r"^(?:[-•]|\*(?!\*)|\d+[.)](?=\s))\s*(.*)$")
ALNUM_PATTERN = re.compile(r"[^\W_]")
IMPACT_NAMES: Dict[str, str] = {level.lower(): level for level in IMPACT_LEVELS}
IMPACT_NAMES["moderate"] = "Medium"
IMPACT_PATTERN = re.compile(r"\b(" + "|".join(IMPACT_NAMES) + r")\b", re.IGNORECASE)

IMPACT_VOCABULARY: Tuple[Tuple[str, str], ...] = (
    ("high impact", "High"),
    ("high-impact", "High"),
    ("medium impact", "Medium"),
    ("moderate impact", "Medium"),
    ("low impact", "Low"),
    ("low-impact", "Low"),
)


def strip_headers(text: str) -> str:
    """Remove ``=== Post N - Idea M ===`` header lines."""

    return HEADER_PATTERN.sub("", text)


def strip_markdown(value: str) -> str:
    value = re.sub(r"\*\*([^*]+)\*\*", r"\1", value)
    value = re.sub(r"\*([^*]+)\*", r"\1", value)
    value = re.sub(r"`([^`]+)`", r"\1", value)
    return value


def clean_scalar(value: str) -> str:
    """Strip brackets, markdown emphasis and stray markers around a single value."""

    value = strip_markdown(value.strip())
    value = value.strip().strip("*_").strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1].strip()
    value = re.sub(r"^[-•][ \t]*", "", value)
    return value.strip()


def normalise_impact(value: str) -> Optional[str]:
    """Map free text to ``High``/``Medium``/``Low`` or ``None`` if no level is named."""

    match = IMPACT_PATTERN.search(value)
    if not match:
        return None
    return IMPACT_NAMES[match.group(1).lower()]


def find_section(text: str, label: str, labels: Sequence[str]) -> Optional[str]:
    """Return the content between ``"<label>:"`` and the nearest other known label."""

    marker = f"{label}:"
    start = text.find(marker)
    if start == -1:
        return None
    content_start = start + len(marker)
    end = len(text)
    for other in labels:
        if other == label:
            continue
        position = text.find(f"{other}:", content_start)
        if position != -1 and position < end:
            end = position
    return text[content_start:end]


def extract_bullets(content: str, labels: Sequence[str], own_label: str) -> List[str]:
    """Collect bullet items, dropping empties and lines that carry another section's label."""

    foreign = [f"{label}:" for label in labels if label != own_label]
    items: List[str] = []
    for raw_line in content.splitlines():
        line = raw_line.strip()
        match = BULLET_PATTERN.match(line)
        if not match:
            continue
        item = strip_markdown(match.group(1)).strip()
        if not item or not ALNUM_PATTERN.search(item):
            continue
        if any(marker in item for marker in foreign):
            continue
        items.append(item)
    return items


@dataclass(slots=True)
class ParseContext:
    """Inputs shared by every strategy while one text is parsed."""

    text: str
    labels: Tuple[str, ...]
    trailing_label: str
    resolved: Dict[str, FieldValue] = field(default_factory=dict)


class FieldStrategy:
    """One step of a field's resolution chain. ``None`` passes to the next step."""

    name = "strategy"

    def extract(self, spec: FieldSpec, ctx: ParseContext) -> Optional[FieldValue]:
        raise NotImplementedError


class SectionScalarStrategy(FieldStrategy):
    name = "section"

    def extract(self, spec: FieldSpec, ctx: ParseContext) -> Optional[FieldValue]:
        content = find_section(ctx.text, spec.label, ctx.labels)
        if content is None:
            return None
        for line in content.splitlines():
            value = clean_scalar(line)
            if value:
                return value
        return None


class SectionListStrategy(FieldStrategy):
    name = "section"

    def extract(self, spec: FieldSpec, ctx: ParseContext) -> Optional[FieldValue]:
        content = find_section(ctx.text, spec.label, ctx.labels)
        if content is None:
            return None
        items = extract_bullets(content, ctx.labels, spec.label)
        return items or None


class TrailingSectionStrategy(FieldStrategy):
    """Re-read the last section from its label to the end of the text."""

    name = "trailing"

    def extract(self, spec: FieldSpec, ctx: ParseContext) -> Optional[FieldValue]:
        if spec.label != ctx.trailing_label:
            return None
        start = ctx.text.find(f"{spec.label}:")
        if start == -1:
            return None
        content = ctx.text[start + len(spec.label) + 1 :]
        items = extract_bullets(content, ctx.labels, spec.label)
        return items or None


class LabelledLineStrategy(FieldStrategy):
    """Tier 1: increasingly permissive ``Label<delimiter>value`` regexes."""

    name = "regex"

    def extract(self, spec: FieldSpec, ctx: ParseContext) -> Optional[FieldValue]:
        label = re.escape(spec.label)
        patterns = (
            rf"{label}[ \t]*:[ \t]*(.+)",
            rf"{label}[ \t]*=[ \t]*(.+)",
            rf"{label}[ \t]+(\S.*)",
        )
        for pattern in patterns:
            for match in re.finditer(pattern, ctx.text):
                value = clean_scalar(match.group(1))
                if value:
                    return value
        return None


class SubstringLineStrategy(FieldStrategy):
    """Tier 2: case-insensitive whole-word label search, rest of the line.

    Occurrences that open a line (after optional markdown) are tried before
    occurrences in running prose.
    """

    name = "substring"

    def extract(self, spec: FieldSpec, ctx: ParseContext) -> Optional[FieldValue]:
        def _opens_line(match: re.Match) -> bool:
            line_start = ctx.text.rfind("\n", 0, match.start()) + 1
            return not ctx.text[line_start : match.start()].strip(" \t*#>-•")

        pattern = re.compile(rf"\b{re.escape(spec.label)}\b", re.IGNORECASE)
        for match in sorted(pattern.finditer(ctx.text), key=lambda m: not _opens_line(m)):
            line_end = ctx.text.find("\n", match.end())
            if line_end == -1:
                line_end = len(ctx.text)
            remainder = re.sub(r"^[^A-Za-z0-9\[*`]+", "", ctx.text[match.end() : line_end])
            value = clean_scalar(remainder)
            if value:
                return value
        return None


class VocabularyStrategy(FieldStrategy):
    """Tier 3: first vocabulary keyword found in the lower-cased text."""

    name = "vocabulary"

    def __init__(self, vocabulary: Sequence[Tuple[str, str]]) -> None:
        self._vocabulary = tuple(vocabulary)

    def extract(self, spec: FieldSpec, ctx: ParseContext) -> Optional[FieldValue]:
        # Label markers are not content; "Marketing Strategy:" must not read as a niche.
        scanned = ctx.text
        for label in ctx.labels:
            scanned = scanned.replace(f"{label}:", " ")
        lowered = scanned.lower()
        for keyword, value in self._vocabulary:
            if re.search(rf"\b{re.escape(keyword)}\b", lowered):
                return value
        return None


def category_for_niche(niche: str) -> Optional[str]:
    """Look up the category of a resolved niche, tolerating free-text niches."""

    if not niche:
        return None
    if niche in NICHE_TO_CATEGORY:
        return NICHE_TO_CATEGORY[niche]
    lowered = niche.lower()
    for key, category in NICHE_TO_CATEGORY.items():
        if key.lower() == lowered:
            return category
    for keyword, canonical in NICHE_VOCABULARY:
        if re.search(rf"\b{re.escape(keyword)}\b", lowered):
            return NICHE_TO_CATEGORY.get(canonical)
    return None


class CategoryFromNicheStrategy(FieldStrategy):
    name = "niche_lookup"

    def extract(self, spec: FieldSpec, ctx: ParseContext) -> Optional[FieldValue]:
        niche = ctx.resolved.get("niche")
        if not isinstance(niche, str):
            return None
        return category_for_niche(niche)


class DefaultStrategy(FieldStrategy):
    name = "default"

    def __init__(self, value: FieldValue) -> None:
        self._value = value

    def extract(self, spec: FieldSpec, ctx: ParseContext) -> Optional[FieldValue]:
        return list(self._value) if isinstance(self._value, list) else self._value


SCALAR_CHAIN: Tuple[FieldStrategy, ...] = (
    SectionScalarStrategy(),
    LabelledLineStrategy(),
    SubstringLineStrategy(),
)
LIST_CHAIN: Tuple[FieldStrategy, ...] = (
    SectionListStrategy(),
    TrailingSectionStrategy(),
)

CLASSIFICATION_CHAINS: Dict[str, Tuple[FieldStrategy, ...]] = {
    "niche": SCALAR_CHAIN + (VocabularyStrategy(NICHE_VOCABULARY),),
    "category": SCALAR_CHAIN + (CategoryFromNicheStrategy(), DefaultStrategy(DEFAULT_CATEGORY)),
    "potential_impact": SCALAR_CHAIN + (VocabularyStrategy(IMPACT_VOCABULARY), DefaultStrategy(DEFAULT_IMPACT)),
}

# Classification values that must be coerced before a strategy counts as a hit.
NORMALISERS: Dict[str, Callable[[str], Optional[str]]] = {
    "potential_impact": normalise_impact,
}


def chain_for(spec: FieldSpec) -> Tuple[FieldStrategy, ...]:
    if spec.kind is FieldKind.LIST:
        return LIST_CHAIN
    if spec.kind is FieldKind.CLASSIFICATION:
        return CLASSIFICATION_CHAINS.get(spec.key, SCALAR_CHAIN)
    return SCALAR_CHAIN


def _resolve(spec: FieldSpec, ctx: ParseContext) -> FieldValue:
    normaliser = NORMALISERS.get(spec.key)
    for strategy in chain_for(spec):
        value = strategy.extract(spec, ctx)
        if value is None:
            continue
        if normaliser is not None and isinstance(value, str):
            value = normaliser(value)
            if value is None:
                continue
        logger.debug("Resolved %s via %s", spec.key, strategy.name)
        return value
    return [] if spec.kind is FieldKind.LIST else ""


def _parse_fields(
    raw_text: Optional[str],
    specs: Sequence[FieldSpec],
    labels: Tuple[str, ...],
    trailing_label: str,
) -> Dict[str, FieldValue]:
    text = strip_headers(raw_text if isinstance(raw_text, str) else "")
    ctx = ParseContext(
        text=text,
        labels=labels,
        trailing_label=trailing_label,
    )
    for spec in specs:
        ctx.resolved[spec.key] = _resolve(spec, ctx)
    return dict(ctx.resolved)


def parse(raw_text: Optional[str], template: ExtractionTemplate) -> Dict[str, FieldValue]:
    """Parse one idea-sized chunk of model output for ``template``."""

    return _parse_fields(raw_text, template.fields, template.labels, template.trailing_label)


def parse_sections(
    raw_text: Optional[str],
    section_names: Sequence[str],
    *,
    list_sections: Sequence[str] = (),
) -> Dict[str, FieldValue]:
    """Parse an ad-hoc label set. Keys are the labels themselves; the last label is treated as trailing."""

    list_names = set(list_sections)
    specs = [
        FieldSpec(name, name, FieldKind.LIST if name in list_names else FieldKind.SCALAR)
        for name in section_names
    ]
    trailing = section_names[-1] if section_names else ""
    return _parse_fields(raw_text, specs, tuple(section_names), trailing)


def build_record(
    fields: Dict[str, FieldValue],
    template: ExtractionTemplate,
    *,
    full_analysis: str,
    source_external_id: str,
) -> ExtractedRecord:
    """Instantiate the template's record type from parsed fields."""

    known = {spec.key for spec in template.fields}
    values = {key: value for key, value in fields.items() if key in known}
    return template.record_type(
        full_analysis=full_analysis,
        source_external_id=source_external_id,
        **values,
    )


__all__ = [
    "FieldStrategy",
    "HEADER_PATTERN",
    "build_record",
    "category_for_niche",
    "clean_scalar",
    "extract_bullets",
    "find_section",
    "normalise_impact",
    "parse",
    "parse_sections",
    "strip_headers",
]
