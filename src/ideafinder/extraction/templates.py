"""Field layouts of the two record variants and the vocabularies used to classify them."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Tuple, Type

from ideafinder.core.models import BusinessIdea, ExtractedRecord, MarketingIdea


class FieldKind(str, enum.Enum):
    SCALAR = "scalar"
    LIST = "list"
    CLASSIFICATION = "classification"


@dataclass(slots=True, frozen=True)
class FieldSpec:
    """One labelled section of the model output and the record field it fills."""

    key: str
    label: str
    kind: FieldKind = FieldKind.SCALAR


@dataclass(slots=True, frozen=True)
class ExtractionTemplate:
    """Everything the parser and client need to know about one record variant.

    ``trailing_label`` names the section the model writes last; when the
    bounded scan finds no bullets under it the parser re-reads from that label
    to the end of the text.
    """

    kind: str
    record_type: Type[ExtractedRecord]
    fields: Tuple[FieldSpec, ...]
    trailing_label: str
    subject: str

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(spec.label for spec in self.fields)


# Ordered (keyword, niche) pairs scanned over the lower-cased output when no
# niche label could be read. More specific terms come first.
NICHE_VOCABULARY: Tuple[Tuple[str, str], ...] = (
    ("fintech", "FinTech"),
    ("edtech", "EdTech"),
    ("healthtech", "HealthTech"),
    ("saas", "SaaS"),
    ("e-commerce", "E-commerce"),
    ("ecommerce", "E-commerce"),
    ("accounting", "Accounting"),
    ("bookkeeping", "Accounting"),
    ("invoicing", "Accounting"),
    ("cybersecurity", "Cybersecurity"),
    ("real estate", "Real Estate"),
    ("fitness", "Fitness"),
    ("photography", "Photography"),
    ("game development", "Gaming"),
    ("gaming", "Gaming"),
    ("seo", "SEO"),
    ("freelance", "Freelancing"),
    ("freelancers", "Freelancing"),
    ("creator economy", "Creator Economy"),
    ("productivity", "Productivity"),
    ("education", "EdTech"),
    ("healthcare", "HealthTech"),
    ("marketing", "Marketing"),
    ("recruiting", "HR Tech"),
    ("hiring", "HR Tech"),
    ("logistics", "Logistics"),
)

NICHE_TO_CATEGORY: Dict[str, str] = {
    "FinTech": "FinTech",
    "Accounting": "FinTech",
    "EdTech": "EdTech",
    "HealthTech": "HealthTech",
    "Fitness": "HealthTech",
    "SaaS": "SaaS",
    "Productivity": "Productivity",
    "Freelancing": "Productivity",
    "E-commerce": "E-commerce",
    "Cybersecurity": "Security",
    "Real Estate": "PropTech",
    "Photography": "Creative Tools",
    "Creator Economy": "Creative Tools",
    "Gaming": "Entertainment",
    "SEO": "MarTech",
    "Marketing": "MarTech",
    "HR Tech": "HR Tech",
    "Logistics": "Logistics",
}

DEFAULT_CATEGORY = "Other"

IMPACT_LEVELS: Tuple[str, ...] = ("High", "Medium", "Low")
DEFAULT_IMPACT = "Medium"


BUSINESS_TEMPLATE = ExtractionTemplate(
    kind=BusinessIdea.KIND,
    record_type=BusinessIdea,
    subject="business idea",
    trailing_label="Marketing Strategy",
    fields=(
        FieldSpec("name", "Business Idea"),
        FieldSpec("problem_story", "Problem Story"),
        FieldSpec("solution_vision", "Solution Vision"),
        FieldSpec("opportunity_points", "Opportunities", FieldKind.LIST),
        FieldSpec("problems_solved", "Problems Solved", FieldKind.LIST),
        FieldSpec("target_customers", "Target Customers", FieldKind.LIST),
        FieldSpec("revenue_model", "Revenue Model", FieldKind.LIST),
        FieldSpec("market_size", "Market Size", FieldKind.LIST),
        FieldSpec("niche", "Niche", FieldKind.CLASSIFICATION),
        FieldSpec("category", "Category", FieldKind.CLASSIFICATION),
        FieldSpec("competitive_advantage", "Competitive Advantage", FieldKind.LIST),
        FieldSpec("next_steps", "Next Steps", FieldKind.LIST),
        FieldSpec("marketing_strategy", "Marketing Strategy", FieldKind.LIST),
    ),
)

MARKETING_TEMPLATE = ExtractionTemplate(
    kind=MarketingIdea.KIND,
    record_type=MarketingIdea,
    subject="marketing idea",
    trailing_label="Success Metrics",
    fields=(
        FieldSpec("name", "Marketing Idea"),
        FieldSpec("idea_description", "Idea Description"),
        FieldSpec("channel", "Channels", FieldKind.LIST),
        FieldSpec("target_audience", "Target Audience", FieldKind.LIST),
        FieldSpec("potential_impact", "Potential Impact", FieldKind.CLASSIFICATION),
        FieldSpec("implementation_tips", "Implementation Tips", FieldKind.LIST),
        FieldSpec("success_metrics", "Success Metrics", FieldKind.LIST),
    ),
)

TEMPLATES: Dict[str, ExtractionTemplate] = {
    BUSINESS_TEMPLATE.kind: BUSINESS_TEMPLATE,
    MARKETING_TEMPLATE.kind: MARKETING_TEMPLATE,
}


def get_template(kind: str) -> ExtractionTemplate:
    """Return the template registered for ``kind``."""

    try:
        return TEMPLATES[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown record kind: {kind!r}") from exc


__all__ = [
    "BUSINESS_TEMPLATE",
    "DEFAULT_CATEGORY",
    "DEFAULT_IMPACT",
    "ExtractionTemplate",
    "FieldKind",
    "FieldSpec",
    "IMPACT_LEVELS",
    "MARKETING_TEMPLATE",
    "NICHE_TO_CATEGORY",
    "NICHE_VOCABULARY",
    "TEMPLATES",
    "get_template",
]
