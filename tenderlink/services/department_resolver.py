"""Department mapping resolver — raw buyer entity → canonical department.

Rules are evaluated in tiers, one tier per match type, in a fixed order.
The first tier that produces any match wins, so an exact rule always beats
a contains rule for the same input whatever their confidences. Inside a
tier the strongest candidate wins (highest confidence for contains; best
similarity for fuzzy).

The default order is exact → contains. Regex and fuzzy strategies exist
behind the same interface and are only evaluated when appended to
settings.resolver_match_order, after contains.

Resolution happens at query time, never during ingestion, so a new rule
reclassifies every previously ingested opportunity immediately.

Usage:
    resolver = DepartmentResolver(load_rules(db, tenant_id))
    match = resolver.resolve("Department of Finance - Canberra")
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable

from rapidfuzz import fuzz
from sqlalchemy.orm import Session

from ..config import settings
from ..models import DepartmentMapping, Opportunity

log = logging.getLogger("tenderlink.resolver")

BASE_ORDER = ("exact", "contains")
EXTENSION_TYPES = ("regex", "fuzzy")


@dataclass(frozen=True)
class DepartmentMatch:
    department: str
    agency: str | None
    confidence: float
    approved: bool
    match_type: str
    mapping_id: int | None = None


# ── Strategies ────────────────────────────────────────────────────────


class MatchStrategy:
    """One match type. Subclasses decide membership and rank inside the tier."""

    match_type = ""

    def matches(self, pattern: str, raw: str) -> bool:
        raise NotImplementedError

    def rank(self, rule: DepartmentMapping, raw: str) -> tuple:
        return (rule.confidence or 0.0, len(rule.source_pattern or ""), -(rule.id or 0))


class ExactMatch(MatchStrategy):
    match_type = "exact"

    def matches(self, pattern: str, raw: str) -> bool:
        return pattern == raw


class ContainsMatch(MatchStrategy):
    match_type = "contains"

    def matches(self, pattern: str, raw: str) -> bool:
        return bool(pattern) and pattern.casefold() in raw.casefold()


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern | None:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        log.debug(f"Ignoring invalid regex mapping {pattern!r}: {e}")
        return None


class RegexMatch(MatchStrategy):
    match_type = "regex"

    def matches(self, pattern: str, raw: str) -> bool:
        compiled = _compile(pattern)
        return compiled is not None and compiled.search(raw) is not None


class FuzzyMatch(MatchStrategy):
    match_type = "fuzzy"

    def __init__(self, threshold: float | None = None):
        self.threshold = settings.fuzzy_match_threshold if threshold is None else threshold

    def score(self, pattern: str, raw: str) -> float:
        return fuzz.token_sort_ratio(pattern.casefold(), raw.casefold())

    def matches(self, pattern: str, raw: str) -> bool:
        return bool(pattern) and self.score(pattern, raw) >= self.threshold

    def rank(self, rule: DepartmentMapping, raw: str) -> tuple:
        return (self.score(rule.source_pattern, raw),) + super().rank(rule, raw)


STRATEGIES: dict[str, type[MatchStrategy]] = {
    s.match_type: s for s in (ExactMatch, ContainsMatch, RegexMatch, FuzzyMatch)
}


def validate_order(order: Iterable[str]) -> tuple[str, ...]:
    """Exact then contains always lead; only regex/fuzzy may follow, once each."""
    order = tuple(order)
    if order[: len(BASE_ORDER)] != BASE_ORDER:
        raise ValueError(f"Resolver order must start with {BASE_ORDER}, got {order}")
    extras = order[len(BASE_ORDER):]
    if len(set(extras)) != len(extras) or any(t not in EXTENSION_TYPES for t in extras):
        raise ValueError(f"Only {EXTENSION_TYPES} may follow {BASE_ORDER}, got {extras}")
    return order


# ── Resolver ──────────────────────────────────────────────────────────


class DepartmentResolver:
    """Resolves many raw strings against one tenant's preloaded rules."""

    def __init__(self, rules: Iterable[DepartmentMapping], order: Iterable[str] | None = None):
        self.order = validate_order(order or settings.resolver_match_order)
        self.strategies = {t: STRATEGIES[t]() for t in self.order}
        self.rules_by_type: dict[str, list[DepartmentMapping]] = {t: [] for t in self.order}
        for rule in rules:
            if rule.match_type in self.rules_by_type:
                self.rules_by_type[rule.match_type].append(rule)

    def resolve(self, raw: str | None) -> DepartmentMatch | None:
        if not raw or not raw.strip():
            return None
        for match_type in self.order:
            strategy = self.strategies[match_type]
            candidates = [
                r for r in self.rules_by_type[match_type]
                if strategy.matches(r.source_pattern, raw)
            ]
            if candidates:
                best = max(candidates, key=lambda r: strategy.rank(r, raw))
                return DepartmentMatch(
                    department=best.canonical_department,
                    agency=best.canonical_agency,
                    confidence=float(best.confidence if best.confidence is not None else 1.0),
                    approved=bool(best.is_approved),
                    match_type=match_type,
                    mapping_id=best.id,
                )
        return None


def load_rules(db: Session, tenant_id: str) -> list[DepartmentMapping]:
    return (
        db.query(DepartmentMapping)
        .filter(DepartmentMapping.tenant_id == tenant_id)
        .order_by(DepartmentMapping.id)
        .all()
    )


def resolve_department(db: Session, tenant_id: str, raw: str | None) -> DepartmentMatch | None:
    """Resolve a single raw buyer-entity string for a tenant."""
    if not raw or not raw.strip():
        return None
    return DepartmentResolver(load_rules(db, tenant_id)).resolve(raw)


# ── Unmapped discovery ────────────────────────────────────────────────


def find_unmapped_entities(raw_entities: Iterable[str | None], patterns: Iterable[str]) -> list[str]:
    """Distinct raw strings no pattern covers by equality or case-folded substring.

    Order of first appearance is kept. Match types are ignored:
    any rule whose text covers the entity counts as mapped.
    """
    folded = [(p, p.casefold()) for p in patterns if p]
    seen: set[str] = set()
    unmapped = []
    for entity in raw_entities:
        if not entity or entity in seen:
            continue
        seen.add(entity)
        lowered = entity.casefold()
        if not any(entity == p or f in lowered for p, f in folded):
            unmapped.append(entity)
    return unmapped


def distinct_buyer_entities(db: Session, tenant_id: str) -> list[str]:
    rows = (
        db.query(Opportunity.buyer_entity_raw)
        .filter(Opportunity.tenant_id == tenant_id, Opportunity.buyer_entity_raw.isnot(None))
        .order_by(Opportunity.id)
        .all()
    )
    return list(dict.fromkeys(r[0] for r in rows if r[0]))


def list_unmapped_entities(db: Session, tenant_id: str) -> list[str]:
    patterns = [r.source_pattern for r in load_rules(db, tenant_id)]
    return find_unmapped_entities(distinct_buyer_entities(db, tenant_id), patterns)
