"""
Entity resolution: invoice line items -> tenant catalog entries.

Per line item:
1. Learned-mapping cache hit on (tenant_id, source_code) -> use it, stop.
2. Otherwise score every catalog entry; each entry keeps its best strategy:
     exact code                          1.00
     code substring (either direction)   0.90
     exact name                          0.85
     description contains name (>3)      0.70
     name contains description (>3)      0.65
     token overlap                       0.50 + overlap / max(len_a, len_b) * 0.30
   Text comparisons are case- and accent-insensitive. Tokens shorter than
   four characters are ignored.
3. Accept the top entry when score >= MATCH_ACCEPT_THRESHOLD. Ties go to
   the lexicographically smallest catalog id.
4. On acceptance write a LearnedMapping unless one exists (first write wins).
"""

import re
from typing import Optional, Union

import structlog

from ingestion.config import Settings, settings as default_settings
from ingestion.models.enums import MatchStrategy
from ingestion.observability import metrics
from ingestion.pipeline.errors import collaborator_call
from ingestion.pipeline.header_normalizer import fold_text
from ingestion.schemas.catalog import (
    CatalogEntry,
    LearnedMapping,
    MatchSuggestion,
    ResolutionAmbiguous,
    ResolutionResult,
)
from ingestion.schemas.invoice import CanonicalLineItem
from ingestion.storage.contracts import CatalogReader, MappingStore

logger = structlog.get_logger(__name__)

SCORE_EXACT_CODE = 1.00
SCORE_CODE_SUBSTRING = 0.90
SCORE_EXACT_NAME = 0.85
SCORE_DESCRIPTION_CONTAINS_NAME = 0.70
SCORE_NAME_CONTAINS_DESCRIPTION = 0.65
TOKEN_OVERLAP_BASE = 0.50
TOKEN_OVERLAP_SPAN = 0.30

MIN_TEXT_LENGTH = 4
MIN_TOKEN_LENGTH = 4

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


# ─── Scoring ─────────────────────────────────────────────────

def _tokens(text: str) -> set[str]:
    return {t for t in _TOKEN_SPLIT.split(text) if len(t) >= MIN_TOKEN_LENGTH}


def token_overlap_score(a: str, b: str) -> Optional[float]:
    """None when either side has no usable tokens or nothing overlaps."""
    tokens_a, tokens_b = _tokens(a), _tokens(b)
    if not tokens_a or not tokens_b:
        return None
    overlap = len(tokens_a & tokens_b)
    if overlap == 0:
        return None
    return TOKEN_OVERLAP_BASE + overlap / max(len(tokens_a), len(tokens_b)) * TOKEN_OVERLAP_SPAN


def score_entry(item: CanonicalLineItem, entry: CatalogEntry) -> Optional[MatchSuggestion]:
    """Best-scoring strategy for one (item, entry) pair, or None."""
    candidates: list[tuple[float, MatchStrategy]] = []

    code = (item.sku_or_code or "").strip().lower()
    entry_code = (entry.code or "").strip().lower()
    if code and entry_code:
        if code == entry_code:
            candidates.append((SCORE_EXACT_CODE, MatchStrategy.EXACT_CODE))
        elif code in entry_code or entry_code in code:
            candidates.append((SCORE_CODE_SUBSTRING, MatchStrategy.CODE_SUBSTRING))

    description = fold_text(item.description)
    name = fold_text(entry.name)
    if description and name:
        if description == name:
            candidates.append((SCORE_EXACT_NAME, MatchStrategy.EXACT_NAME))
        if len(name) >= MIN_TEXT_LENGTH and name in description:
            candidates.append((SCORE_DESCRIPTION_CONTAINS_NAME, MatchStrategy.DESCRIPTION_CONTAINS_NAME))
        if len(description) >= MIN_TEXT_LENGTH and description in name:
            candidates.append((SCORE_NAME_CONTAINS_DESCRIPTION, MatchStrategy.NAME_CONTAINS_DESCRIPTION))
        overlap = token_overlap_score(description, name)
        if overlap is not None:
            candidates.append((overlap, MatchStrategy.TOKEN_OVERLAP))

    if not candidates:
        return None
    # Stable max keeps the higher-priority strategy on equal scores
    score, strategy = max(candidates, key=lambda c: c[0])
    return MatchSuggestion(catalog_entry_id=entry.id, score=round(score, 4), strategy=strategy)


def rank_candidates(item: CanonicalLineItem, entries: list[CatalogEntry]) -> list[MatchSuggestion]:
    """All positive-score candidates, best first, ties by catalog id."""
    scored = [s for s in (score_entry(item, e) for e in entries) if s is not None]
    scored.sort(key=lambda s: (-s.score, s.catalog_entry_id))
    return scored


# ─── Resolver ────────────────────────────────────────────────

class EntityResolver:
    """
    Resolves line items for one tenant at a time.

    The mapping store is the only state; the resolver itself holds none, so
    a tenant's documents see each other's learned mappings as long as they
    are processed sequentially. Only catalog and mapping-store calls are
    wrapped as collaborator failures; scoring errors propagate.
    """

    def __init__(
        self,
        catalog: CatalogReader,
        mappings: MappingStore,
        settings: Optional[Settings] = None,
    ):
        self.catalog = catalog
        self.mappings = mappings
        self.settings = settings or default_settings

    def resolve_line_items(
        self,
        tenant_id: str,
        line_items: list[CanonicalLineItem],
    ) -> tuple[list[ResolutionResult], list[ResolutionAmbiguous]]:
        resolved: list[ResolutionResult] = []
        unresolved: list[ResolutionAmbiguous] = []
        entries: Optional[list[CatalogEntry]] = None

        for item in line_items:
            cached = self._from_cache(tenant_id, item)
            if cached is not None:
                resolved.append(cached)
                self._count_resolved(cached.strategy)
                continue

            # Catalog is read once per document, on the first cache miss
            if entries is None:
                with collaborator_call("catalog"):
                    entries = self.catalog.list_entries(tenant_id)

            outcome = self.resolve_item(tenant_id, item, entries)
            if isinstance(outcome, ResolutionResult):
                resolved.append(outcome)
                self._count_resolved(outcome.strategy)
            else:
                unresolved.append(outcome)
                if self.settings.PROMETHEUS_ENABLED:
                    metrics.line_items_unresolved_total.inc()

        logger.info(
            "line_items_resolved",
            tenant_id=tenant_id,
            resolved=len(resolved),
            unresolved=len(unresolved),
            from_cache=sum(1 for r in resolved if r.from_cache),
        )
        return resolved, unresolved

    def resolve_item(
        self,
        tenant_id: str,
        item: CanonicalLineItem,
        entries: list[CatalogEntry],
    ) -> Union[ResolutionResult, ResolutionAmbiguous]:
        """Score `item` against `entries` without consulting the cache."""
        ranked = rank_candidates(item, entries)
        best = ranked[0] if ranked else None

        if best is None or best.score < self.settings.MATCH_ACCEPT_THRESHOLD:
            logger.debug(
                "line_item_unresolved",
                line_index=item.line_index,
                code=item.sku_or_code,
                best_score=best.score if best else 0.0,
            )
            return ResolutionAmbiguous(
                line_index=item.line_index,
                source_code=item.sku_or_code,
                description=item.description,
                best_score=best.score if best else 0.0,
                suggestions=ranked[: self.settings.MAX_SUGGESTIONS],
            )

        self._learn(tenant_id, item, best)
        return ResolutionResult(
            line_index=item.line_index,
            catalog_entry_id=best.catalog_entry_id,
            score=best.score,
            strategy=best.strategy,
        )

    def _from_cache(self, tenant_id: str, item: CanonicalLineItem) -> Optional[ResolutionResult]:
        code = (item.sku_or_code or "").strip()
        if not code:
            return None
        with collaborator_call("mapping_store"):
            mapping = self.mappings.get(tenant_id, code)
        if mapping is None:
            return None
        return ResolutionResult(
            line_index=item.line_index,
            catalog_entry_id=mapping.catalog_entry_id,
            score=mapping.confidence_score,
            strategy=MatchStrategy.LEARNED,
            from_cache=True,
        )

    def _learn(self, tenant_id: str, item: CanonicalLineItem, best: MatchSuggestion) -> None:
        code = (item.sku_or_code or "").strip()
        if not code:
            return
        learned = LearnedMapping(
            tenant_id=tenant_id,
            source_code=code,
            source_description=item.description,
            catalog_entry_id=best.catalog_entry_id,
            confidence_score=best.score,
        )
        with collaborator_call("mapping_store"):
            written = self.mappings.put_if_absent(learned)
        if written:
            logger.info(
                "learned_mapping_created",
                tenant_id=tenant_id,
                source_code=code,
                catalog_entry_id=best.catalog_entry_id,
                score=best.score,
            )
            if self.settings.PROMETHEUS_ENABLED:
                metrics.learned_mappings_created_total.inc()

    def _count_resolved(self, strategy: MatchStrategy) -> None:
        if self.settings.PROMETHEUS_ENABLED:
            metrics.line_items_resolved_total.labels(strategy=strategy.value).inc()
