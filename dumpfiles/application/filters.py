"""
Composable record predicates used to decide which consumers see a record.

Filters are plain callables taking a record and returning a bool, so they can
be combined freely instead of being modelled as a class hierarchy.
"""

from typing import Optional

from .domain import Record, RecordPredicate


def accept_all(record: Record) -> bool:
    return True


def site_filter(site: str) -> RecordPredicate:
    """Accepts records originating from the given site only."""

    def _matches_site(record: Record) -> bool:
        return record.site == site

    return _matches_site


def current_revisions_only(record: Record) -> bool:
    return record.is_current


def model_filter(model: str) -> RecordPredicate:
    """
    Accepts revisions with the given content model, e.g. "wikibase-item".
    Records without a content model (entity documents) never match.
    """

    def _matches_model(record: Record) -> bool:
        return getattr(record, "model", None) == model

    return _matches_model


def all_of(*predicates: RecordPredicate) -> RecordPredicate:
    """Combines predicates; the result accepts what every one accepts."""
    active = tuple(predicates)
    if not active:
        return accept_all
    if len(active) == 1:
        return active[0]

    def _all(record: Record) -> bool:
        return all(predicate(record) for predicate in active)

    return _all


def build_predicate(
    site: Optional[str] = None,
    current_only: bool = False,
    extra: Optional[RecordPredicate] = None,
) -> RecordPredicate:
    """Builds the dispatch predicate for one consumer registration."""
    predicates = []
    if site is not None:
        predicates.append(site_filter(site))
    if current_only:
        predicates.append(current_revisions_only)
    if extra is not None:
        predicates.append(extra)
    return all_of(*predicates)
