"""Incremental update of an enriched calendar against a freshly parsed feed."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from processor.event_enricher import EventEnricher
from processor.models import Calendar, Event, SyncResult, current_millis

logger = logging.getLogger(__name__)


@dataclass
class UpdatePlan:
    """Output events in feed order plus the subset that still needs enrichment."""
    events: List[Event] = field(default_factory=list)
    new_events: List[Event] = field(default_factory=list)
    kept: int = 0
    removed: int = 0


def plan_update(previous: List[Event], fresh: List[Event]) -> UpdatePlan:
    """
    Match previously enriched events against freshly parsed ones.

    Both lists are walked once, in order. For each previous event the
    fresh list is searched forward from the current cursor for an event
    with the same identity key. Fresh events skipped over by a match are
    new; a previous event with no match is removed; fresh events left
    after the walk are new.

    Matching is forward-only: if the feed reorders entries, moved events
    are reported as removed and re-added rather than kept.

    Args:
        previous: Events of the cached, enriched calendar
        fresh: Events of the newly parsed calendar

    Returns:
        UpdatePlan whose events reuse the previous instances where matched
    """
    plan = UpdatePlan()
    fresh_keys = [event.identity_key() for event in fresh]
    j = 0

    for old_event in previous:
        try:
            x = fresh_keys.index(old_event.identity_key(), j)
        except ValueError:
            plan.removed += 1
            continue

        appeared = fresh[j:x]
        plan.events.extend(appeared)
        plan.new_events.extend(appeared)
        plan.events.append(old_event)
        plan.kept += 1
        j = x + 1

    tail = fresh[j:]
    plan.events.extend(tail)
    plan.new_events.extend(tail)
    return plan


class CalendarUpdater:
    """Produces the next cached calendar, enriching only new events."""

    def __init__(self, enricher: EventEnricher):
        self.enricher = enricher
        self.last_result: Optional[SyncResult] = None

    async def update(self, previous: Optional[Calendar], fresh: Calendar) -> Calendar:
        """
        Reconcile a cached calendar with a freshly parsed one.

        Args:
            previous: Last cached, enriched calendar, or None for a cold start
            fresh: Calendar parsed from the current feed

        Returns:
            Calendar with unchanged events carried over and new events enriched
        """
        if previous is None:
            logger.info(f"Cold start, enriching all {len(fresh.events)} events")
            await self.enricher.enrich(fresh)
            self.last_result = SyncResult(kept=0, added=len(fresh.events), removed=0)
            return fresh

        plan = plan_update(previous.events, fresh.events)
        logger.info(
            f"Update plan: {plan.kept} kept, {len(plan.new_events)} added, "
            f"{plan.removed} removed"
        )

        await self.enricher.enrich_events(plan.new_events)

        self.last_result = SyncResult(
            kept=plan.kept,
            added=len(plan.new_events),
            removed=plan.removed
        )
        return Calendar(events=plan.events, update_time=current_millis())
