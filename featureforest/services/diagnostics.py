"""Assembly observers.

The assembly engine never logs on its own; it reports anomalies to an
observer. ``AssemblyObserver`` ignores everything, ``LoggingObserver`` writes
to the ``featureforest.assembly`` logger and ``RecordingObserver`` keeps the
events for callers that want to return them.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from featureforest.models import FeatureRecord

logger = logging.getLogger("featureforest.assembly")


class AssemblyObserver:
    """No-op observer. Subclasses override the events they care about."""

    def duplicate_record(self, previous: FeatureRecord, current: FeatureRecord) -> None:
        pass

    def undefined_parent(self, parent_id: str, child_ids: list[str]) -> None:
        pass

    def orphan_promoted(self, feature_id: str, parent_id: str) -> None:
        pass

    def cycle_detected(self, feature_id: str, path: list[str]) -> None:
        pass

    def span_violation(self, feature_id: str, reason: str) -> None:
        pass


class LoggingObserver(AssemblyObserver):
    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self.log = log or logger

    def duplicate_record(self, previous: FeatureRecord, current: FeatureRecord) -> None:
        self.log.info("Duplicate feature id %s; keeping the later record", current.id)

    def undefined_parent(self, parent_id: str, child_ids: list[str]) -> None:
        self.log.warning(
            "Parent %s is referenced by %s but never defined",
            parent_id,
            ", ".join(child_ids),
        )

    def orphan_promoted(self, feature_id: str, parent_id: str) -> None:
        self.log.info("Promoted %s to a root (undefined parent %s)", feature_id, parent_id)

    def cycle_detected(self, feature_id: str, path: list[str]) -> None:
        self.log.warning("Cycle skipped at %s: %s", feature_id, " -> ".join(path + [feature_id]))

    def span_violation(self, feature_id: str, reason: str) -> None:
        self.log.warning("Span check failed for %s: %s", feature_id, reason)


@dataclass
class AssemblyEvent:
    type: str
    feature_id: str
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RecordingObserver(AssemblyObserver):
    """Collects events and optionally forwards them to another observer."""

    forward_to: Optional[AssemblyObserver] = None
    events: list[AssemblyEvent] = field(default_factory=list)

    def _forward(self, name: str, *args: Any) -> None:
        if self.forward_to is not None:
            getattr(self.forward_to, name)(*args)

    def duplicate_record(self, previous: FeatureRecord, current: FeatureRecord) -> None:
        self.events.append(AssemblyEvent("duplicate_record", current.id))
        self._forward("duplicate_record", previous, current)

    def undefined_parent(self, parent_id: str, child_ids: list[str]) -> None:
        self.events.append(AssemblyEvent("undefined_parent", parent_id, ",".join(child_ids)))
        self._forward("undefined_parent", parent_id, child_ids)

    def orphan_promoted(self, feature_id: str, parent_id: str) -> None:
        self.events.append(AssemblyEvent("orphan_promoted", feature_id, parent_id))
        self._forward("orphan_promoted", feature_id, parent_id)

    def cycle_detected(self, feature_id: str, path: list[str]) -> None:
        self.events.append(AssemblyEvent("cycle_detected", feature_id, "->".join(path)))
        self._forward("cycle_detected", feature_id, path)

    def span_violation(self, feature_id: str, reason: str) -> None:
        self.events.append(AssemblyEvent("span_violation", feature_id, reason))
        self._forward("span_violation", feature_id, reason)

    def of_type(self, event_type: str) -> list[AssemblyEvent]:
        return [event for event in self.events if event.type == event_type]
