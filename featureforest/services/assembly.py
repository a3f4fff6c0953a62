"""Forest assembly.

Turns an ordered sequence of feature records into a ``Forest``:

1. one pass over the records builds an adjacency map keyed by feature id,
   tolerant of children that arrive before (or without) their parent;
2. resolved entries without a parent become roots, one ``Program`` each;
3. each root's subtree is materialized from the adjacency map, with
   subfeatures ordered by start time.

Assembly never raises for well-formed records. Anomalies are absorbed by
fixed policies and reported to an ``AssemblyObserver``:

- duplicate ids: the later record's data wins, children accumulate;
- undefined parents: the referencing branch is dropped
  (``OrphanPolicy.DROP``) or promoted to its own program
  (``OrphanPolicy.PROMOTE``);
- cyclic parent chains: the repeated id is skipped.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Sequence, Union

from featureforest.date_utils import span_contains
from featureforest.models import Feature, FeatureRecord, Forest, OrphanPolicy, Program
from featureforest.services.diagnostics import AssemblyObserver


@dataclass(frozen=True)
class Unresolved:
    """Id referenced as a parent whose own record has not been seen."""


@dataclass(frozen=True)
class Resolved:
    record: FeatureRecord


EntryData = Union[Unresolved, Resolved]
UNRESOLVED = Unresolved()


@dataclass
class AdjacencyEntry:
    data: EntryData = UNRESOLVED
    children: list[str] = field(default_factory=list)

    @property
    def record(self) -> Optional[FeatureRecord]:
        if isinstance(self.data, Resolved):
            return self.data.record
        return None

    @property
    def is_resolved(self) -> bool:
        return isinstance(self.data, Resolved)


AdjacencyMap = dict[str, AdjacencyEntry]


@dataclass
class _Frame:
    record: Optional[FeatureRecord]
    pending: Iterator[str]
    collected: list[Feature] = field(default_factory=list)


class ForestAssembler:
    """Builds a forest from feature records.

    One instance may be reused; no state survives between ``assemble`` calls.
    """

    def __init__(
        self,
        observer: Optional[AssemblyObserver] = None,
        orphan_policy: Union[OrphanPolicy, str] = OrphanPolicy.DROP,
        check_spans: bool = False,
    ) -> None:
        self.observer = observer or AssemblyObserver()
        self.orphan_policy = OrphanPolicy(orphan_policy)
        self.check_spans = check_spans

    # ── Adjacency ──────────────────────────────────────────────────

    def build_adjacency(self, records: Iterable[FeatureRecord]) -> AdjacencyMap:
        entries: AdjacencyMap = {}
        for record in records:
            entry = entries.get(record.id)
            if entry is None:
                entries[record.id] = AdjacencyEntry(data=Resolved(record))
            else:
                previous = entry.record
                if previous is not None:
                    self.observer.duplicate_record(previous, record)
                entry.data = Resolved(record)

            if record.parent_id is None:
                continue
            parent = entries.get(record.parent_id)
            if parent is None:
                entries[record.parent_id] = AdjacencyEntry(children=[record.id])
            else:
                parent.children.append(record.id)
        return entries

    @staticmethod
    def find_roots(entries: AdjacencyMap) -> list[str]:
        return [
            feature_id
            for feature_id, entry in entries.items()
            if entry.record is not None and entry.record.parent_id is None
        ]

    @staticmethod
    def unresolved_ids(entries: AdjacencyMap) -> list[str]:
        return [feature_id for feature_id, entry in entries.items() if not entry.is_resolved]

    # ── Resolution ─────────────────────────────────────────────────

    def resolve_children(
        self,
        child_ids: Sequence[str],
        entries: AdjacencyMap,
        ancestors: Sequence[str] = (),
        parent: Optional[FeatureRecord] = None,
    ) -> list[Feature]:
        """Materialize ``child_ids`` and their descendants.

        Unresolved ids are omitted together with everything below them. The
        walk uses an explicit stack, so chain depth is not bounded by the
        interpreter recursion limit; ``ancestors`` seeds the cycle guard.
        """
        path = list(ancestors)
        on_path = set(path)
        top = _Frame(record=parent, pending=iter(child_ids))
        stack = [top]

        while stack:
            frame = stack[-1]
            child_id = next(frame.pending, None)
            if child_id is None:
                stack.pop()
                if frame is not top:
                    path.pop()
                    on_path.discard(frame.record.id)
                    stack[-1].collected.append(Feature.from_record(frame.record, frame.collected))
                continue

            child = entries.get(child_id)
            if child is None or child.record is None:
                continue
            if child_id in on_path:
                self.observer.cycle_detected(child_id, list(path))
                continue
            if self.check_spans and frame.record is not None:
                self._check_nesting(frame.record, child.record)

            stack.append(_Frame(record=child.record, pending=iter(child.children)))
            path.append(child_id)
            on_path.add(child_id)

        return top.collected

    def resolve_tree(self, feature_id: str, entries: AdjacencyMap) -> Optional[Feature]:
        entry = entries.get(feature_id)
        if entry is None or entry.record is None:
            return None
        subfeatures = self.resolve_children(
            entry.children, entries, ancestors=[feature_id], parent=entry.record
        )
        return Feature.from_record(entry.record, subfeatures)

    # ── Forest ─────────────────────────────────────────────────────

    def assemble(self, records: Iterable[FeatureRecord]) -> Forest:
        entries = self.build_adjacency(records)

        for parent_id in self.unresolved_ids(entries):
            self.observer.undefined_parent(parent_id, list(entries[parent_id].children))
        if self.check_spans:
            self._check_own_spans(entries)

        programs: list[Program] = []
        for root_id in self.find_roots(entries):
            root = self.resolve_tree(root_id, entries)
            programs.append(Program(id=entries[root_id].record.program_id, root=root))

        if self.orphan_policy is OrphanPolicy.PROMOTE:
            programs.extend(self._promote_orphans(entries))

        return Forest(programs=programs)

    def _promote_orphans(self, entries: AdjacencyMap) -> list[Program]:
        programs: list[Program] = []
        for parent_id in self.unresolved_ids(entries):
            seen: set[str] = set()
            for child_id in entries[parent_id].children:
                record = entries[child_id].record
                # A later duplicate may have re-parented the child elsewhere.
                if child_id in seen or record is None or record.parent_id != parent_id:
                    continue
                seen.add(child_id)
                self.observer.orphan_promoted(child_id, parent_id)
                programs.append(Program(id=record.program_id, root=self.resolve_tree(child_id, entries)))
        return programs

    # ── Span diagnostics ───────────────────────────────────────────

    def _check_own_spans(self, entries: AdjacencyMap) -> None:
        for feature_id, entry in entries.items():
            record = entry.record
            if record is not None and record.start > record.end:
                self.observer.span_violation(feature_id, "start is after end")

    def _check_nesting(self, parent: FeatureRecord, child: FeatureRecord) -> None:
        if not span_contains(parent.start, parent.end, child.start, child.end):
            self.observer.span_violation(child.id, f"span is not within parent {parent.id}")


def assemble(
    records: Iterable[FeatureRecord],
    *,
    observer: Optional[AssemblyObserver] = None,
    orphan_policy: Union[OrphanPolicy, str] = OrphanPolicy.DROP,
    check_spans: bool = False,
) -> Forest:
    """Assemble ``records`` into a forest. Never raises for valid records."""
    assembler = ForestAssembler(observer=observer, orphan_policy=orphan_policy, check_spans=check_spans)
    return assembler.assemble(records)
