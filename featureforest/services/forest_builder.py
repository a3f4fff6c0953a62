"""Parse + assemble in one call, with telemetry."""
from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from featureforest import config
from featureforest.errors import IngestionError, InputReadError
from featureforest.models import Forest, OrphanPolicy
from featureforest.observability import record_assembly, record_parse_failure, start_span
from featureforest.parsers.records import iter_records, open_input
from featureforest.services.assembly import ForestAssembler
from featureforest.services.diagnostics import AssemblyObserver, LoggingObserver, RecordingObserver

logger = logging.getLogger("featureforest.builder")


@dataclass
class ForestBuildResult:
    forest: Forest
    record_count: int
    diagnostics: list[dict[str, Any]] = field(default_factory=list)

    @property
    def program_count(self) -> int:
        return len(self.forest.programs)


def _record_failure(kind: str, started: float) -> None:
    record_parse_failure(kind)
    record_assembly("error", (time.perf_counter() - started) * 1000)


def _resolve_policy(orphan_policy: Union[OrphanPolicy, str, None]) -> OrphanPolicy:
    return OrphanPolicy(orphan_policy or config.ORPHAN_POLICY)


def build_forest(
    lines: Iterable[str],
    *,
    source: str = "",
    orphan_policy: Union[OrphanPolicy, str, None] = None,
    check_spans: Optional[bool] = None,
    observer: Optional[AssemblyObserver] = None,
) -> ForestBuildResult:
    """Parse ``lines`` and assemble them.

    Any ingestion error propagates unchanged; no partial forest is returned.
    """
    policy = _resolve_policy(orphan_policy)
    spans = config.CHECK_SPANS if check_spans is None else check_spans
    recorder = RecordingObserver(forward_to=observer or LoggingObserver())
    started = time.perf_counter()

    with start_span("featureforest.build_forest", {"source": source or None, "orphan_policy": policy.value}):
        try:
            records = list(iter_records(lines, source=source))
        except IngestionError as exc:
            _record_failure(exc.kind, started)
            raise

        forest = ForestAssembler(observer=recorder, orphan_policy=policy, check_spans=spans).assemble(records)

    elapsed_ms = (time.perf_counter() - started) * 1000
    record_assembly("ok", elapsed_ms, record_count=len(records), program_count=len(forest.programs))
    logger.info(
        "Assembled %d programs from %d records in %.1fms",
        len(forest.programs),
        len(records),
        elapsed_ms,
    )
    return ForestBuildResult(
        forest=forest,
        record_count=len(records),
        diagnostics=[event.to_dict() for event in recorder.events],
    )


def build_forest_from_path(
    path: Union[str, Path, None],
    *,
    orphan_policy: Union[OrphanPolicy, str, None] = None,
    check_spans: Optional[bool] = None,
    observer: Optional[AssemblyObserver] = None,
) -> ForestBuildResult:
    """Like ``build_forest`` but streams from a file, or stdin for None / ``-``."""
    options = {"orphan_policy": orphan_policy, "check_spans": check_spans, "observer": observer}
    started = time.perf_counter()
    try:
        handle, source = open_input(path)
    except InputReadError as exc:
        _record_failure(exc.kind, started)
        raise
    if handle is sys.stdin:
        return build_forest(handle, source=source, **options)
    with handle:
        return build_forest(handle, source=source, **options)
