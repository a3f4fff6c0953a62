"""Render an assembled forest as JSON or YAML.

Feature trees can be as deep as the input's parent chains, so nothing here
recurses per level: payloads are built with an explicit stack, JSON text is
produced by a stack-driven encoder, and YAML goes through PyYAML's event
emitter rather than its recursive representer.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Iterator, Optional

import yaml
from yaml.resolver import Resolver

from featureforest.models import Feature, Forest

SUPPORTED_FORMATS = ("json", "yaml")
FEATURE_KEY = "feature"

_END = object()
_STR_TAG = "tag:yaml.org,2002:str"


def _timestamp(value: datetime) -> str:
    text = value.isoformat()
    if text.endswith("+00:00"):
        return text[:-6] + "Z"
    return text


def _feature_fields(feature: Feature) -> dict[str, Any]:
    return {
        FEATURE_KEY: feature.id,
        "start": _timestamp(feature.start),
        "end": _timestamp(feature.end),
        "progress_status": feature.progress_status,
        "assigned_team": feature.assigned_team,
        "subfeatures": [],
    }


def forest_payload(forest: Forest) -> list[dict[str, Any]]:
    """Plain data for ``forest``: a list of ``{id, root}`` programs.

    Node ids are emitted under the ``feature`` key and timestamps as ISO 8601
    strings (UTC as ``Z``). Order is whatever the forest already holds.
    """
    payload = []
    for program in forest.programs:
        root = _feature_fields(program.root)
        payload.append({"id": program.id, "root": root})
        stack = [(program.root, root)]
        while stack:
            feature, node = stack.pop()
            for child in feature.subfeatures:
                child_node = _feature_fields(child)
                node["subfeatures"].append(child_node)
                stack.append((child, child_node))
    return payload


def _json_chunks(data: Any, indent: Optional[int]) -> Iterator[str]:
    # Same layout as json.dumps(data, indent=indent).
    item_separator = "," if indent else ", "

    def newline(depth: int) -> str:
        return "\n" + " " * (indent * depth) if indent else ""

    stack: list[list[Any]] = []
    value = data
    while True:
        if isinstance(value, dict) and value:
            yield "{"
            stack.append([iter(value.items()), True, len(stack) + 1, False])
        elif isinstance(value, list) and value:
            yield "["
            stack.append([iter(value), False, len(stack) + 1, False])
        else:
            yield json.dumps(value)

        while stack:
            frame = stack[-1]
            entries, is_mapping, depth, started = frame
            entry = next(entries, _END)
            if entry is _END:
                stack.pop()
                yield newline(depth - 1) + ("}" if is_mapping else "]")
                continue
            yield (item_separator if started else "") + newline(depth)
            frame[3] = True
            if is_mapping:
                key, value = entry
                yield json.dumps(str(key)) + ": "
            else:
                value = entry
            break
        else:
            return


def render_json(data: Any, indent: Optional[int] = 2) -> str:
    return "".join(_json_chunks(data, indent if indent and indent > 0 else None))


def _yaml_events(data: Any) -> Iterator[yaml.Event]:
    resolver = Resolver()

    def scalar(value: Any) -> yaml.ScalarEvent:
        if not isinstance(value, str):
            raise TypeError(f"Cannot render {type(value).__name__} as YAML scalar")
        implicit = (
            resolver.resolve(yaml.ScalarNode, value, (True, False)) == _STR_TAG,
            resolver.resolve(yaml.ScalarNode, value, (False, True)) == _STR_TAG,
        )
        return yaml.ScalarEvent(anchor=None, tag=_STR_TAG, implicit=implicit, value=value)

    yield yaml.StreamStartEvent()
    yield yaml.DocumentStartEvent(explicit=False)
    pending: list[Any] = [data]
    while pending:
        value = pending.pop()
        if isinstance(value, yaml.Event):
            yield value
        elif isinstance(value, dict):
            yield yaml.MappingStartEvent(anchor=None, tag=None, implicit=True, flow_style=False)
            pending.append(yaml.MappingEndEvent())
            for key, item in reversed(list(value.items())):
                pending.append(item)
                pending.append(key)
        elif isinstance(value, list):
            yield yaml.SequenceStartEvent(anchor=None, tag=None, implicit=True, flow_style=False)
            pending.append(yaml.SequenceEndEvent())
            pending.extend(reversed(value))
        else:
            yield scalar(value)
    yield yaml.DocumentEndEvent(explicit=False)
    yield yaml.StreamEndEvent()


def render_yaml(data: Any, indent: int = 2) -> str:
    return yaml.emit(
        _yaml_events(data),
        Dumper=yaml.SafeDumper,
        indent=min(9, max(2, indent)),
        allow_unicode=True,
    )


def render_forest(forest: Forest, fmt: str = "json", indent: int = 2) -> str:
    token = (fmt or "").strip().lower()
    if token not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported output format: {fmt!r} (expected one of {', '.join(SUPPORTED_FORMATS)})")
    payload = forest_payload(forest)
    if token == "json":
        return render_json(payload, indent)
    return render_yaml(payload, indent)
