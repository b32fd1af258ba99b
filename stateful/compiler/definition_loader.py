"""Load state attribute declarations from ``kind: StateMachine`` YAML manifests.

Example manifest::

    apiVersion: v1
    kind: StateMachine
    metadata:
      name: state
    spec:
      default: draft
      states:
        draft: beta
        beta:
          needs_testing: needs_approval
          needs_approval: [draft, approved]
        approved: "*"
      events:
        submit: beta
      track: [approved]

A file may hold several ``StateMachine`` documents separated by ``---``.
``kind: Config`` documents are skipped, so a manifest may share a file
with the library configuration.

Usage::

    class Kata(Stateful):
        state = load_state_attributes("kata_states.yaml")["state"]
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from stateful.api.attribute import StateAttribute
from stateful.kernel.domain.options import AttributeOptions
from stateful.kernel.exceptions import DefinitionLoaderError
from stateful.kernel.logging import get_logger

logger = get_logger(__name__)

_KIND = "StateMachine"
_SKIPPED_KINDS = frozenset({"Config"})


class StateMachineLoader:
    """Parses state machine manifests into :class:`AttributeOptions`."""

    def load_file(self, path: str | Path) -> list[AttributeOptions]:
        manifest_path = Path(path)
        if not manifest_path.exists():
            raise FileNotFoundError(f"State machine manifest not found: {manifest_path}")
        return self.load_string(manifest_path.read_text(encoding="utf-8"), source=manifest_path.name)

    def load_string(self, content: str, source: str = "<string>") -> list[AttributeOptions]:
        """Parse every ``StateMachine`` document in ``content``.

        Raises
        ------
        DefinitionLoaderError
            If a document is malformed or no state machine is declared
        """
        try:
            documents = list(yaml.safe_load_all(content))
        except yaml.YAMLError as exc:
            raise DefinitionLoaderError(f"Invalid YAML in {source}: {exc}") from exc

        options = [
            self._parse_document(doc, source)
            for doc in documents
            if doc is not None and not self._is_skipped(doc)
        ]
        if not options:
            raise DefinitionLoaderError(f"No 'kind: {_KIND}' document found in {source}")

        names = [option.name for option in options]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise DefinitionLoaderError(
                f"State machine(s) {', '.join(duplicates)} declared twice in {source}"
            )

        logger.info(
            "Loaded {count} state machine(s) from {source}: {names}",
            count=len(options),
            source=source,
            names=names,
        )
        return options

    @staticmethod
    def _is_skipped(doc: Any) -> bool:
        return isinstance(doc, dict) and doc.get("kind") in _SKIPPED_KINDS

    @staticmethod
    def _parse_document(doc: Any, source: str) -> AttributeOptions:
        if not isinstance(doc, dict):
            raise DefinitionLoaderError(
                f"Manifest documents in {source} must be mappings, got {type(doc).__name__}"
            )

        kind = doc.get("kind")
        if kind != _KIND:
            raise DefinitionLoaderError(
                f"Unsupported manifest kind {kind!r} in {source}; expected 'kind: {_KIND}'"
            )

        metadata = doc.get("metadata") or {}
        spec = doc.get("spec")
        if not isinstance(metadata, dict) or not metadata.get("name"):
            raise DefinitionLoaderError(f"StateMachine manifest in {source} needs metadata.name")
        if not isinstance(spec, dict):
            raise DefinitionLoaderError(
                f"StateMachine {metadata['name']!r} in {source} needs a 'spec' mapping"
            )
        if "name" in spec and spec["name"] != metadata["name"]:
            raise DefinitionLoaderError(
                f"StateMachine {metadata['name']!r} in {source} renames itself in spec.name"
            )

        return AttributeOptions.parse({**spec, "name": metadata["name"]})


@lru_cache(maxsize=32)
def _load_file_cached(path_str: str) -> tuple[AttributeOptions, ...]:
    return tuple(StateMachineLoader().load_file(path_str))


def load_state_machines(path: str | Path) -> list[AttributeOptions]:
    """Options of every state machine declared in a manifest file (cached)."""
    return list(_load_file_cached(str(Path(path).absolute())))


def load_state_attributes(path: str | Path) -> dict[str, StateAttribute]:
    """Fresh :class:`StateAttribute` declarations for every manifest document.

    Declarations are not shareable between classes, so a new set is
    built on every call even though parsing is cached.
    """
    return {options.name: StateAttribute(options=options) for options in load_state_machines(path)}


def state_attribute_from_yaml(content: str) -> StateAttribute:
    """Single :class:`StateAttribute` from a one-document manifest string."""
    options = StateMachineLoader().load_string(content)
    if len(options) != 1:
        raise DefinitionLoaderError(f"Expected one state machine, found {len(options)}")
    return StateAttribute(options=options[0])


def clear_definition_cache() -> None:
    _load_file_cached.cache_clear()
