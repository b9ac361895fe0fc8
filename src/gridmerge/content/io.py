from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from gridmerge.content.rules import GameRules
from gridmerge.content.schema import validate_session_payload
from gridmerge.sim.hash import session_hash
from gridmerge.sim.movement import MOVEMENT_MODE_MANUAL
from gridmerge.sim.session import GameSession, SessionState
from gridmerge.sim.viewport import RenderSink

DEFAULT_STORAGE_KEY = "gridmerge_session"
CANONICAL_JSON_INDENT = 2
CANONICAL_JSON_SEPARATORS = (",", ": ")


class BlobStore:
    """Keyed storage for opaque session text; contents must round-trip byte for byte."""

    def read(self, key: str) -> str | None:
        raise NotImplementedError

    def write(self, key: str, text: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryBlobStore(BlobStore):
    def __init__(self) -> None:
        self.blobs: dict[str, str] = {}

    def read(self, key: str) -> str | None:
        return self.blobs.get(key)

    def write(self, key: str, text: str) -> None:
        self.blobs[key] = text

    def delete(self, key: str) -> None:
        self.blobs.pop(key, None)


class JsonFileBlobStore(BlobStore):
    """One ``<key>.json`` file per key under ``root``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"invalid storage key: {key!r}")
        return self.root / f"{key}.json"

    def read(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, text: str) -> None:
        _write_atomic_text(self.path_for(key), text)

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


@dataclass(frozen=True)
class LoadResult:
    state: SessionState
    restored: bool
    reason: str | None = None


def _canonical_json(payload: dict[str, Any]) -> str:
    return json.dumps(
        payload,
        indent=CANONICAL_JSON_INDENT,
        separators=CANONICAL_JSON_SEPARATORS,
        sort_keys=True,
    )


def _write_atomic_text(path: str | Path, serialized: str) -> None:
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)

    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=destination.parent,
            delete=False,
            suffix=".tmp",
        ) as temp_file:
            temp_file.write(serialized)
            temp_file.flush()
            os.fsync(temp_file.fileno())
            temp_path = Path(temp_file.name)
        os.replace(temp_path, destination)
    except Exception:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise


def serialize(state: SessionState) -> dict[str, Any]:
    payload = state.to_payload()
    payload["sessionHash"] = session_hash(payload)
    return payload


def dumps_session(state: SessionState) -> str:
    payload = serialize(state)
    validate_session_payload(payload)
    return _canonical_json(payload)


def _decode_payload(payload: str | bytes | dict[str, Any]) -> dict[str, Any]:
    if isinstance(payload, (str, bytes)):
        payload = json.loads(payload)
    validate_session_payload(payload)
    expected_hash = payload.get("sessionHash")
    if expected_hash is not None:
        actual_hash = session_hash(payload)
        if expected_hash != actual_hash:
            raise ValueError(
                f"sessionHash mismatch while loading session (stored={expected_hash}, recomputed={actual_hash})"
            )
    return payload


def deserialize_with_reason(payload: str | bytes | dict[str, Any] | None, rules: GameRules) -> LoadResult:
    generator = rules.generator()
    if payload is None:
        return LoadResult(state=SessionState(generator), restored=False, reason="no saved session")
    try:
        decoded = _decode_payload(payload)
        state = SessionState.from_payload(decoded, generator)
    except (KeyError, TypeError, ValueError, RecursionError) as exc:
        return LoadResult(state=SessionState(generator), restored=False, reason=str(exc))
    return LoadResult(state=state, restored=True)


def deserialize(payload: str | bytes | dict[str, Any] | None, rules: GameRules) -> SessionState:
    return deserialize_with_reason(payload, rules).state


def save_session(store: BlobStore, key: str, state: SessionState) -> bool:
    try:
        store.write(key, dumps_session(state))
    except OSError:
        return False
    return True


def load_session(store: BlobStore, key: str, rules: GameRules) -> LoadResult:
    try:
        text = store.read(key)
    except (OSError, UnicodeDecodeError) as exc:
        return LoadResult(state=SessionState(rules.generator()), restored=False, reason=f"read failed: {exc}")
    return deserialize_with_reason(text, rules)


def open_session(
    store: BlobStore,
    key: str,
    rules: GameRules,
    *,
    sink: RenderSink | None = None,
    movement_mode: str = MOVEMENT_MODE_MANUAL,
) -> tuple[GameSession, LoadResult]:
    """Restore (or start) a session whose every state change is written back to ``store``."""
    loaded = load_session(store, key, rules)
    session = GameSession(
        rules,
        state=loaded.state,
        sink=sink,
        autosave=lambda state: save_session(store, key, state),
        movement_mode=movement_mode,
    )
    return session, loaded
