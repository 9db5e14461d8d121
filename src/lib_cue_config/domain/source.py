"""Configuration sources and their cross-phase serialized form.

Purpose
-------
Model one loaded configuration document (:class:`JsonSource`) together with
the identity used for deduplication, and the flat, text-only projection
(:class:`SerializedSource`) that carries build-phase sources into the run
phase inside a :class:`Snapshot`.

Contents
--------
* :func:`kind_for_path` – file-extension contract for file-backed sources.
* :class:`JsonSource` – immutable source with raw text and parsed document.
* :class:`SerializedSource` – text-only record, never of secret kind.
* :class:`Snapshot` – the committed set of serialized sources.
* :func:`serialize` / :func:`deserialize` – conversions between the two.
"""

from __future__ import annotations

import hashlib
import json
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Sequence

from .errors import LoadError, SerializationError
from .phase import SourceKind

SECRET_MARKER = "sops"
STRUCTURED_EXTENSION = "cue"
JSON_EXTENSION = "json"

MISSING = object()


def kind_for_path(path: str | Path) -> SourceKind:
    """Classify a file by extension.

    ``*.sops.<ext>`` is a secret whatever ``<ext>`` is; otherwise ``.cue`` is
    structured and ``.json`` is plain JSON.

    Examples
    --------
    >>> kind_for_path("a/b.SOPS.yaml").value, kind_for_path("x.cue").value, kind_for_path("x.json").value
    ('sops', 'cue', 'json')
    """

    parts = Path(path).name.split(".")
    if len(parts) >= 3 and parts[-2].lower() == SECRET_MARKER:
        return SourceKind.SECRET
    extension = parts[-1].lower() if len(parts) >= 2 else ""
    if extension == STRUCTURED_EXTENSION:
        return SourceKind.STRUCTURED
    if extension == JSON_EXTENSION:
        return SourceKind.JSON
    raise LoadError(f"Unsupported file extension: {path}")


def split_key(key: str | Sequence[str]) -> tuple[str, ...]:
    """Normalise a dotted key or a sequence of segments into a tuple.

    >>> split_key("server.port"), split_key(["server", "port"])
    (('server', 'port'), ('server', 'port'))
    """

    if isinstance(key, str):
        return tuple(key.split(".")) if key else ()
    return tuple(key)


def lookup(document: Any, segments: Sequence[str]) -> Any:
    """Return the value at *segments* or a private sentinel when absent."""

    current = document
    for segment in segments:
        if not isinstance(current, Mapping) or segment not in current:
            return MISSING
        current = current[segment]
    return current


@dataclass(frozen=True)
class JsonSource:
    """A loaded configuration document.

    File-backed sources are identified by ``(kind, path)``; environment sources
    by ``(kind, prefix, case_sensitive)``. Two sources with the same identity
    and the same raw text are the same source.
    """

    kind: SourceKind
    raw_text: str
    document: Mapping[str, Any] = field(compare=False, repr=False)
    path: str | None = None
    prefix: str | None = None
    case_sensitive: bool = False

    @classmethod
    def from_text(
        cls,
        kind: SourceKind,
        raw_text: str,
        *,
        path: str | None = None,
        prefix: str | None = None,
        case_sensitive: bool = False,
    ) -> JsonSource:
        """Parse *raw_text* and build a source, raising :class:`LoadError` on bad JSON."""

        origin = path if path is not None else prefix
        try:
            document = json.loads(raw_text)
        except json.JSONDecodeError as exc:
            raise LoadError(f"JSON parsing error for {kind.value} source {origin}: {exc}") from exc
        if not isinstance(document, dict):
            raise LoadError(f"{kind.value} source {origin} did not produce a JSON object")
        return cls(kind, raw_text, document, path=path, prefix=prefix, case_sensitive=case_sensitive)

    @property
    def identity(self) -> tuple[object, ...]:
        if self.kind.is_file:
            return (self.kind.value, self.path)
        return (self.kind.value, self.prefix, self.case_sensitive)

    @property
    def fingerprint(self) -> str:
        """Stable digest of identity and raw text, used as bucket key."""

        digest = hashlib.sha256()
        digest.update(json.dumps(self.identity).encode("utf-8"))
        digest.update(b"\0")
        digest.update(self.raw_text.encode("utf-8"))
        return digest.hexdigest()[:16]

    @property
    def label(self) -> str:
        if self.kind is SourceKind.ENVIRONMENT:
            return f"env(prefix={self.prefix}, case_sensitive={self.case_sensitive})"
        return f"{self.kind.value}({self.path})"

    def contains(self, key: str | Sequence[str]) -> bool:
        """Return ``True`` when the key path exists, even with a ``null`` value."""

        return lookup(self.document, split_key(key)) is not MISSING

    def get(self, key: str | Sequence[str], default: Any = None) -> Any:
        """Return a deep copy of the value at *key*, or *default* when absent."""

        value = lookup(self.document, split_key(key))
        if value is MISSING:
            return default
        return deepcopy(value)

    def pretty(self, indent: int = 2) -> str:
        return json.dumps(self.document, indent=indent, ensure_ascii=False)

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True, slots=True)
class SerializedSource:
    """Flat text record of a non-secret source.

    Exactly one of ``path`` / ``prefix`` is populated depending on ``kind``.
    """

    kind: str
    raw_text: str
    path: str | None = None
    prefix: str | None = None
    case_sensitive: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "path": self.path,
            "prefix": self.prefix,
            "rawText": self.raw_text,
            "caseSensitivity": self.case_sensitive,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SerializedSource:
        try:
            return cls(
                kind=str(data["kind"]),
                raw_text=str(data["rawText"]),
                path=data.get("path"),
                prefix=data.get("prefix"),
                case_sensitive=bool(data.get("caseSensitivity", False)),
            )
        except KeyError as exc:
            raise SerializationError(f"Serialized source is missing field {exc}") from exc

    @property
    def checksum(self) -> str:
        payload = json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")
        return hashlib.sha256(payload).hexdigest()

    def __str__(self) -> str:
        origin = f"path={self.path}" if self.path is not None else f"prefix={self.prefix}"
        return f"SerializedSource(kind={self.kind}, {origin}, case_sensitive={self.case_sensitive})"


def serialize(source: JsonSource) -> SerializedSource:
    """Project *source* to a :class:`SerializedSource`.

    Raises
    ------
    SerializationError
        For secret-kind sources, which must never be committed.
    """

    if source.kind is SourceKind.SECRET:
        raise SerializationError(
            f"Decrypted secret files may not be committed to build-phase configuration: {source.path}"
        )
    if source.kind is SourceKind.ENVIRONMENT:
        return SerializedSource(
            kind=source.kind.value,
            raw_text=source.raw_text,
            prefix=source.prefix,
            case_sensitive=source.case_sensitive,
        )
    return SerializedSource(kind=source.kind.value, raw_text=source.raw_text, path=source.path)


def deserialize(record: SerializedSource) -> JsonSource:
    """Rebuild a :class:`JsonSource` from *record*."""

    try:
        kind = SourceKind(record.kind)
    except ValueError as exc:
        raise SerializationError(f"Unknown serialized source kind: {record.kind}") from exc
    if kind is SourceKind.SECRET:
        raise SerializationError(f"Secret sources cannot be restored from a snapshot: {record}")
    if kind is SourceKind.ENVIRONMENT:
        if record.path is not None or not record.prefix:
            raise SerializationError(f"Environment record must carry a prefix only: {record}")
        return _from_record(kind, record, prefix=record.prefix, case_sensitive=record.case_sensitive)
    if record.prefix is not None or not record.path:
        raise SerializationError(f"File record must carry a path only: {record}")
    return _from_record(kind, record, path=record.path)


def _from_record(kind: SourceKind, record: SerializedSource, **identity: Any) -> JsonSource:
    try:
        return JsonSource.from_text(kind, record.raw_text, **identity)
    except LoadError as exc:
        raise SerializationError(f"Corrupt snapshot record {record}: {exc}") from exc


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Committed build-phase sources: environment blocks then files.

    Examples
    --------
    >>> empty = Snapshot()
    >>> Snapshot.from_json(empty.to_json()) == empty
    True
    """

    env: tuple[SerializedSource, ...] = ()
    files: tuple[SerializedSource, ...] = ()

    @classmethod
    def from_sources(cls, sources: Iterable[JsonSource]) -> Snapshot:
        env: list[SerializedSource] = []
        files: list[SerializedSource] = []
        for source in sources:
            record = serialize(source)
            (env if source.kind is SourceKind.ENVIRONMENT else files).append(record)
        return cls(tuple(env), tuple(files))

    def __iter__(self) -> Iterator[SerializedSource]:
        yield from self.env
        yield from self.files

    def __len__(self) -> int:
        return len(self.env) + len(self.files)

    @property
    def checksum(self) -> str:
        """Order-independent digest of every record."""

        digest = hashlib.sha256()
        for item in sorted(record.checksum for record in self):
            digest.update(item.encode("ascii"))
        return digest.hexdigest()

    def sources(self) -> list[JsonSource]:
        return [deserialize(record) for record in self]

    def to_json(self, *, indent: int | None = 2) -> str:
        payload = {
            "env": [record.to_dict() for record in self.env],
            "files": [record.to_dict() for record in self.files],
        }
        return json.dumps(payload, indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> Snapshot:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SerializationError(f"Snapshot is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise SerializationError("Snapshot must be a JSON object with 'env' and 'files' lists")
        env = tuple(SerializedSource.from_dict(item) for item in payload.get("env", []))
        files = tuple(SerializedSource.from_dict(item) for item in payload.get("files", []))
        return cls(env, files)

    def dump(self, path: str | Path) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.to_json(), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: str | Path) -> Snapshot:
        return cls.from_json(Path(path).read_text(encoding="utf-8"))

    def describe(self) -> str:
        lines = ["Committed build-phase sources;"]
        lines.extend(f"\t{record}" for record in self)
        return "\n".join(lines)
