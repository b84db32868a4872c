"""Glob expansion into ordered file sets."""

from __future__ import annotations

import glob
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

_MAGIC_CHARS = frozenset("*?[")
_REPEATED_SLASHES = re.compile(r"/{2,}")


class PatternResolutionError(ValueError):
    """Glob pattern is syntactically invalid."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"Invalid glob pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


@dataclass(frozen=True, slots=True)
class ResolvedFile:
    """One matched file and the glob parent it was matched under."""

    path: Path
    base: Path

    @property
    def relative(self) -> Path:
        return self.path.relative_to(self.base)


@dataclass(frozen=True, slots=True)
class FileSet:
    """Ordered, de-duplicated sequence of resolved files."""

    files: tuple[ResolvedFile, ...] = ()

    @classmethod
    def from_paths(cls, paths: Iterable[str | Path], *, root: Path) -> FileSet:
        """Build a file set from explicit paths, keeping declared order.

        Paths are not checked for existence here; transforms report missing
        inputs with ``ReadError``.
        """

        files: list[ResolvedFile] = []
        for raw in paths:
            path = root / _normalize(str(raw))
            files.append(ResolvedFile(path=path, base=path.parent))
        return cls(files=tuple(files))

    @property
    def paths(self) -> list[Path]:
        return [item.path for item in self.files]

    def __iter__(self) -> Iterator[ResolvedFile]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)

    def __bool__(self) -> bool:
        return bool(self.files)


def resolve(patterns: str | Iterable[str], *, root: Path) -> FileSet:
    """Expand glob patterns under ``root`` into an ordered file set.

    Positive patterns are expanded in declared order, matches of a single
    pattern are sorted by path. Patterns prefixed with ``!`` exclude matches
    of every positive pattern. A pattern that matches nothing contributes
    nothing.
    """

    if isinstance(patterns, str):
        patterns = (patterns,)

    includes: list[str] = []
    excludes: list[re.Pattern[str]] = []
    for raw in patterns:
        if raw.startswith("!"):
            if not raw[1:].strip():
                raise PatternResolutionError(raw, "negation without a pattern")
            excludes.append(compile_pattern(raw[1:]))
            continue
        normalized = _normalize(raw)
        _validate(normalized, raw)
        includes.append(normalized)

    seen: set[str] = set()
    files: list[ResolvedFile] = []
    for pattern in includes:
        base = root / glob_parent(pattern)
        for relative in _expand(pattern, root):
            if relative in seen:
                continue
            if any(exclude.fullmatch(relative) for exclude in excludes):
                continue
            seen.add(relative)
            files.append(ResolvedFile(path=root / relative, base=base))
    return FileSet(files=tuple(files))


def has_magic(pattern: str) -> bool:
    return any(char in _MAGIC_CHARS for char in pattern)


def glob_parent(pattern: str) -> str:
    """Return the literal directory prefix of a pattern.

    For a pattern without wildcards this is the parent directory of the file.
    """

    segments = _normalize(pattern).split("/")
    literal: list[str] = []
    for segment in segments[:-1]:
        if has_magic(segment):
            break
        literal.append(segment)
    if not literal:
        return "."
    return str(PurePosixPath(*literal))


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into a regex over POSIX relative paths."""

    normalized = _normalize(pattern)
    _validate(normalized, pattern)

    segments = normalized.split("/")
    parts: list[str] = []
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == "**":
            parts.append(".*" if last else r"(?:[^/.][^/]*/)*")
            continue
        parts.append(_translate_segment(segment))
        if not last:
            parts.append("/")
    return re.compile("".join(parts))


def _expand(pattern: str, root: Path) -> list[str]:
    if not has_magic(pattern):
        return [pattern] if (root / pattern).is_file() else []
    matches = glob.glob(pattern, root_dir=root, recursive=True)
    return sorted(
        Path(match).as_posix() for match in matches if (root / match).is_file()
    )


def _normalize(pattern: str) -> str:
    normalized = _REPEATED_SLASHES.sub("/", pattern.strip().replace("\\", "/"))
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def _validate(normalized: str, original: str) -> None:
    if not normalized:
        raise PatternResolutionError(original, "empty pattern")
    for segment in normalized.split("/"):
        if "**" in segment and segment != "**":
            raise PatternResolutionError(
                original,
                "'**' must be a whole path segment",
            )
        if _unterminated_class(segment):
            raise PatternResolutionError(original, "unterminated character class")


def _unterminated_class(segment: str) -> bool:
    index = segment.find("[")
    while index != -1:
        close = segment.find("]", index + 2)
        if close == -1:
            return True
        index = segment.find("[", close + 1)
    return False


def _translate_segment(segment: str) -> str:
    out: list[str] = []
    if segment[:1] in _MAGIC_CHARS:
        out.append(r"(?!\.)")
    index = 0
    while index < len(segment):
        char = segment[index]
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            close = segment.find("]", index + 2)
            body = segment[index + 1 : close]
            negate = body[:1] == "!"
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\").replace("[", "\\[")
            if body.startswith("^"):
                body = "\\" + body
            out.append(f"[{'^' if negate else ''}{body}]")
            index = close
        else:
            out.append(re.escape(char))
        index += 1
    return "".join(out)
