"""Copy, concatenate and shader-table transforms over file sets."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from viewer_build.files.resolver import FileSet

logger = logging.getLogger(__name__)

SHADER_TABLE_NAME = "Shaders"


class ReadError(OSError):
    """Source file is missing or unreadable."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"Cannot read {path}: {message}")
        self.path = path


def copy_files(file_set: FileSet, destination: Path) -> list[Path]:
    """Copy files under ``destination`` keeping their layout below the glob parent.

    Existing files are overwritten; bytes are copied unchanged.
    """

    written: list[Path] = []
    for item in file_set:
        target = destination / item.relative
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            shutil.copyfile(item.path, target)
        except FileNotFoundError as error:
            raise ReadError(item.path, "file not found") from error
        except IsADirectoryError as error:
            raise ReadError(item.path, "is a directory") from error
        written.append(target)
    logger.debug("Copied %d file(s) to %s", len(written), destination)
    return written


def concat_files(file_set: FileSet, output: Path, *, separator: bytes = b"") -> Path:
    """Join the raw contents of ``file_set`` in order and write them to ``output``.

    Nothing is written when any input cannot be read.
    """

    chunks = [_read_bytes(item.path) for item in file_set]
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(separator.join(chunks))
    logger.debug("Concatenated %d file(s) into %s", len(chunks), output)
    return output


@dataclass(slots=True)
class ShaderTable:
    """Shader base name to raw shader source.

    Sources are decoded as UTF-8; undecodable bytes become U+FFFD.
    """

    entries: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_files(cls, shader_files: FileSet) -> ShaderTable:
        table = cls()
        for item in shader_files:
            name = item.path.name
            if name in table.entries:
                raise ValueError(f"Duplicate shader name {name!r} ({item.path})")
            table.entries[name] = _read_bytes(item.path).decode("utf-8", errors="replace")
        return table

    def render(self) -> str:
        """Render the table as an assignment-then-export JavaScript module."""

        statements = [f"let {SHADER_TABLE_NAME} = {{}};"]
        for name, content in self.entries.items():
            key = _escape_key(name)
            body = escape_template_literal(content)
            statements.append(f'{SHADER_TABLE_NAME}["{key}"] = `{body}`')
        statements.append(f"export {{{SHADER_TABLE_NAME}}};")
        return "\n\n".join(statements)


def template_shader_table(shader_files: FileSet, target: Path) -> ShaderTable:
    """Read every shader and write the generated lookup module to ``target``."""

    table = ShaderTable.from_files(shader_files)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(table.render().encode("utf-8"))
    logger.debug("Wrote %d shader(s) to %s", len(table.entries), target)
    return table


def escape_template_literal(text: str) -> str:
    """Escape text for a JavaScript template literal without otherwise changing it."""

    return text.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")


def _escape_key(name: str) -> str:
    return name.replace("\\", "\\\\").replace('"', '\\"')


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError as error:
        raise ReadError(path, "file not found") from error
    except IsADirectoryError as error:
        raise ReadError(path, "is a directory") from error
    except PermissionError as error:
        raise ReadError(path, "permission denied") from error
