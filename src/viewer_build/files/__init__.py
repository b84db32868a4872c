"""File-set resolution and transform primitives."""

from viewer_build.files.resolver import (
    FileSet,
    PatternResolutionError,
    ResolvedFile,
    compile_pattern,
    glob_parent,
    resolve,
)
from viewer_build.files.transforms import (
    ReadError,
    ShaderTable,
    concat_files,
    copy_files,
    template_shader_table,
)

__all__ = [
    "FileSet",
    "PatternResolutionError",
    "ReadError",
    "ResolvedFile",
    "ShaderTable",
    "compile_pattern",
    "concat_files",
    "copy_files",
    "glob_parent",
    "resolve",
    "template_shader_table",
]
