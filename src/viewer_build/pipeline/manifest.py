"""Declarative tables describing what the viewer build produces."""

from __future__ import annotations

from dataclasses import dataclass, field

from viewer_build.watch import WatchRule


@dataclass(frozen=True, slots=True)
class WorkerBundle:
    """Worker script assembled from fragments concatenated in declared order."""

    name: str
    sources: tuple[str, ...]

    @property
    def output_name(self) -> str:
        return f"{self.name}.js"


@dataclass(frozen=True, slots=True)
class LazyLibrary:
    """Third-party directory copied verbatim for on-demand loading."""

    name: str
    directory: str

    @property
    def pattern(self) -> str:
        return f"{self.directory}/**/*"


@dataclass(frozen=True, slots=True)
class BuildManifest:
    """All inputs of the viewer build, relative to the project root."""

    workers: tuple[WorkerBundle, ...] = ()
    worker_binaries: tuple[str, ...] = ()
    lazy_libraries: tuple[LazyLibrary, ...] = ()
    shaders: tuple[str, ...] = ()
    html: tuple[str, ...] = ()
    resources: tuple[str, ...] = ()
    license_files: tuple[str, ...] = ()
    watch_rule: WatchRule = field(
        default_factory=lambda: WatchRule(patterns=(), tasks=("build", "pack")),
    )


DEFAULT_WORKERS = (
    WorkerBundle(
        "LASLAZWorker",
        (
            "libs/plasio/workers/laz-perf.js",
            "libs/plasio/workers/laz-loader-worker.js",
        ),
    ),
    WorkerBundle("LASDecoderWorker", ("src/workers/LASDecoderWorker.js",)),
    WorkerBundle(
        "EptLaszipDecoderWorker",
        (
            "libs/copc/index.js",
            "src/workers/EptLaszipDecoderWorker.js",
        ),
    ),
    WorkerBundle(
        "EptBinaryDecoderWorker",
        (
            "libs/ept/ParseBuffer.js",
            "src/workers/EptBinaryDecoderWorker.js",
        ),
    ),
    WorkerBundle(
        "EptZstandardDecoderWorker",
        (
            "src/workers/EptZstandardDecoder_preamble.js",
            "libs/zstd-codec/bundle.js",
            "libs/ept/ParseBuffer.js",
            "src/workers/EptZstandardDecoderWorker.js",
        ),
    ),
)

# Packaged with the build so the lazy loader finds them regardless of where
# the hosting HTML page lives.
DEFAULT_LAZY_LIBRARIES = (
    LazyLibrary("geopackage", "libs/geopackage"),
    LazyLibrary("sql.js", "libs/sql.js"),
)

DEFAULT_SHADERS = (
    "src/materials/shaders/pointcloud.vs",
    "src/materials/shaders/pointcloud.fs",
    "src/materials/shaders/pointcloud_sm.vs",
    "src/materials/shaders/pointcloud_sm.fs",
    "src/materials/shaders/normalize.vs",
    "src/materials/shaders/normalize.fs",
    "src/materials/shaders/normalize_and_edl.fs",
    "src/materials/shaders/edl.vs",
    "src/materials/shaders/edl.fs",
    "src/materials/shaders/blur.vs",
    "src/materials/shaders/blur.fs",
)

DEFAULT_WATCH_PATTERNS = (
    "src/**/*.js",
    "src/**/*.css",
    "src/**/*.html",
    "src/**/*.vs",
    "src/**/*.fs",
    "resources/**/*",
    "examples/**/*.json",
    # Written by the icons page generator during the build itself.
    "!resources/icons/index.html",
)

DEFAULT_MANIFEST = BuildManifest(
    workers=DEFAULT_WORKERS,
    worker_binaries=("libs/copc/laz-perf.wasm",),
    lazy_libraries=DEFAULT_LAZY_LIBRARIES,
    shaders=DEFAULT_SHADERS,
    html=(
        "src/viewer/potree.css",
        "src/viewer/sidebar.html",
        "src/viewer/profile.html",
    ),
    resources=("resources/**/*",),
    license_files=("LICENSE",),
    watch_rule=WatchRule(patterns=DEFAULT_WATCH_PATTERNS, tasks=("build", "pack")),
)
