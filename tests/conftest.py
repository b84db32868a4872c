"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from viewer_build.config import Settings
from viewer_build.pipeline.manifest import BuildManifest, LazyLibrary, WorkerBundle
from viewer_build.pipeline.tasks import ViewerBuild
from viewer_build.watch import WatchRule

from .fakes import FakeObserver, noop_pages, write_file


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    """Minimal viewer source tree."""

    write_file(tmp_path, "src/workers/a.js", "X")
    write_file(tmp_path, "src/workers/b.js", "Y")
    write_file(tmp_path, "libs/worker.wasm", b"\x00asm\x01")
    write_file(tmp_path, "libs/geo/geo.js", "geo();")
    write_file(tmp_path, "libs/geo/sub/geo.wasm", b"\x01\x02")
    write_file(tmp_path, "shaders/a.vs", "void main() { gl_Position = vec4(0.0); }\n")
    write_file(tmp_path, "shaders/b.fs", "// `tick` ${notAVar} \\n\nvoid main() {}\n")
    write_file(tmp_path, "src/viewer/viewer.css", "body {}")
    write_file(tmp_path, "src/viewer/sidebar.html", "<div></div>")
    write_file(tmp_path, "resources/icons/a.svg", "<svg/>")
    write_file(tmp_path, "resources/lang/en.json", "{}")
    write_file(tmp_path, "LICENSE", "BSD")
    return tmp_path


@pytest.fixture()
def manifest() -> BuildManifest:
    return BuildManifest(
        workers=(WorkerBundle("TestWorker", ("src/workers/a.js", "src/workers/b.js")),),
        worker_binaries=("libs/worker.wasm",),
        lazy_libraries=(LazyLibrary("geo", "libs/geo"),),
        shaders=("shaders/a.vs", "shaders/b.fs"),
        html=("src/viewer/viewer.css", "src/viewer/sidebar.html"),
        resources=("resources/**/*",),
        license_files=("LICENSE",),
        watch_rule=WatchRule(patterns=("src/**/*.js",), tasks=("build", "pack")),
    )


@pytest.fixture()
def settings(project: Path) -> Settings:
    settings = Settings(root=project)
    settings.commands.bundler = "definitely-not-a-real-bundler-cmd -c"
    return settings


@pytest.fixture()
def viewer_build(settings: Settings, manifest: BuildManifest) -> ViewerBuild:
    return ViewerBuild(
        settings,
        manifest=manifest,
        pages=noop_pages(),
        observer_factory=FakeObserver,
    )
