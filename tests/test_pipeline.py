from __future__ import annotations

import asyncio
import shlex
import sys
from dataclasses import replace
from pathlib import Path

import allure
import pytest

from viewer_build.config import Settings
from viewer_build.pipeline.manifest import (
    DEFAULT_MANIFEST,
    BuildManifest,
    LazyLibrary,
    WorkerBundle,
)
from viewer_build.pipeline.pages import PageGenerators, command_generator
from viewer_build.pipeline import tasks as pipeline_tasks
from viewer_build.pipeline.tasks import BUILD_SOURCE_TASKS, ViewerBuild
from viewer_build.process import SubprocessError

from .fakes import FakeObserver, noop_pages

pytestmark = [
    allure.epic("Build Pipeline"),
    allure.feature("Viewer Build Tasks"),
]


def _run(build: ViewerBuild, *names: str):
    results = asyncio.run(build.run(names))
    return results[-1]


def test_registered_task_names(viewer_build: ViewerBuild) -> None:
    assert viewer_build.graph.names() == [
        "webserver",
        "examples_page",
        "icons_viewer",
        "workers",
        "lazylibs",
        "shaders",
        "build",
        "pack",
        "watch",
    ]


def test_workers_concatenates_bundle_without_separator(
    viewer_build: ViewerBuild,
    settings: Settings,
) -> None:
    result = _run(viewer_build, "workers")

    assert result.succeeded, result.error
    workers_dir = settings.output_root / "workers"
    assert (workers_dir / "TestWorker.js").read_bytes() == b"XY"
    assert (workers_dir / "worker.wasm").read_bytes() == b"\x00asm\x01"


def test_workers_fails_when_a_fragment_is_missing(
    settings: Settings,
    manifest: BuildManifest,
) -> None:
    broken = replace(
        manifest,
        workers=(WorkerBundle("Broken", ("src/workers/a.js", "src/workers/gone.js")),),
    )
    build = ViewerBuild(settings, manifest=broken, pages=noop_pages())

    result = _run(build, "workers")

    assert not result.succeeded
    assert "gone.js" in str(result.error)
    assert not (settings.output_root / "workers" / "Broken.js").exists()


def test_lazylibs_copies_library_trees(viewer_build: ViewerBuild, settings: Settings) -> None:
    result = _run(viewer_build, "lazylibs")

    assert result.succeeded, result.error
    geo = settings.output_root / "lazylibs" / "geo"
    assert (geo / "geo.js").read_text("utf-8") == "geo();"
    assert (geo / "sub" / "geo.wasm").read_bytes() == b"\x01\x02"


def test_lazylibs_with_empty_library_directory_succeeds(
    settings: Settings,
    manifest: BuildManifest,
) -> None:
    (settings.root / "libs" / "empty").mkdir(parents=True)
    build = ViewerBuild(
        settings,
        manifest=replace(manifest, lazy_libraries=(LazyLibrary("empty", "libs/empty"),)),
        pages=noop_pages(),
    )

    result = _run(build, "lazylibs")

    assert result.succeeded, result.error
    assert not (settings.output_root / "lazylibs" / "empty").exists()


def test_shaders_writes_generated_module(viewer_build: ViewerBuild, settings: Settings) -> None:
    result = _run(viewer_build, "shaders")

    assert result.succeeded, result.error
    module = (settings.build_root / "shaders" / "shaders.js").read_text("utf-8")
    assert 'Shaders["a.vs"] = `void main() { gl_Position = vec4(0.0); }\n`' in module
    assert 'Shaders["b.fs"] = `// \\`tick\\` \\${notAVar} \\\\n\nvoid main() {}\n`' in module


def test_shaders_fails_when_a_shader_is_missing(
    settings: Settings,
    manifest: BuildManifest,
) -> None:
    build = ViewerBuild(
        settings,
        manifest=replace(manifest, shaders=("shaders/a.vs", "shaders/missing.fs")),
        pages=noop_pages(),
    )

    result = _run(build, "shaders")

    assert not result.succeeded
    assert "missing.fs" in str(result.error)


def test_build_copies_static_assets_after_all_sources(
    viewer_build: ViewerBuild,
    settings: Settings,
) -> None:
    result = _run(viewer_build, "build")

    assert result.succeeded, result.error
    kinds = [(event.task_name, event.kind) for event in result.events]
    assets_start = kinds.index(("build:assets", "started"))
    for name in BUILD_SOURCE_TASKS:
        assert kinds.index((name, "finished")) < assets_start

    output = settings.output_root
    assert (output / "viewer.css").read_text("utf-8") == "body {}"
    assert (output / "sidebar.html").exists()
    assert (output / "resources" / "icons" / "a.svg").exists()
    assert (output / "resources" / "lang" / "en.json").exists()
    assert (output / "LICENSE").read_text("utf-8") == "BSD"
    assert (settings.build_root / "shaders" / "shaders.js").exists()


def _raise() -> None:
    raise RuntimeError("generator crashed")


@pytest.mark.parametrize("failing", BUILD_SOURCE_TASKS)
def test_failure_in_any_source_task_prevents_asset_copy(
    settings: Settings,
    manifest: BuildManifest,
    failing: str,
) -> None:
    pages = noop_pages()
    if failing == "workers":
        manifest = replace(manifest, worker_binaries=("libs/missing.wasm",))
    elif failing == "lazylibs":
        manifest = replace(manifest, lazy_libraries=(LazyLibrary("bad", "libs/[bad"),))
    elif failing == "shaders":
        manifest = replace(manifest, shaders=("shaders/missing.vs",))
    elif failing == "icons_viewer":
        pages = replace(pages, icons_page=_raise)
    elif failing == "examples_page":
        pages = replace(pages, github_page=_raise)
    build = ViewerBuild(settings, manifest=manifest, pages=pages)

    result = _run(build, "build")

    assert not result.succeeded
    assert [error.task_name for error in result.error.errors] == [failing]
    assert "build:assets" not in result.started()
    assert not (settings.output_root / "LICENSE").exists()


def test_examples_page_runs_both_generators_concurrently(
    settings: Settings,
    manifest: BuildManifest,
) -> None:
    async def scenario() -> None:
        examples_ready = asyncio.Event()
        github_ready = asyncio.Event()

        async def examples() -> None:
            examples_ready.set()
            await asyncio.wait_for(github_ready.wait(), timeout=2)

        async def github() -> None:
            github_ready.set()
            await asyncio.wait_for(examples_ready.wait(), timeout=2)

        pages = replace(noop_pages(), examples_page=examples, github_page=github)
        build = ViewerBuild(settings, manifest=manifest, pages=pages)
        results = await build.run(["examples_page"])
        assert results[0].succeeded, results[0].error

    asyncio.run(scenario())


def test_command_page_generator_propagates_failure(settings: Settings, manifest) -> None:
    failing = command_generator(
        "icons page",
        shlex.join([sys.executable, "-c", "raise SystemExit(4)"]),
        settings.root,
    )
    pages = replace(noop_pages(), icons_page=failing)
    build = ViewerBuild(settings, manifest=manifest, pages=pages)

    result = _run(build, "icons_viewer")

    assert not result.succeeded
    assert "exited with code 4" in str(result.error)


def test_empty_page_commands_are_skipped(settings: Settings) -> None:
    pages = PageGenerators.from_settings(settings)
    build = ViewerBuild(settings, manifest=DEFAULT_MANIFEST, pages=pages)

    assert asyncio.run(build.run(["examples_page", "icons_viewer"]))[-1].succeeded


def test_pack_reports_bundler_failure_without_failing(
    viewer_build: ViewerBuild,
    caplog,
) -> None:
    result = _run(viewer_build, "pack")

    assert result.succeeded
    assert "Command not found: definitely-not-a-real-bundler-cmd" in caplog.text


def test_pack_tolerates_non_zero_bundler_exit(settings: Settings, manifest) -> None:
    settings.commands.bundler = shlex.join([sys.executable, "-c", "raise SystemExit(2)"])
    build = ViewerBuild(settings, manifest=manifest, pages=noop_pages())

    assert _run(build, "pack").succeeded


def test_watch_builds_packs_then_rebuilds_on_change(
    settings: Settings,
    manifest: BuildManifest,
    monkeypatch,
) -> None:
    observers: list[FakeObserver] = []
    started_servers: list[str] = []

    def _observer() -> FakeObserver:
        observers.append(FakeObserver())
        return observers[-1]

    async def _fake_webserver(self: ViewerBuild) -> None:
        started_servers.append("started")

    monkeypatch.setattr(ViewerBuild, "start_webserver", _fake_webserver)
    settings.watch.debounce_seconds = 0
    build = ViewerBuild(settings, manifest=manifest, pages=noop_pages(), observer_factory=_observer)
    bundle = settings.output_root / "workers" / "TestWorker.js"

    async def scenario() -> None:
        watching = asyncio.create_task(build.run(["watch"]))
        while build.watch_loop is None or not observers:
            await asyncio.sleep(0.01)
        assert bundle.read_bytes() == b"XY"

        (settings.root / "src" / "workers" / "b.js").write_text("Z", "utf-8")
        build.watch_loop.notify("src/workers/b.js")
        for _ in range(200):
            if bundle.read_bytes() == b"XZ":
                break
            await asyncio.sleep(0.01)

        await build.shutdown()
        results = await asyncio.wait_for(watching, timeout=2)
        assert results[0].succeeded, results[0].error

    asyncio.run(scenario())

    assert bundle.read_bytes() == b"XZ"
    assert started_servers == ["started"]
    assert observers[0].stopped


@pytest.mark.parametrize("missing", ["LICENSE", "src/viewer/sidebar.html"])
def test_build_fails_when_a_listed_asset_is_missing(
    viewer_build: ViewerBuild,
    settings: Settings,
    missing: str,
) -> None:
    (settings.root / missing).unlink()

    result = _run(viewer_build, "build")

    assert not result.succeeded
    assert Path(missing).name in str(result.error)
    assert "build:assets" in result.started()
    assert "build:assets" not in result.finished()


async def _failing_dev_server(**kwargs) -> None:
    raise SubprocessError(
        "Dev server failed to start: port busy",
        exit_code=None,
        spawn_failed=True,
    )


def test_webserver_task_fails_when_server_cannot_start(
    viewer_build: ViewerBuild,
    monkeypatch,
) -> None:
    monkeypatch.setattr(pipeline_tasks, "start_dev_server", _failing_dev_server)

    result = _run(viewer_build, "webserver")

    assert not result.succeeded
    assert "port busy" in str(result.error)
    assert viewer_build.dev_server is None


def test_watch_logs_server_start_failure_and_continues(
    viewer_build: ViewerBuild,
    monkeypatch,
    caplog,
) -> None:
    monkeypatch.setattr(pipeline_tasks, "start_dev_server", _failing_dev_server)

    asyncio.run(viewer_build.serve_while_watching())

    assert "port busy" in caplog.text
    assert viewer_build.dev_server is None
