"""The viewer build task set wired into an explicit task graph."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from watchdog.observers import Observer

from viewer_build.config import Settings
from viewer_build.files.resolver import FileSet, has_magic, resolve
from viewer_build.files.transforms import (
    concat_files,
    copy_files,
    template_shader_table,
)
from viewer_build.graph.executor import TaskEvent, TaskExecutor, TaskRunResult
from viewer_build.graph.tasks import TaskGraph, action, parallel
from viewer_build.pipeline.manifest import DEFAULT_MANIFEST, BuildManifest
from viewer_build.pipeline.pages import PageGenerators, call_generator
from viewer_build.process import DevServer, SubprocessError, run_subprocess, start_dev_server
from viewer_build.watch import WatchLoop, make_task_trigger

logger = logging.getLogger(__name__)

BUILD_SOURCE_TASKS = ("workers", "lazylibs", "shaders", "icons_viewer", "examples_page")
SHADER_MODULE = "shaders/shaders.js"


class ViewerBuild:
    """Owns the task graph, its executor and the long-running processes it starts."""

    def __init__(  # noqa: PLR0913
        self,
        settings: Settings,
        *,
        manifest: BuildManifest = DEFAULT_MANIFEST,
        pages: PageGenerators | None = None,
        observer_factory: Callable[[], object] = Observer,
        on_event: Callable[[TaskEvent], None] | None = None,
    ) -> None:
        self.settings = settings
        self.manifest = manifest
        self.pages = pages or PageGenerators.from_settings(settings)
        self.dev_server: DevServer | None = None
        self.watch_loop: WatchLoop | None = None
        self._observer_factory = observer_factory
        self._rebuild = make_task_trigger(self.run_tasks, manifest.watch_rule.tasks)
        self.graph = TaskGraph()
        self.executor = TaskExecutor(self.graph, on_event=on_event)
        self._register_tasks()

    @property
    def root(self) -> Path:
        return self.settings.root

    async def run(self, names: Sequence[str]) -> list[TaskRunResult]:
        return await self.executor.run_many(names)

    async def run_tasks(self, names: Sequence[str]) -> bool:
        """Run tasks in order and report success; failures are logged, not raised."""

        results = await self.run(names)
        for result in results:
            if result.error is not None:
                logger.error("%s", result.error)
        return all(result.succeeded for result in results)

    async def shutdown(self) -> None:
        if self.watch_loop is not None:
            self.watch_loop.stop()
        if self.dev_server is not None:
            await self.dev_server.stop()
            self.dev_server = None

    # -- actions ---------------------------------------------------------------

    def build_workers(self) -> None:
        workers_dir = self.settings.output_root / "workers"
        for bundle in self.manifest.workers:
            sources = FileSet.from_paths(bundle.sources, root=self.root)
            concat_files(sources, workers_dir / bundle.output_name)
        copy_files(FileSet.from_paths(self.manifest.worker_binaries, root=self.root), workers_dir)
        logger.info(
            "Built %d worker bundle(s) in %s",
            len(self.manifest.workers),
            workers_dir,
        )

    def copy_lazy_libraries(self) -> None:
        lazylibs_dir = self.settings.output_root / "lazylibs"
        for library in self.manifest.lazy_libraries:
            copied = copy_files(
                resolve(library.pattern, root=self.root),
                lazylibs_dir / library.name,
            )
            logger.info("Copied %d file(s) of lazy library %s", len(copied), library.name)

    def build_shaders(self) -> None:
        target = self.settings.build_root / SHADER_MODULE
        table = template_shader_table(
            FileSet.from_paths(self.manifest.shaders, root=self.root),
            target,
        )
        logger.info("Inlined %d shader(s) into %s", len(table.entries), target)

    def copy_static_assets(self) -> None:
        output_root = self.settings.output_root
        copy_files(self._asset_files(self.manifest.html), output_root)
        copy_files(self._asset_files(self.manifest.resources), output_root / "resources")
        copy_files(self._asset_files(self.manifest.license_files), output_root)

    async def generate_examples_page(self) -> None:
        await asyncio.gather(
            call_generator(self.pages.examples_page),
            call_generator(self.pages.github_page),
        )

    async def generate_icons_page(self) -> None:
        await call_generator(self.pages.icons_page)

    async def pack(self) -> None:
        result = await run_subprocess(self.settings.commands.bundler, cwd=self.root)
        if result.error is not None:
            logger.warning("Bundler run failed, continuing: %s", result.error)

    async def start_webserver(self) -> None:
        if self.dev_server is not None and self.dev_server.running:
            logger.info("Dev server already running at %s", self.dev_server.url)
            return
        self.dev_server = await start_dev_server(
            root=self.root,
            host=self.settings.server.host,
            port=self.settings.server.port,
        )

    async def serve_while_watching(self) -> None:
        """Start the dev server for ``watch``; a failed start is logged only."""

        try:
            await self.start_webserver()
        except SubprocessError as error:
            logger.error("%s", error)

    async def rebuild(self) -> None:
        """Re-run the watch rule tasks, logging failures instead of raising."""

        await self._rebuild()

    async def watch(self) -> None:
        self.watch_loop = WatchLoop(
            root=self.root,
            rule=self.manifest.watch_rule,
            trigger=self.rebuild,
            debounce_seconds=self.settings.watch.debounce_seconds,
            observer_factory=self._observer_factory,
        )
        try:
            await self.watch_loop.run()
        finally:
            self.watch_loop = None

    def _asset_files(self, patterns: Sequence[str]) -> FileSet:
        # Glob-free lists name required files, so a missing one fails the copy.
        if any(pattern.startswith("!") or has_magic(pattern) for pattern in patterns):
            return resolve(patterns, root=self.root)
        return FileSet.from_paths(patterns, root=self.root)

    # -- wiring ----------------------------------------------------------------

    def _register_tasks(self) -> None:
        graph = self.graph
        graph.action(
            "webserver",
            self.start_webserver,
            description="Start the development web server.",
        )
        graph.action(
            "examples_page",
            self.generate_examples_page,
            description="Generate the examples and GitHub pages.",
        )
        graph.action(
            "icons_viewer",
            self.generate_icons_page,
            description="Generate the icons overview page.",
        )
        graph.action(
            "workers",
            self.build_workers,
            description="Concatenate worker bundles and copy the worker binary.",
        )
        graph.action(
            "lazylibs",
            self.copy_lazy_libraries,
            description="Copy lazily loaded libraries into the build.",
        )
        graph.action(
            "shaders",
            self.build_shaders,
            description="Inline shader sources into one generated module.",
        )
        graph.series(
            "build",
            parallel("build:sources", *graph.ref(*BUILD_SOURCE_TASKS)),
            action("build:assets", self.copy_static_assets),
            description="Run all build steps, then copy HTML, resources and license.",
        )
        graph.action(
            "pack",
            self.pack,
            description="Run the external bundler; failures are reported, not fatal.",
        )
        graph.series(
            "watch",
            parallel(
                "watch:startup",
                action("watch:initial", self.rebuild),
                action("watch:webserver", self.serve_while_watching),
            ),
            action("watch:loop", self.watch),
            description="Build, pack and serve, then rebuild on file changes.",
        )
