"""BuildPipeline: the stage sequencer.

A production build is a fixed, linear sequence of stages:

    clean -> precheck -> generate -> compose -> build -> measure -> html -> complete

Each stage runs at most once, in that order. Some are conditional:
``measure`` only runs for webpack (vite and mako report their own sizes),
``html`` is skipped for multi-page apps, ``clean`` only runs when asked.

Every stage talks to plugins through the hook dispatcher. The build options
are born in ``compose`` and only ever change by coming back out of a
``modifyUniBundlerOpts`` dispatch.

Usage:
    registry = HookRegistry()
    load_plugins(["my_plugins:webpack_backend"], registry, bundlers)
    pipeline = BuildPipeline(registry, bundlers, app_data=load_app_data(cwd))
    result = await pipeline.run()
    print(result.summary())

Any exception in any stage stops the build and propagates unchanged.
There is no retry and no rollback: HTML files written before a later
failure stay on disk.
"""

import inspect
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, TypeAlias

from .assets import (
    HtmlFile,
    MarkupArgs,
    get_assets_map,
    get_markup_args,
    merge_markup_args,
    write_html_files,
)
from .bundler import Bundler, BuildOptions, compose_build_options, get_babel_opts
from .config import (
    DEFAULT_OUTPUT_PATH,
    AppData,
    BuildArgs,
    BuildConfig,
    BundlerKind,
    Paths,
    react_runtime,
    resolve_bundler_kind,
)
from .dispatch import HookDispatcher
from .errors import ConfigurationError
from .fs import LocalFileSystem
from .hooks import ApplyMode, HookRegistry
from .logging import BuildLogger, get_logger
from .markup import get_markup
from .sizes import FileSizeReporter, SizeSnapshot
from .stage import BuildStage, build_stage

MarkupRenderer: TypeAlias = Callable[[MarkupArgs], Any]


@dataclass(slots=True)
class BuildContext:
    """Everything the stages share during one run."""

    name: str
    dispatcher: HookDispatcher
    bundlers: Mapping[BundlerKind, Bundler]
    kind: BundlerKind
    app_data: AppData
    config: BuildConfig
    args: BuildArgs
    paths: Paths
    renderer: MarkupRenderer
    size_reporter: FileSizeReporter
    fs: LocalFileSystem
    log: BuildLogger
    opts: BuildOptions | None = None
    bundler: Bundler | None = None
    stats: Any = None
    previous_sizes: SizeSnapshot = field(default_factory=dict)
    html_files: list[HtmlFile] = field(default_factory=list)

    def build_folder(self) -> Path:
        """Absolute output directory as the backend sees it."""
        assert self.opts is not None
        return (Path(self.opts.cwd) / self.opts.config.output_path).resolve()


async def _render(renderer: MarkupRenderer, args: MarkupArgs) -> str:
    content = renderer(args)
    if inspect.isawaitable(content):
        content = await content
    return content


# ── Stages ──


@build_stage(when=lambda ctx: ctx.args.clean)
async def clean(ctx: BuildContext) -> None:
    ctx.fs.remove_tree(ctx.paths.abs_tmp_path)


@build_stage()
async def precheck(ctx: BuildContext) -> None:
    await ctx.dispatcher.apply_plugins(
        "onCheckPkgJSON",
        ApplyMode.EVENT,
        args={"origin": None, "current": ctx.app_data.pkg},
    )


@build_stage()
async def generate(ctx: BuildContext) -> None:
    await ctx.dispatcher.apply_plugins(
        "onGenerateFiles",
        ApplyMode.EVENT,
        args={"files": None, "isFirstTime": True},
    )


@build_stage()
async def compose(ctx: BuildContext) -> None:
    """Build the options literal and let plugins see, replace, and redirect it."""
    babel = await get_babel_opts(ctx.dispatcher)
    entry = await ctx.dispatcher.apply_plugins(
        "modifyEntry",
        ApplyMode.MODIFY,
        initial_value={"umi": str(ctx.paths.abs_tmp_path / "umi.ts")},
    )
    runtime = react_runtime(ctx.app_data.react_version)
    ctx.log.debug("React %s -> %s runtime", ctx.app_data.react_version, runtime)

    # no configured outputPath: the selected backend names the folder
    output_path = ctx.config.output_path or getattr(
        ctx.bundlers.get(ctx.kind), "DEFAULT_OUTPUT_PATH", DEFAULT_OUTPUT_PATH
    )
    ctx.paths = replace(ctx.paths, abs_output_path=(ctx.paths.cwd / output_path).resolve())

    opts = compose_build_options(
        dispatcher=ctx.dispatcher,
        kind=ctx.kind,
        config=replace(ctx.config, output_path=output_path),
        cwd=str(ctx.paths.cwd),
        entry=entry,
        react_runtime=runtime,
        babel=babel,
    )

    await ctx.dispatcher.apply_plugins(
        "onBeforeCompiler",
        ApplyMode.EVENT,
        args={"compiler": ctx.kind.value, "opts": opts},
    )
    ctx.opts = await ctx.dispatcher.apply_plugins(
        "modifyUniBundlerOpts",
        ApplyMode.MODIFY,
        initial_value=opts,
        args={"bundler": ctx.kind.value},
    )
    ctx.bundler = await ctx.dispatcher.apply_plugins(
        "modifyUniBundler",
        ApplyMode.MODIFY,
        initial_value=ctx.bundlers.get(ctx.kind),
        args={"bundler": ctx.kind.value, "opts": ctx.opts},
    )
    if ctx.bundler is None:
        raise ConfigurationError(f"No bundler backend registered for '{ctx.kind.value}'")


@build_stage()
async def build(ctx: BuildContext) -> None:
    assert ctx.bundler is not None
    if not ctx.kind.self_reports_assets:
        ctx.previous_sizes = ctx.size_reporter.measure(ctx.build_folder())
    ctx.stats = await ctx.bundler.build(ctx.opts)


@build_stage(when=lambda ctx: not ctx.kind.self_reports_assets)
async def measure(ctx: BuildContext) -> None:
    ctx.size_reporter.report(ctx.stats, ctx.previous_sizes, ctx.build_folder())


@build_stage(when=lambda ctx: not ctx.config.mpa)
async def html(ctx: BuildContext) -> None:
    """Render index.html, let plugins rewrite the file list, write it out."""
    assert ctx.opts is not None
    assets_map = (
        {} if ctx.kind.injects_assets else get_assets_map(ctx.stats, ctx.config.public_path)
    )
    markup_args = merge_markup_args(
        await get_markup_args(ctx.dispatcher, ctx.config),
        assets_map,
        ctx.kind,
        esm_script=bool(ctx.opts.config.esm) or ctx.args.vite,
    )
    files = await ctx.dispatcher.apply_plugins(
        "modifyExportHTMLFiles",
        ApplyMode.COLLECT,
        initial_value=[HtmlFile("index.html", await _render(ctx.renderer, markup_args))],
        args={"markupArgs": markup_args, "getMarkup": ctx.renderer},
    )
    ctx.html_files = write_html_files(
        [HtmlFile.coerce(f) for f in files], ctx.paths.abs_output_path, ctx.fs
    )


@build_stage()
async def complete(ctx: BuildContext) -> None:
    assert ctx.opts is not None
    await ctx.dispatcher.apply_plugins(
        "onBuildHtmlComplete",
        ApplyMode.EVENT,
        args={**ctx.opts.as_args(), "htmlFiles": list(ctx.html_files)},
    )


BUILD_STAGES: tuple[BuildStage, ...] = (
    clean,
    precheck,
    generate,
    compose,
    build,
    measure,
    html,
    complete,
)


# ── Result ──


@dataclass(frozen=True, slots=True)
class StageTiming:
    name: str
    duration_seconds: float


@dataclass(slots=True)
class BuildResult:
    """Summary of a build run."""

    name: str
    bundler_kind: BundlerKind
    duration_seconds: float
    stages: list[StageTiming]
    skipped: list[str]
    html_files: list[HtmlFile]
    stats: Any = None

    def __repr__(self) -> str:
        """Return a compact summary showing backend, duration, and stage count."""
        return (
            f"<BuildResult '{self.name}' {self.bundler_kind.value} "
            f"in {self.duration_seconds:.2f}s, "
            f"{len(self.stages)} stages>"
        )

    def summary(self) -> str:
        """Human-readable summary of the run."""
        lines = [
            f"Build '{self.name}' with {self.bundler_kind.value}",
            f"  Duration: {self.duration_seconds:.2f}s",
            f"  HTML files: {', '.join(f.path for f in self.html_files) or 'none'}",
            "",
        ]
        for timing in self.stages:
            lines.append(f"  {timing.name}: {timing.duration_seconds * 1000:.1f}ms")
        for name in self.skipped:
            lines.append(f"  {name}: skipped")
        return "\n".join(lines)


# ── Sequencer ──


class BuildPipeline:
    """Runs the build stages once, in order, against a frozen hook registry.

    Every collaborator is injected. Defaults are the in-package ones: the
    jinja2 markup renderer, the gzip size reporter and the local filesystem.
    """

    def __init__(
        self,
        registry: HookRegistry,
        bundlers: Mapping[BundlerKind, Bundler],
        *,
        app_data: AppData,
        config: BuildConfig | None = None,
        args: BuildArgs | None = None,
        renderer: MarkupRenderer = get_markup,
        size_reporter: FileSizeReporter | None = None,
        fs: LocalFileSystem | None = None,
        name: str = "build",
        stages: tuple[BuildStage, ...] = BUILD_STAGES,
    ) -> None:
        """Initialize the pipeline and resolve the bundler backend.

        Args:
            registry: Hook registry populated by plugin loading.
            bundlers: Available backends, keyed by kind.
            app_data: Package metadata and detected React version.
            config: Build configuration. Defaults to an empty config.
            args: Command-line arguments. Defaults to a clean build.
            renderer: MarkupArgs -> HTML text, sync or async.
            size_reporter: measure/report pair for the webpack backend.
            fs: Filesystem used for the temp wipe and HTML writes.
            name: Name used in logs.
            stages: Stage sequence. Override only in tests.

        Raises:
            ConfigurationError: If the config selects more than one backend.
        """
        self._name = name
        self._registry = registry
        self._bundlers = dict(bundlers)
        self._app_data = app_data
        self._config = config or BuildConfig()
        self._args = args or BuildArgs()
        self._renderer = renderer
        self._size_reporter = size_reporter or FileSizeReporter()
        self._fs = fs or LocalFileSystem()
        self._stages = stages
        self._kind = resolve_bundler_kind(self._config)
        self._ran = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def bundler_kind(self) -> BundlerKind:
        return self._kind

    @property
    def stage_names(self) -> list[str]:
        """Ordered list of stage names."""
        return [s.name for s in self._stages]

    async def run(self) -> BuildResult:
        """Run every stage once. Any failure propagates."""
        if self._ran:
            raise RuntimeError("BuildPipeline.run() can only be called once")
        self._ran = True
        self._registry.freeze()

        log = get_logger(self._name)
        version = self._app_data.tool_version
        log.event("tapline %s building with %s", version or "(dev)", self._kind.value)

        ctx = BuildContext(
            name=self._name,
            dispatcher=HookDispatcher(self._registry),
            bundlers=self._bundlers,
            kind=self._kind,
            app_data=self._app_data,
            config=self._config,
            args=self._args,
            paths=Paths.for_project(self._app_data.cwd, self._config),
            renderer=self._renderer,
            size_reporter=self._size_reporter,
            fs=self._fs,
            log=log,
        )

        timings: list[StageTiming] = []
        skipped: list[str] = []
        t0 = time.monotonic()

        for stage in self._stages:
            stage_log = log.for_stage(stage.name)
            if not stage.should_run(ctx):
                stage_log.debug("Skipping stage '%s'", stage.name)
                skipped.append(stage.name)
                continue

            ctx.log = stage_log
            stage_log.debug("Starting stage '%s'", stage.name)
            ts = time.monotonic()
            try:
                await stage(ctx)
            except Exception as e:
                stage_log.error("Stage '%s' failed: %s", stage.name, e, exc_info=True)
                raise
            timings.append(StageTiming(stage.name, round(time.monotonic() - ts, 4)))

        result = BuildResult(
            name=self._name,
            bundler_kind=self._kind,
            duration_seconds=round(time.monotonic() - t0, 3),
            stages=timings,
            skipped=skipped,
            html_files=list(ctx.html_files),
            stats=ctx.stats,
        )
        log.info("\n%s", result.summary())
        return result
