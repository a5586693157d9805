"""Example: a production build with a stand-in webpack backend

Demonstrates tapline's core features:
- Plugins registering MODIFY, EVENT and COLLECT handlers
- A bundler backend calling back into the hooks it was handed
- The size report and the emitted index.html

The backend writes a couple of fake assets instead of compiling anything,
so it runs without node, but the flow is the real one.

Run with:
    python -m examples.demo_build
"""

import asyncio
import json
import tempfile
from dataclasses import replace
from pathlib import Path

from tapline import (
    AppData,
    BuildConfig,
    BuildPipeline,
    BundlerKind,
    HookRegistry,
    configure_logging,
    load_plugins,
)

# ── Backend ──


class DemoWebpackBundler:
    """Pretends to be webpack: applies the config hooks, writes hashed assets."""

    DEFAULT_OUTPUT_PATH = "dist"

    async def build(self, opts):
        webpack_config = {"mode": "production", "entry": dict(opts.entry)}
        webpack_config = await opts.modify_webpack_config(webpack_config, {"env": "production"})

        out = Path(opts.cwd) / opts.config.output_path
        out.mkdir(parents=True, exist_ok=True)
        files = {
            "umi.4f1c2a9e.js": "console.log('hello from umi');\n" * 200,
            "umi.9b03d7e1.css": "body { margin: 0 }\n" * 50,
        }
        for name, content in files.items():
            (out / name).write_text(content)
        (out / "webpack.config.json").write_text(json.dumps(webpack_config, indent=2))

        stats = {"assetsByChunkName": {"umi": list(files)}}
        await opts.on_build_complete({"stats": stats, "isFirstCompile": True})
        return stats


# ── Plugins ──


def backend_plugin(api):
    api.register_bundler(BundlerKind.WEBPACK, DemoWebpackBundler())


def app_plugin(api):
    api.register("modifyHTMLTitle", lambda title, _: title or "tapline demo")
    api.register(
        "addHTMLMetas", lambda metas, _: [*metas, {"name": "theme-color", "content": "#222"}]
    )
    api.register("modifyWebpackConfig", lambda config, _: {**config, "devtool": False})
    api.register("modifyUniBundlerOpts", lambda opts, _: replace(opts, clean=False))
    api.register("onBuildComplete", lambda args: print(f"compiled: {args['stats']}"))
    api.register(
        "modifyExportHTMLFiles",
        lambda files, args: [*files, {"path": "404.html", "content": files[0].content}],
    )


# ── Run ──


async def main():
    configure_logging()

    with tempfile.TemporaryDirectory() as tmp:
        cwd = Path(tmp)
        registry = HookRegistry()
        bundlers = {}
        load_plugins([backend_plugin, app_plugin], registry, bundlers)

        pipeline = BuildPipeline(
            registry,
            bundlers,
            app_data=AppData(cwd=cwd, pkg={"name": "demo"}, react_version="18.2.0"),
            config=BuildConfig(public_path="/static/"),
        )
        result = await pipeline.run()

        print(f"\n{result!r}")
        for path in sorted((cwd / "dist").iterdir()):
            print(f"  {path.name}")
        print((cwd / "dist" / "index.html").read_text())


if __name__ == "__main__":
    asyncio.run(main())
