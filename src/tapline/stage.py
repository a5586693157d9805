"""Stage: one step of the build.

A build stage is an async function that takes the build context, decorated
with its name and an optional precondition:

    @build_stage(when=lambda ctx: not ctx.config.mpa)
    async def html(ctx: BuildContext) -> None:
        ...

The decorator doesn't change what the function does when called directly.
It attaches configuration. The BuildPipeline reads that configuration,
checks the precondition, times the stage and runs it exactly once.

Stages are functions, not classes, for the same reason as everywhere else:
you can test a stage by calling it with a hand-built context.
"""

import functools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeAlias

StageBody: TypeAlias = Callable[[Any], Awaitable[None]]
Precondition: TypeAlias = Callable[[Any], bool]


@dataclass(frozen=True, slots=True)
class StageConfig:
    """Configuration attached to a stage function by @build_stage."""

    name: str
    when: Precondition | None = None


class BuildStage:
    """A decorated stage body with its configuration."""

    def __init__(self, func: StageBody, config: StageConfig) -> None:
        self.func = func
        self.config = config
        functools.update_wrapper(self, func)

    @property
    def name(self) -> str:
        return self.config.name

    def should_run(self, ctx: Any) -> bool:
        """Evaluate the precondition. No precondition means always."""
        return self.config.when is None or bool(self.config.when(ctx))

    async def __call__(self, ctx: Any) -> None:
        await self.func(ctx)

    def __repr__(self) -> str:
        conditional = " conditional" if self.config.when is not None else ""
        return f"<BuildStage '{self.name}'{conditional}>"


def build_stage(
    name: str | None = None,
    when: Precondition | None = None,
) -> Callable[[StageBody], BuildStage]:
    """Decorator to declare an async function as a build stage.

    Args:
        name: Stage name for logs and timings. Defaults to the function name.
        when: Precondition evaluated against the build context right before
            the stage would run. A falsy result skips the stage.
    """

    def decorator(func: StageBody) -> BuildStage:
        return BuildStage(func, StageConfig(name=name or func.__name__, when=when))

    return decorator
