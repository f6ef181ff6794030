"""
Staged virtual-user ramp for Locust.

A run is described as an ordered list of :class:`Stage` objects, each
holding a duration and a target user count.  Over each stage the number
of concurrent users moves linearly from the previous stage's target (or
0 for the first stage) to the stage's own target.  Once the last stage
has elapsed the run ends.

:class:`StagedRampShape` plugs that plan into Locust's
``LoadTestShape`` hook, so Locust keeps doing the actual spawning and
scheduling while this module only decides *how many* users should be
running at each tick.

Key Concepts Demonstrated:
- Human-friendly durations (``"20s"``, ``"1m30s"``) parsed once at
  startup
- Pure functions for the ramp curve so it can be tested without Locust
- Custom ``LoadTestShape`` returning ``None`` to stop the run
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from locust import LoadTestShape

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str | int | float) -> float:
    """
    Convert a duration to seconds.

    Numbers are taken as seconds.  Strings use unit suffixes that may be
    combined, e.g. ``"20s"``, ``"1m"``, ``"1m30s"``, ``"2h"``, ``"500ms"``.

    Raises:
        ValueError: If the value is negative or not a recognised format.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip().lower()
        if not text:
            raise ValueError("Duration must not be empty")
        try:
            seconds = float(text)
        except ValueError:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(n + u for n, u in parts) != text:
                raise ValueError(f"Invalid duration: {value!r}") from None
            seconds = sum(float(number) * _UNIT_SECONDS[unit] for number, unit in parts)

    if seconds < 0:
        raise ValueError(f"Duration must not be negative: {value!r}")
    return seconds


def format_duration(seconds: float) -> str:
    """Render *seconds* compactly (``20s``, ``1m``, ``1m30s``)."""
    whole = int(round(seconds))
    minutes, secs = divmod(whole, 60)
    if minutes and secs:
        return f"{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m"
    return f"{secs}s"


@dataclass(frozen=True)
class Stage:
    """One step of the ramp plan."""

    duration_seconds: float
    target: int

    def __post_init__(self) -> None:
        if self.duration_seconds < 0:
            raise ValueError("Stage duration must not be negative")
        if self.target < 0:
            raise ValueError("Stage target must not be negative")


def build_stages(pairs: Iterable[tuple[str | int | float, int]]) -> tuple[Stage, ...]:
    """Build stages from ``(duration, target)`` pairs."""
    return tuple(Stage(parse_duration(duration), int(target)) for duration, target in pairs)


def total_duration(stages: Sequence[Stage]) -> float:
    return sum(stage.duration_seconds for stage in stages)


def _locate(stages: Sequence[Stage], elapsed: float) -> tuple[int, float, int] | None:
    """Return ``(stage index, seconds into stage, start target)`` or ``None``."""
    start_target = 0
    stage_start = 0.0
    for index, stage in enumerate(stages):
        stage_end = stage_start + stage.duration_seconds
        if elapsed < stage_end:
            return index, elapsed - stage_start, start_target
        start_target = stage.target
        stage_start = stage_end
    return None


def target_at(stages: Sequence[Stage], elapsed: float) -> int | None:
    """
    Number of users that should be running *elapsed* seconds into the run.

    Returns:
        The linearly interpolated user count, or ``None`` once the plan
        has finished.
    """
    if elapsed < 0:
        elapsed = 0.0
    located = _locate(stages, elapsed)
    if located is None:
        return None
    index, into_stage, start_target = located
    stage = stages[index]
    progress = into_stage / stage.duration_seconds if stage.duration_seconds else 1.0
    return int(round(start_target + (stage.target - start_target) * progress))


def spawn_rate_at(stages: Sequence[Stage], elapsed: float) -> float:
    """Users per second needed to follow the current stage's slope (minimum 1)."""
    located = _locate(stages, max(elapsed, 0.0))
    if located is None:
        return 1.0
    index, _, start_target = located
    stage = stages[index]
    if not stage.duration_seconds:
        return float(max(abs(stage.target - start_target), 1))
    slope = abs(stage.target - start_target) / stage.duration_seconds
    return float(max(math.ceil(slope), 1))


def describe_stages(stages: Sequence[Stage]) -> list[str]:
    """Human-readable plan, one line per stage."""
    lines = []
    previous = 0
    for number, stage in enumerate(stages, start=1):
        lines.append(
            f"Stage {number}: {previous} -> {stage.target} users "
            f"over {format_duration(stage.duration_seconds)}"
        )
        previous = stage.target
    return lines


class StagedRampShape(LoadTestShape):
    """
    Locust load shape that follows a list of stages.

    Concrete shapes set ``stages``; this base stays abstract so Locust
    never picks it up on its own.
    """

    abstract = True
    stages: tuple[Stage, ...] = ()

    def tick(self):
        run_time = self.get_run_time()
        user_count = target_at(self.stages, run_time)
        if user_count is None:
            return None
        return user_count, spawn_rate_at(self.stages, run_time)
