"""
River delta branch pattern.

A main channel runs from the origin to a mouth near the far edge of the
region, steered toward it one segment at a time, so every delta spans its
region from west to east. Distributaries then split off the channel
breadth-first, fanning out while being pulled back toward the main
direction. Distributaries that leave the region end; when every channel
has ended before the segment quota is reached, growth is re-sparked from
a random existing segment.
"""

import math
from collections import deque
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

from .fractal_generators import (
    FractalConfig,
    FractalGenerator,
    FractalGeneratorType,
    FractalSegment,
    WorldConstraints,
    register_generator,
)
from .lcg_prng import SeededRandom

# Distance of the mouth from the far edge, as a share of the region width
MOUTH_INSET = 0.02

# Share of the quota the main channel may use before its steps lengthen
MAIN_CHANNEL_SHARE = 0.5

# Worst-case progress toward the mouth per step, as a share of the step
MAIN_CHANNEL_PROGRESS = 0.6


@dataclass
class RiverDeltaConfig(FractalConfig):
    """River delta parameters."""

    main_direction_pull: float = 0.35  # Share of the deviation corrected per step
    distributary_spread: float = math.pi / 4  # Fan angle between sibling channels
    mouth_y: Optional[float] = None  # End of the main channel; None follows the start direction


def _wrap_angle(angle: float) -> float:
    """Wrap an angle to [-pi, pi)."""
    return (angle + math.pi) % (2 * math.pi) - math.pi


def _reflect(value: float, low: float, high: float) -> float:
    """Mirror a coordinate back inside [low, high]."""
    if value < low:
        value = low + (low - value)
    elif value > high:
        value = high - (value - high)
    return min(max(value, low), high)


@register_generator(FractalGeneratorType.RIVER_DELTA)
class RiverDeltaGenerator(FractalGenerator):
    """Eastward-biased distributary network."""

    config_class = RiverDeltaConfig

    def _grow(
        self,
        origin: FractalSegment,
        start_direction: float,
        config: FractalConfig,
        rng: SeededRandom,
        constraints: WorldConstraints,
        system_id: str,
    ) -> List[FractalSegment]:
        pull = getattr(config, "main_direction_pull", RiverDeltaConfig.main_direction_pull)
        spread = getattr(config, "distributary_spread", RiverDeltaConfig.distributary_spread)

        segments = [origin]
        sparked: Set[int] = set()
        self._main_channel(segments, sparked, start_direction, config, rng, constraints, system_id)

        queue = deque(range(len(segments)))
        respark_budget = config.sparking.respark_attempts_per_segment * config.max_segments
        resparks = 0

        while len(segments) < config.max_segments:
            if queue:
                index = queue.popleft()
                angles = self._channel_angles(
                    segments[index], start_direction, pull, spread, config, rng,
                    extra=config.sparking.extra_branches if index in sparked else 0,
                )
            else:
                if resparks >= respark_budget:
                    break
                resparks += 1
                index = rng.next_int(len(segments))
                # A restarted channel may head anywhere except back west
                angles = [start_direction + rng.next_float(-math.pi / 2, math.pi / 2)]

            parent = segments[index]
            if parent.depth >= config.max_depth:
                continue

            for angle in angles:
                if len(segments) >= config.max_segments:
                    break

                length = self.segment_length(config, parent.depth + 1)
                x = parent.x + math.cos(angle) * length
                y = _reflect(parent.y + math.sin(angle) * length, constraints.min_y, constraints.max_y)
                if x < constraints.min_x or x > constraints.max_x:
                    continue  # channel reached the region edge

                segments.append(self._segment(parent, x, y, len(segments), system_id))
                queue.append(len(segments) - 1)

                if self.crosses_spark_point(config, constraints, parent.x, x):
                    sparked.add(len(segments) - 1)

        return segments

    def _main_channel(
        self,
        segments: List[FractalSegment],
        sparked: Set[int],
        start_direction: float,
        config: FractalConfig,
        rng: SeededRandom,
        constraints: WorldConstraints,
        system_id: str,
    ):
        """
        Grow the main channel from the origin to its mouth.

        Steps lengthen when the channel would otherwise use more than its
        share of the quota, so it reaches the mouth whenever the quota and
        max_depth allow.
        """
        origin = segments[0]
        mouth_x, mouth_y = self._mouth(origin, start_direction, config, constraints)
        distance = math.hypot(mouth_x - origin.x, mouth_y - origin.y)
        if distance <= 0.0:
            return

        budget = max(1, int((config.max_segments - 1) * MAIN_CHANNEL_SHARE))
        step = max(config.segment_length, distance / (MAIN_CHANNEL_PROGRESS * budget))
        wobble = config.angular_dispersion / 2

        parent = origin
        while len(segments) < config.max_segments and parent.depth < config.max_depth:
            remaining = math.hypot(mouth_x - parent.x, mouth_y - parent.y)
            if remaining <= step:
                x, y = mouth_x, mouth_y
            else:
                heading = math.atan2(mouth_y - parent.y, mouth_x - parent.x)
                heading += rng.next_float(-wobble, wobble)
                x = min(max(parent.x + math.cos(heading) * step, constraints.min_x), constraints.max_x)
                y = min(max(parent.y + math.sin(heading) * step, constraints.min_y), constraints.max_y)

            child = self._segment(parent, x, y, len(segments), system_id)
            segments.append(child)
            if self.crosses_spark_point(config, constraints, parent.x, x):
                sparked.add(len(segments) - 1)

            if (x, y) == (mouth_x, mouth_y):
                break
            parent = child

    @staticmethod
    def _mouth(
        origin: FractalSegment,
        start_direction: float,
        config: FractalConfig,
        constraints: WorldConstraints,
    ) -> Tuple[float, float]:
        """Mouth position on the far side of the region."""
        if math.cos(start_direction) >= 0:
            mouth_x = constraints.max_x - MOUTH_INSET * constraints.width
        else:
            mouth_x = constraints.min_x + MOUTH_INSET * constraints.width

        mouth_y = getattr(config, "mouth_y", None)
        if mouth_y is None:
            if abs(math.cos(start_direction)) < 1e-9:
                mouth_y = origin.y
            else:
                mouth_y = origin.y + math.tan(start_direction) * (mouth_x - origin.x)
        mouth_y = min(max(mouth_y, constraints.min_y), constraints.max_y)
        return mouth_x, mouth_y

    @staticmethod
    def _segment(parent: FractalSegment, x: float, y: float, index: int, system_id: str) -> FractalSegment:
        return FractalSegment(
            id=f"{system_id}_segment_{index}",
            x=x,
            y=y,
            parent_id=parent.id,
            depth=parent.depth + 1,
            angle=math.atan2(y - parent.y, x - parent.x),
            length=math.hypot(x - parent.x, y - parent.y),
        )

    @staticmethod
    def _channel_angles(
        parent: FractalSegment,
        start_direction: float,
        pull: float,
        spread: float,
        config: FractalConfig,
        rng: SeededRandom,
        extra: int = 0,
    ) -> List[float]:
        """Angles of the channels leaving a segment."""
        count = 1
        if rng.next() < config.branching_factor:
            count += 1
        if rng.next() < config.branching_factor * 0.5:
            count += 1
        count += extra

        base = parent.angle + pull * _wrap_angle(start_direction - parent.angle)
        dispersion = config.angular_dispersion

        if count == 1:
            return [base + rng.next_float(-dispersion, dispersion)]

        step = spread / (count - 1)
        return [
            base - spread / 2 + k * step + rng.next_float(-dispersion, dispersion) * 0.5
            for k in range(count)
        ]
