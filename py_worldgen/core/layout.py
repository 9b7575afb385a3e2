"""
Force-directed layout of vertex positions.

A spring embedder: every pair of vertices repels with ``k_r / d^2``,
every edge pulls its endpoints together with ``k_a * d``, and vertices
beyond 90% of the world radius are pushed back toward the centre.
Velocities are damped and capped by a temperature that cools each
iteration. Positions are clamped to the world radius after every step,
and to a per-vertex box when one is given.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import structlog

logger = structlog.get_logger()


@dataclass
class LayoutConfig:
    """Spring embedder parameters."""

    world_center: Tuple[float, float] = (0.0, 0.0)
    world_radius: float = 100.0
    repulsion_strength: float = 500.0
    attraction_strength: float = 0.1
    damping_factor: float = 0.85
    iterations: int = 300
    convergence_threshold: float = 0.1  # Max displacement that counts as settled
    boundary_force: float = 2.0
    block_size: int = 512  # Rows of the pairwise repulsion computed at once

    @classmethod
    def for_world(
        cls,
        world_center: Tuple[float, float],
        world_radius: float,
        vertex_count: int,
        edge_length: float,
    ) -> "LayoutConfig":
        """
        Parameters scaled to a world.

        Repulsion is chosen so an isolated edge settles near
        ``edge_length`` (``k_a * d = k_r / d^2``), iterations scale with
        the vertex count up to 300.
        """
        attraction = 0.1
        return cls(
            world_center=world_center,
            world_radius=world_radius,
            repulsion_strength=max(attraction * edge_length ** 3, vertex_count * 0.5),
            attraction_strength=attraction,
            iterations=min(300, 2 * vertex_count),
            convergence_threshold=edge_length * 1e-3,
        )


@dataclass
class LayoutResult:
    """Final positions and convergence information."""

    positions: np.ndarray
    iterations: int
    converged: bool
    max_displacement: float


def _repulsion(positions: np.ndarray, strength: float, block_size: int) -> np.ndarray:
    """Sum of k_r / d^2 forces on each vertex from all others."""
    forces = np.zeros_like(positions)
    n = len(positions)
    for start in range(0, n, block_size):
        stop = min(start + block_size, n)
        delta = positions[start:stop, None, :] - positions[None, :, :]
        dist_sq = np.maximum(np.einsum("ijk,ijk->ij", delta, delta), 1e-9)
        # Unit vector times k_r / d^2; the self term has delta == 0
        scale = strength / (dist_sq * np.sqrt(dist_sq))
        forces[start:stop] = np.einsum("ij,ijk->ik", scale, delta)
    return forces


def force_directed_layout(
    positions: Sequence[Sequence[float]],
    edges: Sequence[Tuple[int, int]],
    config: LayoutConfig,
    bounds: Optional[Sequence[Sequence[float]]] = None,
) -> LayoutResult:
    """
    Relax vertex positions with a spring embedder.

    Args:
        positions: Vertex coordinates, shape (n, 2)
        edges: Undirected index pairs
        config: Force parameters
        bounds: Optional (min_x, min_y, max_x, max_y) box per vertex, shape (n, 4)

    Returns:
        New positions (the input is not modified) and convergence data
    """
    center = np.asarray(config.world_center, dtype=float)
    pos = np.array(positions, dtype=float).reshape(-1, 2) - center
    radius = float(config.world_radius)

    if len(pos) == 0 or config.iterations <= 0:
        return LayoutResult(pos + center, 0, True, 0.0)

    lower = upper = None
    if bounds is not None:
        boxes = np.asarray(bounds, dtype=float).reshape(-1, 4)
        if len(boxes) != len(pos):
            raise ValueError(f"Expected {len(pos)} bounds, got {len(boxes)}")
        lower = boxes[:, :2] - center
        upper = boxes[:, 2:] - center

    edge_array = np.asarray(edges, dtype=np.int64).reshape(-1, 2)
    velocity = np.zeros_like(pos)
    temperature = math.sqrt(radius)
    cooling = 1.0 - 1.0 / config.iterations

    converged = False
    max_displacement = 0.0
    iteration = 0

    for iteration in range(1, config.iterations + 1):
        forces = _repulsion(pos, config.repulsion_strength, config.block_size)

        if len(edge_array):
            pull = config.attraction_strength * (pos[edge_array[:, 1]] - pos[edge_array[:, 0]])
            np.add.at(forces, edge_array[:, 0], pull)
            np.add.at(forces, edge_array[:, 1], -pull)

        distance = np.hypot(pos[:, 0], pos[:, 1])
        outside = distance > 0.9 * radius
        if outside.any():
            excess = (distance[outside] - 0.9 * radius) * config.boundary_force
            forces[outside] -= pos[outside] / distance[outside, None] * excess[:, None]

        velocity = (velocity + forces) * config.damping_factor
        speed = np.hypot(velocity[:, 0], velocity[:, 1])
        step_scale = np.minimum(1.0, temperature / np.maximum(speed, 1e-12))
        step = velocity * step_scale[:, None]
        pos += step

        distance = np.hypot(pos[:, 0], pos[:, 1])
        beyond = distance > radius
        if beyond.any():
            pos[beyond] *= (radius / distance[beyond])[:, None]
        if lower is not None:
            np.clip(pos, lower, upper, out=pos)

        max_displacement = float(np.hypot(step[:, 0], step[:, 1]).max())
        temperature *= cooling

        if max_displacement < config.convergence_threshold:
            converged = True
            break

    logger.info(
        "Layout optimised",
        vertices=len(pos),
        iterations=iteration,
        converged=converged,
        max_displacement=round(max_displacement, 4),
    )
    return LayoutResult(pos + center, iteration, converged, max_displacement)
