"""Image-boundary tracing for circular sources.

The source boundary is sampled at angles theta, every sample is solved for
its images, and images of consecutive samples are linked into tracks. Where
the image count changes by two the boundary crosses a caustic: the unmatched
pair is a created or destroyed image pair and becomes a junction joining two
tracks. Closed image contours are then assembled by walking tracks and
junctions.

Refinement runs from an explicit FIFO queue of angular intervals. An
interval is bisected until its images move smoothly, its integration error
fits its share of the budget, and any junction inside it is tight. Depth and
point caps bound the work; capped intervals are flagged rather than refined.
"""

import math
from collections import deque
from dataclasses import dataclass, field, replace
from itertools import combinations

import numpy as np
import structlog
from scipy.optimize import linear_sum_assignment

from lensmag.config import ContourConfig
from lensmag.core.integrator import TWO_PI, segment_correction, segment_error
from lensmag.core.lens_equation import LensEquationSolver
from lensmag.domain import ContourSet, Curve, ImagePoint, QualityFlag

logger = structlog.get_logger(__name__)

# Cost added when linking images of opposite parity; parity never changes
# along a track.
PARITY_PENALTY = 1e6

# Intervals narrower than this are never split.
MIN_STEP = 1e-12

Node = tuple[int, int]


@dataclass(slots=True)
class _Sample:
    """Solved images of one source-boundary angle."""

    theta: float
    points: list[ImagePoint]
    roots: tuple[complex, ...]


@dataclass(slots=True)
class _Link:
    """Image correspondence between two neighbouring samples."""

    pairs: list[tuple[int, int]] = field(default_factory=list)
    left_free: list[int] = field(default_factory=list)
    right_free: list[int] = field(default_factory=list)


def link_samples(left: list[ImagePoint], right: list[ImagePoint]) -> _Link:
    """Match images of two neighbouring samples.

    A minimum-cost assignment on distance, with a large penalty for parity
    changes. When the counts differ the extra images stay unmatched.

    Args:
        left: Images at the lower angle
        right: Images at the higher angle

    Returns:
        Matched index pairs and the unmatched indices on each side
    """
    if not left or not right:
        return _Link(left_free=list(range(len(left))), right_free=list(range(len(right))))
    cost = np.empty((len(left), len(right)))
    for i, p in enumerate(left):
        for j, q in enumerate(right):
            penalty = PARITY_PENALTY if p.parity != q.parity else 0.0
            cost[i, j] = abs(p.z - q.z) + penalty
    rows, cols = linear_sum_assignment(cost)
    pairs = [(int(i), int(j)) for i, j in zip(rows, cols, strict=True)]
    matched_left = {i for i, _ in pairs}
    matched_right = {j for _, j in pairs}
    return _Link(
        pairs=pairs,
        left_free=[i for i in range(len(left)) if i not in matched_left],
        right_free=[j for j in range(len(right)) if j not in matched_right],
    )


def pair_free_images(points: list[ImagePoint], free: list[int]) -> list[tuple[int, int]]:
    """Group unmatched images of one sample into created/destroyed pairs.

    Images are paired greedily by distance, preferring opposite parity. An
    odd image out stays unpaired.

    Args:
        points: Images of the sample
        free: Indices of the unmatched images

    Returns:
        Index pairs
    """

    def cost(pair: tuple[int, int]) -> float:
        p = points[pair[0]]
        q = points[pair[1]]
        return abs(p.z - q.z) + (PARITY_PENALTY if p.parity == q.parity else 0.0)

    remaining = list(free)
    pairs = []
    while len(remaining) >= 2:
        a, b = min(combinations(remaining, 2), key=cost)
        pairs.append((a, b))
        remaining = [idx for idx in remaining if idx not in (a, b)]
    return pairs


class ContourTracer:
    """Traces image contours of circular sources for one lens.

    Example:
        tracer = ContourTracer(LensEquationSolver(LensConfig(s=1.0, q=1.0)))
        contours = tracer.trace(complex(0.0, 0.1), radius=0.05, accuracy=1e-3)
    """

    def __init__(self, solver: LensEquationSolver, config: ContourConfig | None = None) -> None:
        """Initialize tracer.

        Args:
            solver: Lens equation solver for the lens
            config: Sampling caps and thresholds
        """
        self.solver = solver
        self.config = config or ContourConfig()

    def _solve(
        self,
        center: complex,
        radius: float,
        theta: float,
        guesses: tuple[complex, ...] | None,
    ) -> tuple[_Sample, bool]:
        points, sol = self.solver.boundary_images(center, radius, theta, guesses)
        return _Sample(theta=theta, points=points, roots=sol.roots), sol.converged

    def _needs_split(self, left: _Sample, right: _Sample, link: _Link, budget: float) -> bool:
        """Decide whether an interval must be bisected.

        Args:
            left: Sample at the lower angle
            right: Sample at the higher angle
            link: Image correspondence across the interval
            budget: Area error budget of the whole contour

        Returns:
            True if the interval is not yet resolved
        """
        dtheta = right.theta - left.theta

        for side, free in ((left.points, link.left_free), (right.points, link.right_free)):
            if not free:
                continue
            pairs = pair_free_images(side, free)
            if len(pairs) * 2 != len(free):
                return True
            for a, b in pairs:
                if segment_error(side[a], side[b]) > budget / 16.0:
                    return True

        error = 0.0
        for i, j in link.pairs:
            p = left.points[i]
            q = right.points[j]
            speed = max(abs(p.dz), abs(q.dz))
            if abs(q.z - p.z) > self.config.jump_factor * dtheta * speed:
                return True
            # The whole parabolic correction counts as possible error.
            error += segment_error(p, q) + abs(segment_correction(p, q))
        return error > 0.5 * budget * dtheta / TWO_PI

    def trace(self, center: complex, radius: float, accuracy: float) -> ContourSet:
        """Trace the image contours of a circular source.

        Args:
            center: Source center
            radius: Source radius, > 0
            accuracy: Goal on the magnification of this disk

        Returns:
            ContourSet whose curves are oriented for signed-area integration
        """
        cfg = self.config
        budget = accuracy * math.pi * radius * radius
        flags = QualityFlag(0)

        samples: list[_Sample] = []
        guesses: tuple[complex, ...] | None = None
        for k in range(cfg.initial_samples):
            sample, ok = self._solve(center, radius, TWO_PI * k / cfg.initial_samples, guesses)
            if not ok:
                flags |= QualityFlag.ROOT_NONCONVERGENCE
            samples.append(sample)
            guesses = sample.roots
        first = samples[0]
        samples.append(
            _Sample(
                theta=TWO_PI,
                points=[replace(p, theta=TWO_PI) for p in first.points],
                roots=first.roots,
            )
        )
        closing = len(samples) - 1

        queue: deque[tuple[int, int, int]] = deque(
            (k, k + 1, 0) for k in range(cfg.initial_samples)
        )
        accepted: dict[int, tuple[int, _Link]] = {}
        while queue:
            ia, ib, depth = queue.popleft()
            left = samples[ia]
            right = samples[ib]
            link = link_samples(left.points, right.points)
            if self._needs_split(left, right, link, budget):
                capped = (
                    depth >= cfg.max_depth
                    or len(samples) >= cfg.max_points
                    or right.theta - left.theta < MIN_STEP
                )
                if not capped:
                    mid, ok = self._solve(
                        center, radius, 0.5 * (left.theta + right.theta), left.roots
                    )
                    if not ok:
                        flags |= QualityFlag.ROOT_NONCONVERGENCE
                    samples.append(mid)
                    im = len(samples) - 1
                    queue.append((ia, im, depth + 1))
                    queue.append((im, ib, depth + 1))
                    continue
                flags |= QualityFlag.CONTOUR_DISCONTINUITY
            accepted[ia] = (ib, link)

        curves = self._assemble(samples, accepted, closing)
        if flags & QualityFlag.CONTOUR_DISCONTINUITY:
            logger.warning(
                "Contour refinement capped",
                radius=radius,
                samples=len(samples) - 1,
            )
        return ContourSet(
            curves=tuple(curves),
            radius=radius,
            sample_count=len(samples) - 1,
            flags=flags,
        )

    def _assemble(
        self,
        samples: list[_Sample],
        accepted: dict[int, tuple[int, _Link]],
        closing: int,
    ) -> list[Curve]:
        """Join tracks and junctions into closed, oriented curves.

        Args:
            samples: All solved samples, in creation order
            accepted: Resolved intervals keyed by their left sample
            closing: Index of the 2*pi copy of the first sample

        Returns:
            Closed curves oriented so that their signed areas add up
        """
        nxt: dict[Node, Node] = {}
        prv: dict[Node, Node] = {}
        start_partner: dict[Node, Node] = {}
        end_partner: dict[Node, Node] = {}

        def node_of(sample: int, image: int) -> Node:
            return (0 if sample == closing else sample, image)

        for ia, (ib, link) in accepted.items():
            for i, j in link.pairs:
                a = node_of(ia, i)
                b = node_of(ib, j)
                nxt[a] = b
                prv[b] = a
            for a, b in pair_free_images(samples[ia].points, link.left_free):
                end_partner[node_of(ia, a)] = node_of(ia, b)
                end_partner[node_of(ia, b)] = node_of(ia, a)
            for a, b in pair_free_images(samples[ib].points, link.right_free):
                start_partner[node_of(ib, a)] = node_of(ib, b)
                start_partner[node_of(ib, b)] = node_of(ib, a)

        def point(node: Node) -> ImagePoint:
            return samples[node[0]].points[node[1]]

        used: set[Node] = set()
        curves: list[Curve] = []

        def walk(node: Node, forward: bool) -> list[Node]:
            links = nxt if forward else prv
            chain = [node]
            used.add(node)
            while chain[-1] in links and links[chain[-1]] not in used:
                chain.append(links[chain[-1]])
                used.add(chain[-1])
            return chain

        def finish(nodes: list[Node], score: int) -> None:
            pts = tuple(point(n) for n in nodes)
            curve = Curve(points=pts)
            curves.append(curve if score >= 0 else curve.reversed())

        starts = sorted(start_partner, key=lambda n: (-point(n).parity, n))
        for start in starts:
            if start in used:
                continue
            nodes: list[Node] = []
            score = 0
            node = start
            forward = True
            while True:
                chain = walk(node, forward)
                nodes.extend(chain)
                score += len(chain) * point(chain[0]).parity * (1 if forward else -1)
                partners = end_partner if forward else start_partner
                partner = partners.get(chain[-1])
                if partner is None or partner in used:
                    break
                node = partner
                forward = not forward
            finish(nodes, score)

        all_nodes = sorted(set(nxt) | set(prv))
        for node in all_nodes:
            if node in used:
                continue
            chain = walk(node, True)
            finish(chain, len(chain) * point(node).parity)

        return curves
