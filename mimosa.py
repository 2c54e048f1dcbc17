# mimosa.py
# L-system mimosa tree: a 3D turtle walks the expanded grammar and leaves
# branch segments behind, plus leaf and flower points for decoration.
# Run: python mimosa.py [--seed N] [--export mimosa.glb] [--no-plot]

import argparse
import math
import random
import sys
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple
import numpy as np
from matplotlib import pyplot as plt
from mpl_toolkits.mplot3d import Axes3D  # noqa: F401  # needed for 3D

from lsystem import (
    MIMOSA_AXIOM,
    MIMOSA_GENERATIONS,
    MIMOSA_RULES,
    LSystemError,
    UnbalancedBracketError,
    require,
    expand,
)
from scene import (
    BRANCH_COLOR,
    FLOWER_COLOR,
    LEAF_COLOR,
    SKY_COLOR,
    VASE_BOTTOM_R,
    VASE_CENTER_Y,
    VASE_COLOR,
    VASE_HEIGHT,
    VASE_TOP_R,
    build_scene,
    export_scene,
)

Segment = Tuple[np.ndarray, np.ndarray]

# ---------- Basic math helpers ----------
def rot_x(v: np.ndarray, angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    R = np.array([[1,0,0],[0,c,-s],[0,s,c]], dtype=float)
    return R @ v

def rot_y(v: np.ndarray, angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    R = np.array([[c,0,s],[0,1,0],[-s,0,c]], dtype=float)
    return R @ v

def rot_z(v: np.ndarray, angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    R = np.array([[c,-s,0],[s,c,0],[0,0,1]], dtype=float)
    return R @ v

# symbol -> (world-axis rotation, sign of the angle)
ROTATIONS = {
    "+": (rot_z, 1.0),   # roll
    "-": (rot_z, -1.0),
    "&": (rot_x, 1.0),   # pitch
    "^": (rot_x, -1.0),
    "\\": (rot_y, 1.0),  # yaw
    "/": (rot_y, -1.0),
}

# ---------- Randomness ----------
def sample_base_angle(rng: random.Random, center_deg: float = 45.0, spread_deg: float = 15.0) -> float:
    """One angle per tree, in radians: center +/- up to spread degrees."""
    return math.radians(center_deg + rng.uniform(-spread_deg, spread_deg))

def make_jitter(rng: random.Random, low: float = 0.7, high: float = 1.3) -> Callable[[], float]:
    """Per-rotation multiplier, drawn uniformly from [low, high] on every call."""
    require(0 < low <= high, f"jitter range must satisfy 0 < low <= high, got [{low}, {high}]")
    return lambda: rng.uniform(low, high)

# ---------- Turtle ----------
@dataclass
class Cursor:
    position: np.ndarray
    heading: np.ndarray   # unit length

    def copy(self) -> "Cursor":
        return Cursor(self.position.copy(), self.heading.copy())

def interpret(symbols: str, step_length: float, base_angle: float,
              angle_jitter: Callable[[], float]) -> List[Segment]:
    """Walk `symbols` once and return one (start, end) pair per F, in order.

    The turtle starts at the origin heading up (+Y). Rotation symbols turn the
    heading about the world axes by base_angle scaled by a fresh jitter
    sample; '[' saves the cursor and ']' restores it. A ']' with nothing saved
    raises UnbalancedBracketError and no geometry is returned.
    """
    require(step_length > 0, "step_length must be > 0")

    cur = Cursor(np.zeros(3), np.array([0.0, 1.0, 0.0]))
    stack: List[Cursor] = []
    segments: List[Segment] = []

    for i, ch in enumerate(symbols):
        if ch == "F":
            nxt = cur.position + cur.heading * step_length
            segments.append((cur.position, nxt))
            cur.position = nxt
        elif ch in ROTATIONS:
            rot, sign = ROTATIONS[ch]
            h = rot(cur.heading, sign * base_angle * angle_jitter())
            cur.heading = h / np.linalg.norm(h)
        elif ch == "[":
            stack.append(cur.copy())
        elif ch == "]":
            if not stack:
                raise UnbalancedBracketError(i)
            cur = stack.pop()
    return segments

# ---------- Decoration ----------
def segment_points(segments: List[Segment]) -> List[np.ndarray]:
    """Flatten to start0, end0, start1, end1, ..."""
    return [p for seg in segments for p in seg]

def tip_points(segments: List[Segment]) -> List[np.ndarray]:
    # odd indices of the flattened list
    return segment_points(segments)[1::2]

def flower_points(segments: List[Segment], rng: random.Random,
                  count: Optional[int] = None) -> List[np.ndarray]:
    """Sample points with replacement from the segment endpoints.

    Defaults to a quarter of the flattened points rounded up, about one
    flower for every two branches.
    """
    points = segment_points(segments)
    if count is None:
        count = -(-len(points) // 4)
    require(count >= 0, "flower count must be >= 0")
    if not points:
        return []
    return [points[rng.randrange(len(points))] for _ in range(count)]

# ---------- Options ----------
@dataclass
class MimosaOptions:
    seed: Optional[int]
    axiom: str
    rules: Dict[str, str]
    generations: int
    step_length: float       # branch length per F
    angle_center_deg: float  # base angle, sampled once per tree...
    angle_spread_deg: float  # ...within center +/- spread
    jitter_low: float        # per-rotation multiplier range
    jitter_high: float

def default_options(seed: Optional[int] = None) -> MimosaOptions:
    return MimosaOptions(
        seed=seed,
        axiom=MIMOSA_AXIOM,
        rules=dict(MIMOSA_RULES),
        generations=MIMOSA_GENERATIONS,
        step_length=0.5,
        angle_center_deg=45.0,
        angle_spread_deg=15.0,
        jitter_low=0.7,
        jitter_high=1.3,
    )

# ---------- Tree ----------
class MimosaTree:
    def __init__(self, opt: MimosaOptions):
        self.opt = opt
        self.rng = random.Random(opt.seed)
        self.symbols = ""
        self.base_angle = 0.0
        self.segments: List[Segment] = []
        self.leaves: List[np.ndarray] = []
        self.flowers: List[np.ndarray] = []

    def generate(self) -> List[Segment]:
        o = self.opt
        require(o.step_length > 0, "step_length must be > 0")
        require(o.angle_spread_deg >= 0, "angle_spread_deg must be >= 0")
        jitter = make_jitter(self.rng, o.jitter_low, o.jitter_high)

        self.symbols = expand(o.axiom, o.rules, o.generations)
        self.base_angle = sample_base_angle(self.rng, o.angle_center_deg, o.angle_spread_deg)
        self.segments = interpret(self.symbols, o.step_length, self.base_angle, jitter)
        self.leaves = tip_points(self.segments)
        self.flowers = flower_points(self.segments, self.rng)
        return self.segments

    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        require(bool(self.segments), "tree has no segments; call generate() first")
        pts = np.array(segment_points(self.segments))
        return pts.min(axis=0), pts.max(axis=0)

# ---------- Plot ----------
def _upright(pts: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    # the tree grows along +Y, matplotlib's vertical axis is Z
    return pts[..., 0], pts[..., 2], pts[..., 1]

def _vase_outline(ax, sections: int = 32):
    a = np.linspace(0.0, 2.0 * math.pi, sections + 1)
    y0 = VASE_CENTER_Y - VASE_HEIGHT / 2
    y1 = VASE_CENTER_Y + VASE_HEIGHT / 2
    for r, y in ((VASE_BOTTOM_R, y0), (VASE_TOP_R, y1)):
        ax.plot(r * np.cos(a), r * np.sin(a), np.full_like(a, y), color=VASE_COLOR, linewidth=1.5)
    for t in np.linspace(0.0, 2.0 * math.pi, 8, endpoint=False):
        ax.plot([VASE_BOTTOM_R * math.cos(t), VASE_TOP_R * math.cos(t)],
                [VASE_BOTTOM_R * math.sin(t), VASE_TOP_R * math.sin(t)],
                [y0, y1], color=VASE_COLOR, linewidth=1.0)

def plot_mimosa(tree: MimosaTree, show: bool = True, vase: bool = True):
    """Draw branches, leaves, flowers and the vase in a 3D axes."""
    from mpl_toolkits.mplot3d.art3d import Line3DCollection

    fig = plt.figure(figsize=(8, 10))
    fig.patch.set_facecolor(SKY_COLOR)
    ax = fig.add_subplot(111, projection='3d')
    ax.set_facecolor(SKY_COLOR)

    lo = np.array([-VASE_BOTTOM_R, VASE_CENTER_Y - VASE_HEIGHT / 2, -VASE_BOTTOM_R])
    hi = np.array([VASE_BOTTOM_R, VASE_CENTER_Y + VASE_HEIGHT / 2, VASE_BOTTOM_R])

    if tree.segments:
        segs = np.array(tree.segments)  # (n, 2, 3)
        x, y, z = _upright(segs)
        ax.add_collection3d(Line3DCollection(np.stack([x, y, z], axis=-1),
                                             colors=BRANCH_COLOR, linewidths=1.0))
        tlo, thi = tree.bounds()
        lo = np.minimum(lo, tlo)
        hi = np.maximum(hi, thi)

    for pts, color, size in ((tree.leaves, LEAF_COLOR, 6), (tree.flowers, FLOWER_COLOR, 14)):
        if pts:
            x, y, z = _upright(np.array(pts))
            ax.scatter(x, y, z, c=color, s=size, depthshade=False)

    if vase:
        _vase_outline(ax)

    x, y, z = _upright(np.stack([lo, hi]))
    ax.set_xlim(x[0], x[1]); ax.set_ylim(y[0], y[1]); ax.set_zlim(z[0], z[1])
    ax.set_box_aspect(np.maximum(hi - lo, 1e-6)[[0, 2, 1]])
    ax.set_xlabel('X'); ax.set_ylabel('Z'); ax.set_zlabel('Y')
    # same direction as a camera at (10, 10, 10) looking at the origin
    ax.view_init(elev=math.degrees(math.atan(1 / math.sqrt(2))), azim=45)
    ax.set_title(f'Mimosa ({len(tree.segments)} branches, {len(tree.flowers)} flowers)')
    plt.tight_layout()
    if show:
        plt.show()
    return fig

# ---------- CLI ----------
def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="mimosa.py",
        description="Grow an L-system mimosa tree and show it in 3D.",
    )
    p.add_argument("--seed", type=int, default=None, help="Seed for a repeatable tree.")
    p.add_argument("--generations", type=int, default=MIMOSA_GENERATIONS,
                   help=f"Grammar generations (default {MIMOSA_GENERATIONS}).")
    p.add_argument("--step", type=float, default=0.5, help="Branch length per F (default 0.5).")
    p.add_argument("--export", metavar="PATH", default=None,
                   help="Also write the scene mesh; format from the extension (.obj, .glb, .ply, ...).")
    p.add_argument("--no-plot", action="store_true", help="Skip the matplotlib window.")
    return p

def main(argv: Optional[List[str]] = None) -> int:
    args = build_argparser().parse_args(argv)
    opts = replace(default_options(seed=args.seed), generations=args.generations, step_length=args.step)

    try:
        tree = MimosaTree(opts)
        tree.generate()
    except LSystemError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2

    print(f"Expanded {opts.generations} generations into {len(tree.symbols):,} symbols")
    print(f"Base angle: {math.degrees(tree.base_angle):.1f} deg")
    print(f"Generated {len(tree.segments):,} branches, {len(tree.leaves):,} leaves, {len(tree.flowers):,} flowers")

    if args.export:
        try:
            path = export_scene(build_scene(tree), args.export)
        except OSError as e:
            print(f"File error: {e}", file=sys.stderr)
            return 2
        print(f"Done: {path}")

    if not args.no_plot:
        plot_mimosa(tree)
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
