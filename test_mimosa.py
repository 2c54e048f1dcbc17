import math
import random

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest
from matplotlib import pyplot as plt

from lsystem import MIMOSA_AXIOM, MIMOSA_RULES, ConfigError, UnbalancedBracketError, expand
from mimosa import (
    MimosaTree,
    default_options,
    flower_points,
    interpret,
    main,
    make_jitter,
    plot_mimosa,
    rot_z,
    sample_base_angle,
    segment_points,
    tip_points,
)


def no_jitter() -> float:
    return 1.0


def direction(seg) -> np.ndarray:
    d = seg[1] - seg[0]
    return d / np.linalg.norm(d)


class TestInterpret:
    def test_single_forward(self) -> None:
        segs = interpret("F", 2.5, math.pi / 4, no_jitter)
        assert len(segs) == 1
        start, end = segs[0]
        assert start.tolist() == [0.0, 0.0, 0.0]
        assert end.tolist() == [0.0, 2.5, 0.0]

    def test_branch_and_restore(self) -> None:
        angle = math.pi / 4
        segs = interpret("F[+F]F", 1.0, angle, no_jitter)
        assert len(segs) == 3
        np.testing.assert_allclose(segs[1][0], segs[0][1])
        np.testing.assert_allclose(segs[2][0], segs[0][1])
        np.testing.assert_allclose(direction(segs[1]), rot_z(direction(segs[0]), angle), atol=1e-12)
        np.testing.assert_allclose(direction(segs[2]), direction(segs[0]), atol=1e-12)

    @pytest.mark.parametrize(
        "symbols, expected",
        [
            ("+F", [-1.0, 0.0, 0.0]),
            ("-F", [1.0, 0.0, 0.0]),
            ("&F", [0.0, 0.0, 1.0]),
            ("^F", [0.0, 0.0, -1.0]),
            ("\\F", [0.0, 1.0, 0.0]),  # yaw leaves "up" alone
            ("&\\F", [1.0, 0.0, 0.0]),
            ("&/F", [-1.0, 0.0, 0.0]),
        ],
    )
    def test_rotation_axes(self, symbols: str, expected: list) -> None:
        segs = interpret(symbols, 1.0, math.pi / 2, no_jitter)
        np.testing.assert_allclose(segs[-1][1], expected, atol=1e-12)

    def test_jitter_scales_angle(self) -> None:
        segs = interpret("+F", 1.0, math.pi / 4, lambda: 2.0)
        np.testing.assert_allclose(segs[0][1], [-1.0, 0.0, 0.0], atol=1e-12)

    def test_jitter_sampled_per_rotation(self) -> None:
        calls = []

        def jitter() -> float:
            calls.append(1)
            return 1.0

        interpret("F+F-[&F^F]\\/FxF", 1.0, 0.3, jitter)
        assert len(calls) == 6

    def test_segment_count_matches_f_count(self) -> None:
        symbols = expand(MIMOSA_AXIOM, MIMOSA_RULES, 3)
        rng = random.Random(7)
        segs = interpret(symbols, 0.5, sample_base_angle(rng), make_jitter(rng))
        assert len(segs) == symbols.count("F")

    def test_heading_stays_unit(self) -> None:
        symbols = expand(MIMOSA_AXIOM, MIMOSA_RULES, 3)
        rng = random.Random(1)
        segs = interpret(symbols, 0.5, sample_base_angle(rng), make_jitter(rng))
        lengths = np.linalg.norm(np.array([e - s for s, e in segs]), axis=1)
        np.testing.assert_allclose(lengths, 0.5, rtol=1e-9)

    def test_unknown_symbols_ignored(self) -> None:
        segs = interpret("FxyzF", 1.0, 1.0, no_jitter)
        assert len(segs) == 2
        np.testing.assert_allclose(segs[1][1], [0.0, 2.0, 0.0])

    def test_push_copies_cursor(self) -> None:
        segs = interpret("[+F]F", 1.0, math.pi / 2, no_jitter)
        assert segs[1][0].tolist() == [0.0, 0.0, 0.0]
        np.testing.assert_allclose(segs[1][1], [0.0, 1.0, 0.0])

    def test_pop_on_empty_stack(self) -> None:
        with pytest.raises(UnbalancedBracketError) as exc:
            interpret("F]F", 1.0, 1.0, no_jitter)
        assert exc.value.index == 1

    def test_first_offending_pop_reported(self) -> None:
        with pytest.raises(UnbalancedBracketError) as exc:
            interpret("[F]]F]", 1.0, 1.0, no_jitter)
        assert exc.value.index == 3

    def test_unclosed_push_tolerated(self) -> None:
        assert len(interpret("F[+F", 1.0, 1.0, no_jitter)) == 2

    @pytest.mark.parametrize("step", [0, -1.0])
    def test_non_positive_step(self, step: float) -> None:
        with pytest.raises(ConfigError):
            interpret("F", step, 1.0, no_jitter)


class TestRandomness:
    def test_base_angle_range(self) -> None:
        rng = random.Random(0)
        for _ in range(200):
            a = math.degrees(sample_base_angle(rng))
            assert 30.0 <= a <= 60.0

    def test_base_angle_custom(self) -> None:
        assert sample_base_angle(random.Random(0), 20.0, 0.0) == pytest.approx(math.radians(20.0))

    def test_jitter_range(self) -> None:
        jitter = make_jitter(random.Random(0))
        for _ in range(200):
            assert 0.7 <= jitter() <= 1.3

    @pytest.mark.parametrize("low, high", [(1.3, 0.7), (0.0, 1.0), (-0.5, 1.0)])
    def test_bad_jitter_range(self, low: float, high: float) -> None:
        with pytest.raises(ConfigError):
            make_jitter(random.Random(0), low, high)


class TestDecoration:
    def setup_method(self) -> None:
        self.segments = interpret("F[+F]F[-F]F", 1.0, 0.5, no_jitter)

    def test_tip_points_are_odd_indices(self) -> None:
        points = segment_points(self.segments)
        tips = tip_points(self.segments)
        assert len(tips) == len(self.segments)
        for tip, (_, end) in zip(tips, self.segments):
            assert tip is end
        assert all(a is b for a, b in zip(tips, points[1::2]))

    def test_flower_points_drawn_from_segments(self) -> None:
        points = segment_points(self.segments)
        flowers = flower_points(self.segments, random.Random(3), count=50)
        assert len(flowers) == 50
        for f in flowers:
            assert any(f is p for p in points)

    def test_flower_default_count(self) -> None:
        # 5 segments -> 10 points -> 3 flowers, rounded up
        assert len(flower_points(self.segments, random.Random(3))) == 3

    def test_flower_count_rounds_up(self) -> None:
        segments = interpret("FFF", 1.0, 0.5, no_jitter)
        assert len(flower_points(segments, random.Random(3))) == 2
        assert len(flower_points(segments[:2], random.Random(3))) == 1

    def test_flower_empty(self) -> None:
        assert flower_points([], random.Random(3), count=4) == []

    def test_flower_negative_count(self) -> None:
        with pytest.raises(ConfigError):
            flower_points(self.segments, random.Random(3), count=-1)


class TestMimosaTree:
    def make(self, seed=11, **overrides) -> MimosaTree:
        opts = default_options(seed=seed)
        opts.generations = 3
        for k, v in overrides.items():
            setattr(opts, k, v)
        return MimosaTree(opts)

    def test_defaults(self) -> None:
        opts = default_options()
        assert opts.axiom == "F"
        assert opts.rules == {"F": "FF+[+F-F-^F]-[-F+F&F]"}
        assert opts.generations == 5
        assert opts.step_length == 0.5
        assert (opts.jitter_low, opts.jitter_high) == (0.7, 1.3)

    def test_generate(self) -> None:
        tree = self.make()
        segs = tree.generate()
        assert segs is tree.segments
        assert len(segs) == 8 ** 3 == tree.symbols.count("F")
        assert len(tree.leaves) == len(segs)
        assert len(tree.flowers) == -(-2 * len(segs) // 4)
        assert math.radians(30) <= tree.base_angle <= math.radians(60)

    def test_seed_reproducible(self) -> None:
        a, b = self.make(seed=5), self.make(seed=5)
        a.generate()
        b.generate()
        assert a.base_angle == b.base_angle
        np.testing.assert_array_equal(np.array(a.segments), np.array(b.segments))
        np.testing.assert_array_equal(np.array(a.flowers), np.array(b.flowers))

    def test_seeds_differ(self) -> None:
        a, b = self.make(seed=5), self.make(seed=6)
        a.generate()
        b.generate()
        assert not np.allclose(np.array(a.segments), np.array(b.segments))

    def test_bounds(self) -> None:
        tree = self.make()
        tree.generate()
        lo, hi = tree.bounds()
        assert np.all(lo <= 0.0) and np.all(hi >= 0.0)
        assert hi[1] >= 0.5

    def test_bounds_before_generate(self) -> None:
        with pytest.raises(ConfigError):
            self.make().bounds()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"step_length": 0.0},
            {"generations": -1},
            {"jitter_low": 1.5},
            {"angle_spread_deg": -1.0},
        ],
    )
    def test_invalid_options(self, overrides: dict) -> None:
        tree = self.make(**overrides)
        with pytest.raises(ConfigError):
            tree.generate()
        assert tree.segments == []


class TestPlot:
    def test_plot_returns_figure(self) -> None:
        tree = MimosaTree(default_options(seed=2))
        tree.opt.generations = 2
        tree.generate()
        fig = plot_mimosa(tree, show=False)
        ax = fig.axes[0]
        assert ax.name == "3d"
        assert "64 branches" in ax.get_title()
        plt.close(fig)

    def test_plot_empty_tree(self) -> None:
        fig = plot_mimosa(MimosaTree(default_options(seed=2)), show=False, vase=False)
        assert fig.axes
        plt.close(fig)


class TestMain:
    def test_summary(self, capsys: pytest.CaptureFixture) -> None:
        assert main(["--seed", "3", "--generations", "2", "--no-plot"]) == 0
        out = capsys.readouterr().out
        assert "64 branches" in out
        assert "64 leaves" in out

    def test_config_error(self, capsys: pytest.CaptureFixture) -> None:
        assert main(["--step", "0", "--generations", "1", "--no-plot"]) == 2
        assert "Config error" in capsys.readouterr().err

    def test_export(self, tmp_path, capsys: pytest.CaptureFixture) -> None:
        out = tmp_path / "nested" / "mimosa.ply"
        assert main(["--seed", "1", "--generations", "1", "--no-plot", "--export", str(out)]) == 0
        assert out.exists() and out.stat().st_size > 0
        assert "Done:" in capsys.readouterr().out
