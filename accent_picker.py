"""
Pick accent colors that stay perceptually distinct from a base palette.

Three rounds:
  1. Sample the RGB space between neighbouring base colors and keep the samples
     that pass the acceptance bands derived from the base colors.
  2. Drop samples too close to any base color and consolidate the rest.
  3. Mine a large reference palette for colors far from both the base colors
     and the second round results, then consolidate twice.
"""

from dataclasses import dataclass, field
import logging
from typing import Dict, List, Optional

import numpy as np

from accent_cache import NullRoundCache, memoize
from accent_config import (
    AccentSettings, MAX_CONTRAST, MAX_DELTA_E, MAX_LUMA, MIN_CONTRAST, MIN_LUMA,
    SAMPLE_CHUNK, SAMPLE_STOP_DELTA_E, SECOND_ROUND_GROUP_CUTOFF, THIRD_ROUND_GROUP_CUTOFF,
)
from color_math import (
    BLACK, WHITE, Color, contrast_ratio, delta_e_cie2000, delta_e_matrix, labs, luma,
    rgb_number_to_array, rgb_numbers, rgb_to_lab,
)


logger = logging.getLogger(__name__)

BLACK_RGB = np.array(BLACK.rgb, dtype=np.float64)
WHITE_RGB = np.array(WHITE.rgb, dtype=np.float64)
BLACK_LAB = np.array(BLACK.lab)
WHITE_LAB = np.array(WHITE.lab)


# =============================================================================
# Statistics
# =============================================================================

def median(values) -> Optional[float]:
    """Median of values, or None for an empty sequence."""
    values = np.asarray(values, dtype=np.float64).ravel()
    if values.size == 0:
        return None
    return float(np.median(values))


@dataclass(frozen=True)
class BaseColorMetrics:
    black_delta_e: float
    white_delta_e: float
    luma: float


@dataclass(frozen=True)
class ColorStats:
    """Aggregate measurements of the base colors, computed once per run."""
    min_black_delta_e: float
    min_white_delta_e: float
    min_luma: float
    max_luma: float
    median_pairwise_delta_e: Optional[float]
    median_black_delta_e: Optional[float] = None
    median_white_delta_e: Optional[float] = None
    median_luma: Optional[float] = None
    metrics: Dict[str, BaseColorMetrics] = field(default_factory=dict)


def compute_color_stats(base_colors) -> ColorStats:
    """
    Measure the base colors against black and white.

    Pure black and white count towards the medians but never towards the
    min/max trackers. With no other color to track, the trackers stay
    unconstrained (0 Delta E minimums, full luma range).
    """
    base_colors = list(base_colors)
    base_labs = labs(base_colors)
    base_rgb = rgb_number_to_array(rgb_numbers(base_colors)).reshape(-1, 3)

    black_deltas = np.atleast_1d(delta_e_cie2000(base_labs, BLACK_LAB))
    white_deltas = np.atleast_1d(delta_e_cie2000(base_labs, WHITE_LAB))
    lumas = np.atleast_1d(luma(base_rgb))

    tracked = np.array([color.hex not in (BLACK.hex, WHITE.hex) for color in base_colors], dtype=bool)
    if tracked.any():
        min_black_delta_e = float(black_deltas[tracked].min())
        min_white_delta_e = float(white_deltas[tracked].min())
        min_luma = float(lumas[tracked].min())
        max_luma = float(lumas[tracked].max())
    else:
        min_black_delta_e, min_white_delta_e = 0.0, 0.0
        min_luma, max_luma = float(MIN_LUMA), float(MAX_LUMA)

    pairwise = delta_e_matrix(base_labs, base_labs)
    median_pairwise = median([median(row) for row in pairwise])

    metrics = {}
    for color, black_delta, white_delta, color_luma in zip(base_colors, black_deltas, white_deltas, lumas):
        metrics[color.hex] = BaseColorMetrics(float(black_delta), float(white_delta), float(color_luma))
        logger.debug("%s: blackDeltaE=%.3f whiteDeltaE=%.3f luma=%.3f",
                     color.hex, black_delta, white_delta, color_luma)

    stats = ColorStats(
        min_black_delta_e=min_black_delta_e,
        min_white_delta_e=min_white_delta_e,
        min_luma=min_luma,
        max_luma=max_luma,
        median_pairwise_delta_e=median_pairwise,
        median_black_delta_e=median(black_deltas),
        median_white_delta_e=median(white_deltas),
        median_luma=median(lumas),
        metrics=metrics,
    )
    logger.info("refMinBlackDeltaE: %s", stats.min_black_delta_e)
    logger.info("refMinWhiteDeltaE: %s", stats.min_white_delta_e)
    logger.info("refDeltaE: %s", stats.median_pairwise_delta_e)
    logger.info("refBlackDeltaE: %s", stats.median_black_delta_e)
    logger.info("refWhiteDeltaE: %s", stats.median_white_delta_e)
    logger.info("refMinLuma: %s", stats.min_luma)
    logger.info("refMaxLuma: %s", stats.max_luma)
    logger.info("refLuma: %s", stats.median_luma)
    return stats


# =============================================================================
# Candidate analysis
# =============================================================================

@dataclass(frozen=True)
class AcceptanceBand:
    """
    Open interval (low, high).

    low == high is allowed and accepts nothing, e.g. the luma band of a
    palette with a single tracked base color.
    """
    low: float
    high: float

    def __post_init__(self):
        if self.low > self.high:
            raise ValueError(f"Band low {self.low} is above high {self.high}")

    @classmethod
    def around(cls, value, margin, minimum, maximum):
        """value +/- margin percent of value, clamped to [minimum, maximum]."""
        spread = value * margin / 100
        return cls(max(value - spread, minimum), min(value + spread, maximum))

    def mask(self, values):
        values = np.asarray(values, dtype=np.float64)
        return (values > self.low) & (values < self.high)

    def __contains__(self, value):
        return bool(self.low < value < self.high)


class CandidateAnalyzer:
    """Accepts colors at least as legible and distinct as the most permissive base color."""

    def __init__(self, white_contrast, black_contrast, white_delta_e, black_delta_e, luma_band):
        self.white_contrast = white_contrast
        self.black_contrast = black_contrast
        self.white_delta_e = white_delta_e
        self.black_delta_e = black_delta_e
        self.luma_band = luma_band

    @classmethod
    def from_stats(cls, stats):
        contrast = AcceptanceBand(MIN_CONTRAST, MAX_CONTRAST)
        return cls(
            white_contrast=contrast,
            black_contrast=contrast,
            white_delta_e=AcceptanceBand(stats.min_white_delta_e, MAX_DELTA_E),
            black_delta_e=AcceptanceBand(stats.min_black_delta_e, MAX_DELTA_E),
            luma_band=AcceptanceBand(stats.min_luma, stats.max_luma),
        )

    @property
    def bands(self):
        return (self.white_contrast, self.black_contrast, self.white_delta_e,
                self.black_delta_e, self.luma_band)

    def accepts(self, numbers):
        """Boolean mask of the RGB integers that pass every band."""
        numbers = np.atleast_1d(np.asarray(numbers, dtype=np.int64))
        accepted = np.zeros(numbers.shape, dtype=bool)
        rgb = rgb_number_to_array(numbers).astype(np.float64)

        # Each stage only measures the survivors of the previous one
        alive = np.flatnonzero(self.white_contrast.mask(contrast_ratio(rgb, WHITE_RGB)))
        alive = alive[self.black_contrast.mask(contrast_ratio(rgb[alive], BLACK_RGB))]
        if alive.size == 0:
            return accepted

        candidate_labs = rgb_to_lab(rgb[alive])
        keep = self.white_delta_e.mask(delta_e_cie2000(candidate_labs, WHITE_LAB))
        alive, candidate_labs = alive[keep], candidate_labs[keep]
        keep = self.black_delta_e.mask(delta_e_cie2000(candidate_labs, BLACK_LAB))
        alive = alive[keep]
        alive = alive[self.luma_band.mask(luma(rgb[alive]))]

        accepted[alive] = True
        return accepted

    def analyze(self, rgb_number) -> Optional[Color]:
        """The color for rgb_number when it passes every band, else None."""
        color = Color(rgb_number)
        if not self.accepts([color.rgb_number])[0]:
            return None
        return color


# =============================================================================
# Round 1: space sampling
# =============================================================================

def with_sentinels(base_colors):
    """Base colors bracketed by black and white."""
    colors = list(base_colors)
    if colors:
        if colors[0].hex != BLACK.hex:
            colors.insert(0, BLACK)
        if colors[-1].hex != WHITE.hex:
            colors.append(WHITE)
    return colors


def sample_space(base_colors, analyzer, sample_limit=None, chunk_size=SAMPLE_CHUNK) -> List[Color]:
    """
    Walk neighbouring base colors and expand outwards from each midpoint.

    For offset j the sample above the midpoint is analyzed before the one below.
    Expansion stops when the sample below gets within SAMPLE_STOP_DELTA_E of the
    lower bound. Only the lower bound is checked, so the upper side keeps
    going until the offsets run out.
    """
    colors = with_sentinels(base_colors)
    classified = []

    for start, end in zip(colors, colors[1:]):
        half = (end.rgb_number - start.rgb_number) // 2
        middle = start.rgb_number + half
        start_lab = np.array(start.lab)

        color = analyzer.analyze(middle)
        if color is not None:
            classified.append(color)

        last = half if sample_limit is None else min(half, sample_limit + 1)
        for first in range(1, last, chunk_size):
            offsets = np.arange(first, min(first + chunk_size, last), dtype=np.int64)
            lower = middle - offsets
            too_close = np.flatnonzero(
                delta_e_cie2000(rgb_to_lab(rgb_number_to_array(lower)), start_lab) < SAMPLE_STOP_DELTA_E)
            stop = too_close.size > 0
            if stop:
                offsets = offsets[:too_close[0]]
                lower = lower[:too_close[0]]
            upper = middle + offsets

            samples = np.column_stack([upper, lower]).ravel()
            accepted = np.column_stack([analyzer.accepts(upper), analyzer.accepts(lower)]).ravel()
            classified.extend(Color(int(n)) for n in samples[accepted])
            if stop:
                break

    return classified


# =============================================================================
# Filtering and consolidation
# =============================================================================

def adjust_delta(source, reference) -> Optional[float]:
    """Median over source of the nearest Delta E to reference."""
    if len(source) == 0 or len(reference) == 0:
        return None
    return median(delta_e_matrix(labs(source), labs(reference)).min(axis=1))


def good_delta_mask(candidates, others, threshold, default=None):
    """
    True for each candidate with no Delta E to others below threshold.

    A missing threshold falls back to default; with neither, nothing is rejected.
    """
    if threshold is None:
        threshold = default
    if threshold is None or len(candidates) == 0 or len(others) == 0:
        return np.ones(len(candidates), dtype=bool)
    deltas = delta_e_matrix(labs(candidates), labs(others))
    return ~(deltas < threshold).any(axis=1)


def has_good_delta_all(color, others, threshold, default=None):
    return bool(good_delta_mask([color], others, threshold, default)[0])


def is_sorted(colors):
    return all(a.rgb_number <= b.rgb_number for a, b in zip(colors, colors[1:]))


def group_neighbours(candidates, cutoff):
    """Split sorted candidates wherever neighbouring Delta E exceeds cutoff."""
    if not candidates:
        return []
    candidate_labs = labs(candidates)
    neighbour_deltas = np.atleast_1d(delta_e_cie2000(candidate_labs[:-1], candidate_labs[1:]))

    groups = []
    group = [candidates[0]]
    for next_color, delta in zip(candidates[1:], neighbour_deltas):
        if delta > cutoff:
            groups.append(group)
            group = []
        group.append(next_color)
    groups.append(group)
    return groups


def consolidate(candidates, reference, cutoff) -> List[Color]:
    """
    One representative per group of near-duplicate candidates.

    candidates must be sorted by RGB value. The representative is the member
    with the largest median Delta E to reference; the first one wins ties.
    """
    candidates = list(candidates)
    if not is_sorted(candidates):
        raise ValueError("consolidate() needs candidates sorted by RGB value")

    logger.info("Grouping colors to consolidate...")
    groups = group_neighbours(candidates, cutoff)

    logger.info("Consolidating...")
    reference_labs = labs(list(reference))
    classified = []
    for group in groups:
        if len(group) == 1 or len(reference_labs) == 0:
            classified.append(group[0])
            continue
        deltas = np.median(delta_e_matrix(labs(group), reference_labs), axis=1)
        classified.append(group[int(np.argmax(deltas))])
    logger.info("Consolidation done.")
    return classified


def run_round(source, reference, select, default_delta=None):
    """Derive the round's delta threshold from source vs reference and apply select."""
    logger.info("Adjusting delta...")
    ref_delta = adjust_delta(source, reference)
    logger.info("Adjusted delta: %s", ref_delta)
    if ref_delta is None:
        ref_delta = default_delta
    return select(source, reference, ref_delta)


# =============================================================================
# Rounds 2 and 3
# =============================================================================

def second_round(first_round, base_colors, default_delta=None) -> List[Color]:
    """Round 1 samples far enough from every base color, consolidated."""
    def select(source, reference, ref_delta):
        keep = good_delta_mask(source, reference, ref_delta, default_delta)
        raw = sorted(color for color, good in zip(source, keep) if good)
        return consolidate(raw, reference, SECOND_ROUND_GROUP_CUTOFF)

    return run_round(list(first_round), list(base_colors), select, default_delta)


def third_round(second_round_colors, palette, base_colors, analyzer, default_delta=None) -> List[Color]:
    """Reference palette colors far from the base colors and from round 2."""
    second_round_colors = list(second_round_colors)
    base_colors = list(base_colors)
    base_hexes = {color.hex for color in base_colors}

    logger.info("Adjusting base delta...")
    ref_base_delta = adjust_delta(second_round_colors, base_colors)
    logger.info("Adjusted base delta: %s", ref_base_delta)

    def select(source, reference, ref_delta):
        reference = [color for color in reference if color.hex not in base_hexes]
        if not reference:
            return []
        accepted = analyzer.accepts(rgb_numbers(reference))
        raw = [color for color, ok in zip(reference, accepted) if ok]
        raw = [color for color, ok in zip(raw, good_delta_mask(raw, base_colors, ref_base_delta, default_delta)) if ok]
        raw = [color for color, ok in zip(raw, good_delta_mask(raw, source, ref_delta, default_delta)) if ok]

        intermediate = consolidate(sorted(raw), base_colors, THIRD_ROUND_GROUP_CUTOFF)
        intermediate = sorted(intermediate)
        return consolidate(intermediate, intermediate, THIRD_ROUND_GROUP_CUTOFF)

    return run_round(second_round_colors, list(palette), select, default_delta)


# =============================================================================
# Pipeline
# =============================================================================

class AccentPicker:
    """Runs the three rounds for one base palette, memoizing each round."""

    def __init__(self, base_colors, palette, cache=None, settings=None):
        self.base_colors = list(base_colors)
        self.palette = list(palette)
        self.cache = cache if cache is not None else NullRoundCache()
        self.settings = settings if settings is not None else AccentSettings()
        self.stats = compute_color_stats(self.base_colors)
        self.analyzer = CandidateAnalyzer.from_stats(self.stats)

    def first_round(self):
        return sample_space(self.base_colors, self.analyzer,
                            sample_limit=self.settings.sample_limit,
                            chunk_size=self.settings.sample_chunk)

    def second_round(self, first_round_colors):
        return second_round(first_round_colors, self.base_colors, self.stats.median_pairwise_delta_e)

    def third_round(self, second_round_colors):
        return third_round(second_round_colors, self.palette, self.base_colors, self.analyzer,
                           self.stats.median_pairwise_delta_e)

    def run(self) -> List[Color]:
        key = self.settings.cache_key

        logger.info("Starting first round...")
        classified = memoize(self.cache, key('first'), self.first_round)
        logger.info("First round finished. %d selected.", len(classified))

        logger.info("Starting second round...")
        classified = memoize(self.cache, key('second'), self.second_round, classified)
        logger.info("Second round finished. %d selected.", len(classified))

        logger.info("Starting third round...")
        classified = memoize(self.cache, key('third'), self.third_round, classified)
        logger.info("Third round finished. %d selected.", len(classified))
        return classified
