"""
Tunables for the accent picker and the settings a run is built from.

The command line only selects the base color file; everything else can be
overridden through ACCENT_* environment variables.
"""

from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Optional


# =============================================================================
# Constants
# =============================================================================

# WCAG contrast a candidate must keep against both white and black
MIN_CONTRAST = 3
MAX_CONTRAST = 21

MAX_DELTA_E = 100
MIN_LUMA = 0
MAX_LUMA = 255

# Round 1 stops expanding a bracket once it gets this close to its lower bound
SAMPLE_STOP_DELTA_E = 2
SAMPLE_CHUNK = 65_536

# Delta E cutoffs used to group neighbours before consolidation
SECOND_ROUND_GROUP_CUTOFF = 49
THIRD_ROUND_GROUP_CUTOFF = 5

DEFAULT_BASE_FILE = 'base-colors'
REFERENCE_PALETTE_FILE = 'pantone-colors'

LOG_FORMAT = '[%(asctime)s] %(message)s'
LOG_DATE_FORMAT = '%H:%M:%S'


def _env_flag(value):
    return value is not None and value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class AccentSettings:
    """Everything a single run needs besides the colors themselves."""
    base_file: str = DEFAULT_BASE_FILE
    palette_file: str = REFERENCE_PALETTE_FILE
    data_dir: Path = Path('.')
    cache_dir: Path = Path('.')
    use_cache: bool = True
    sample_limit: Optional[int] = None
    sample_chunk: int = SAMPLE_CHUNK
    log_level: int = logging.INFO

    @property
    def cache_prefix(self):
        # Only the file name: a base file in a subdirectory still caches flat
        return Path(self.base_file).name

    def cache_key(self, round_label):
        return f"{self.cache_prefix}-{round_label}"

    @classmethod
    def from_env(cls, base_file=DEFAULT_BASE_FILE, environ=None):
        """Build settings for base_file, applying ACCENT_* overrides."""
        env = os.environ if environ is None else environ

        data_dir = Path(env.get('ACCENT_DATA_DIR', '.'))
        cache_dir = Path(env.get('ACCENT_CACHE_DIR', str(data_dir)))

        sample_limit = env.get('ACCENT_SAMPLE_LIMIT')
        if sample_limit is not None and sample_limit.strip():
            try:
                sample_limit = int(sample_limit)
            except ValueError:
                raise ValueError(f"ACCENT_SAMPLE_LIMIT must be an integer, got {sample_limit!r}")
            if sample_limit < 0:
                raise ValueError("ACCENT_SAMPLE_LIMIT must not be negative")
        else:
            sample_limit = None

        level_name = env.get('ACCENT_LOG_LEVEL', 'INFO').strip().upper()
        log_level = logging.getLevelName(level_name)
        if not isinstance(log_level, int):
            raise ValueError(f"Unknown ACCENT_LOG_LEVEL: {level_name!r}")

        return cls(
            base_file=base_file,
            data_dir=data_dir,
            cache_dir=cache_dir,
            use_cache=not _env_flag(env.get('ACCENT_NO_CACHE')),
            sample_limit=sample_limit,
            log_level=log_level,
        )
