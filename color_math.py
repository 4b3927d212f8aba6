"""
Color math primitives: sRGB to LAB, CIEDE2000, WCAG contrast and luma.

Every function broadcasts over numpy arrays so whole batches of candidate
colors can be measured at once; scalars go through the same code path.
"""

from dataclasses import dataclass
from functools import cached_property
import re

import numpy as np


MAX_RGB_NUMBER = 0xFFFFFF
HEX_PATTERN = re.compile(r'^#?([0-9a-fA-F]{6})$')
LOOKUP_URL = 'http://rgb.to/'


# =============================================================================
# RGB numbers and hex codes
# =============================================================================

def rgb_number_to_hex(rgb_number):
    """Format a 24-bit RGB integer as a '#rrggbb' hex code."""
    return f"#{int(rgb_number):06x}"


def hex_to_rgb_number(hex_code):
    """Parse '#rrggbb' (or 'rrggbb') into a 24-bit RGB integer."""
    if not isinstance(hex_code, str):
        raise ValueError(f"Hex color must be a string, got {hex_code!r}")
    match = HEX_PATTERN.match(hex_code.strip())
    if match is None:
        raise ValueError(f"Invalid hex color: {hex_code!r}")
    return int(match.group(1), 16)


def rgb_number_to_array(rgb_numbers):
    """Split RGB integers into an (..., 3) array of 0-255 channels."""
    numbers = np.asarray(rgb_numbers, dtype=np.int64)
    return np.stack([(numbers >> 16) & 0xFF, (numbers >> 8) & 0xFF, numbers & 0xFF], axis=-1)


# =============================================================================
# Color conversion
# =============================================================================

def rgb_to_xyz(rgb):
    """Convert RGB (0-255) to XYZ color space."""
    rgb_normalized = np.asarray(rgb, dtype=np.float64) / 255.0

    rgb_linear = np.where(rgb_normalized <= 0.04045,
                          rgb_normalized / 12.92,
                          ((rgb_normalized + 0.055) / 1.055) ** 2.4)
    r, g, b = rgb_linear[..., 0], rgb_linear[..., 1], rgb_linear[..., 2]

    # RGB to XYZ conversion matrix (sRGB D65)
    x = r * 0.4124564 + g * 0.3575761 + b * 0.1804375
    y = r * 0.2126729 + g * 0.7151522 + b * 0.0721750
    z = r * 0.0193339 + g * 0.1191920 + b * 0.9503041

    return np.stack([x * 100, y * 100, z * 100], axis=-1)


def xyz_to_lab(xyz):
    """Convert XYZ to LAB color space."""
    # D65 reference white
    ref_x, ref_y, ref_z = 95.047, 100.000, 108.883
    xyz = np.asarray(xyz, dtype=np.float64)

    delta = 6 / 29

    def f(t):
        return np.where(t > delta ** 3, np.cbrt(t), t / (3 * delta ** 2) + 4 / 29)

    fx = f(xyz[..., 0] / ref_x)
    fy = f(xyz[..., 1] / ref_y)
    fz = f(xyz[..., 2] / ref_z)

    L = 116 * fy - 16
    a = 500 * (fx - fy)
    b = 200 * (fy - fz)

    return np.stack([L, a, b], axis=-1)


def rgb_to_lab(rgb):
    """Convert RGB (0-255) to LAB color space."""
    return xyz_to_lab(rgb_to_xyz(rgb))


# =============================================================================
# Distances
# =============================================================================

def delta_e_cie2000(lab1, lab2):
    """Calculate CIEDE2000 color difference (broadcasts over leading axes)."""
    lab1 = np.asarray(lab1, dtype=np.float64)
    lab2 = np.asarray(lab2, dtype=np.float64)
    L1, a1, b1 = lab1[..., 0], lab1[..., 1], lab1[..., 2]
    L2, a2, b2 = lab2[..., 0], lab2[..., 1], lab2[..., 2]

    # Calculate C and h
    C1 = np.sqrt(a1**2 + b1**2)
    C2 = np.sqrt(a2**2 + b2**2)

    C_bar = (C1 + C2) / 2

    G = 0.5 * (1 - np.sqrt(C_bar**7 / (C_bar**7 + 25**7)))

    a1_prime = a1 * (1 + G)
    a2_prime = a2 * (1 + G)

    C1_prime = np.sqrt(a1_prime**2 + b1**2)
    C2_prime = np.sqrt(a2_prime**2 + b2**2)

    h1_prime = np.arctan2(b1, a1_prime) % (2 * np.pi)
    h2_prime = np.arctan2(b2, a2_prime) % (2 * np.pi)

    # Calculate differences
    delta_L_prime = L2 - L1
    delta_C_prime = C2_prime - C1_prime

    achromatic = (C1_prime * C2_prime) == 0
    delta_h = h2_prime - h1_prime
    delta_h_prime = np.where(np.abs(delta_h) <= np.pi, delta_h,
                             np.where(delta_h > np.pi, delta_h - 2 * np.pi, delta_h + 2 * np.pi))
    delta_h_prime = np.where(achromatic, 0.0, delta_h_prime)

    delta_H_prime = 2 * np.sqrt(C1_prime * C2_prime) * np.sin(delta_h_prime / 2)

    # Calculate mean values
    L_bar_prime = (L1 + L2) / 2
    C_bar_prime = (C1_prime + C2_prime) / 2

    h_sum = h1_prime + h2_prime
    h_diff = np.abs(h1_prime - h2_prime)
    h_bar_prime = np.where(h_diff <= np.pi, h_sum / 2,
                           np.where(h_sum < 2 * np.pi, (h_sum + 2 * np.pi) / 2, (h_sum - 2 * np.pi) / 2))
    h_bar_prime = np.where(achromatic, h_sum, h_bar_prime)

    T = (1 - 0.17 * np.cos(h_bar_prime - np.pi/6) +
         0.24 * np.cos(2 * h_bar_prime) +
         0.32 * np.cos(3 * h_bar_prime + np.pi/30) -
         0.20 * np.cos(4 * h_bar_prime - 63*np.pi/180))

    delta_theta = (30 * np.pi / 180) * np.exp(-((h_bar_prime - 275*np.pi/180) / (25*np.pi/180))**2)

    R_C = 2 * np.sqrt(C_bar_prime**7 / (C_bar_prime**7 + 25**7))

    S_L = 1 + (0.015 * (L_bar_prime - 50)**2) / np.sqrt(20 + (L_bar_prime - 50)**2)
    S_C = 1 + 0.045 * C_bar_prime
    S_H = 1 + 0.015 * C_bar_prime * T

    R_T = -np.sin(2 * delta_theta) * R_C

    delta_E_squared = ((delta_L_prime / S_L)**2 +
                       (delta_C_prime / S_C)**2 +
                       (delta_H_prime / S_H)**2 +
                       R_T * (delta_C_prime / S_C) * (delta_H_prime / S_H))

    # Rounding noise can dip a few ulps below zero for near-identical colors
    delta_E = np.sqrt(np.maximum(delta_E_squared, 0.0))

    if delta_E.ndim == 0:
        return float(delta_E)
    return delta_E


def delta_e_matrix(labs_a, labs_b):
    """CIEDE2000 distance from every LAB in labs_a to every LAB in labs_b."""
    labs_a = np.asarray(labs_a, dtype=np.float64).reshape(-1, 3)
    labs_b = np.asarray(labs_b, dtype=np.float64).reshape(-1, 3)
    if labs_a.shape[0] == 0 or labs_b.shape[0] == 0:
        return np.zeros((labs_a.shape[0], labs_b.shape[0]))
    return delta_e_cie2000(labs_a[:, np.newaxis, :], labs_b[np.newaxis, :, :])


# =============================================================================
# Brightness and contrast
# =============================================================================

def calculate_luminance(rgb):
    """Calculate relative luminance for contrast ratio."""
    rgb_normalized = np.asarray(rgb, dtype=np.float64) / 255.0

    rgb_linear = np.where(rgb_normalized <= 0.03928,
                          rgb_normalized / 12.92,
                          ((rgb_normalized + 0.055) / 1.055) ** 2.4)
    r, g, b = rgb_linear[..., 0], rgb_linear[..., 1], rgb_linear[..., 2]
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(rgb1, rgb2):
    """Calculate contrast ratio between two RGB colors."""
    l1 = calculate_luminance(rgb1)
    l2 = calculate_luminance(rgb2)
    lighter = np.maximum(l1, l2)
    darker = np.minimum(l1, l2)
    ratio = (lighter + 0.05) / (darker + 0.05)
    if np.ndim(ratio) == 0:
        return float(ratio)
    return ratio


def luma(rgb):
    """Perceived brightness (0-255) with Rec. 709 weights on gamma-encoded channels."""
    rgb = np.asarray(rgb, dtype=np.float64)
    value = np.clip(0.2126 * rgb[..., 0] + 0.7152 * rgb[..., 1] + 0.0722 * rgb[..., 2], 0, 255)
    if np.ndim(value) == 0:
        return float(value)
    return value


# =============================================================================
# Color value
# =============================================================================

@dataclass(frozen=True, order=True)
class Color:
    """An immutable 24-bit RGB color with derived hex, LAB and luma views."""
    rgb_number: int

    def __post_init__(self):
        value = self.rgb_number
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise ValueError(f"RGB number must be an integer, got {value!r}")
        if not 0 <= int(value) <= MAX_RGB_NUMBER:
            raise ValueError(f"RGB number out of range: {value!r}")
        object.__setattr__(self, 'rgb_number', int(value))

    @classmethod
    def from_hex(cls, hex_code):
        return cls(hex_to_rgb_number(hex_code))

    @property
    def hex(self):
        return rgb_number_to_hex(self.rgb_number)

    @property
    def rgb(self):
        n = self.rgb_number
        return ((n >> 16) & 0xFF, (n >> 8) & 0xFF, n & 0xFF)

    @cached_property
    def lab(self):
        L, a, b = rgb_to_lab(np.array(self.rgb))
        return (float(L), float(a), float(b))

    @property
    def luma(self):
        return luma(np.array(self.rgb))

    @property
    def url(self):
        return LOOKUP_URL + self.hex.lstrip('#')

    def __str__(self):
        return self.hex


BLACK = Color(0x000000)
WHITE = Color(0xFFFFFF)


def rgb_numbers(colors):
    """RGB integers of a color sequence as an int64 array."""
    return np.array([color.rgb_number for color in colors], dtype=np.int64)


def labs(colors):
    """LAB coordinates of a color sequence as an (n, 3) array."""
    if len(colors) == 0:
        return np.empty((0, 3))
    return rgb_to_lab(rgb_number_to_array(rgb_numbers(colors)))
