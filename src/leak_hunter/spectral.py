"""Frequency-domain detection of periodic allocation patterns.

The linear trend is removed first so that a leak does not masquerade as
low-frequency energy, then the residual is resampled onto an even grid
(sampling cadence jitters in practice) and transformed with a real FFT.
"""

from dataclasses import dataclass

import numpy as np

from leak_hunter.ringbuffer import SeriesSnapshot
from leak_hunter.trend import elapsed_hours


@dataclass(frozen=True)
class SpectralResult:
    """Dominant periodic component of a detrended series.

    dominant_period_hours is None when no bin clears the noise floor; zero
    is never used to mean "no period".
    """

    dominant_period_hours: float | None
    dominant_magnitude: float
    noise_floor: float

    @property
    def is_periodic(self) -> bool:
        return self.dominant_period_hours is not None


NO_PERIODICITY = SpectralResult(dominant_period_hours=None, dominant_magnitude=0.0, noise_floor=0.0)


def detrend(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Return y minus its least-squares line against x."""
    slope, intercept = np.polyfit(x, y, 1)
    return y - (intercept + slope * x)


def resample_even(x: np.ndarray, y: np.ndarray, count: int) -> tuple[np.ndarray, float]:
    """Linearly interpolate y onto count evenly spaced points over x's span.

    Returns the resampled values and the grid spacing.
    """
    grid = np.linspace(x[0], x[-1], count)
    step = (x[-1] - x[0]) / (count - 1)
    return np.interp(grid, x, y), float(step)


def analyze_spectrum(
    snapshot: SeriesSnapshot,
    min_samples: int = 32,
    noise_floor_multiple: float = 3.0,
) -> SpectralResult:
    """Find the dominant period (hours) of the detrended series.

    Below min_samples, or when the samples span no time, reports no
    periodicity rather than failing.
    """
    n = len(snapshot)
    if n < max(min_samples, 4):
        return NO_PERIODICITY

    x = elapsed_hours(snapshot)
    if x[-1] <= 0.0:
        return NO_PERIODICITY

    y = np.asarray(snapshot.memory_mb, dtype=float)
    residual = detrend(x, y)
    even, step = resample_even(x, residual, n)

    # Scaled so a pure sinusoid's bin reads as its amplitude in MB
    magnitudes = np.abs(np.fft.rfft(even)) * 2.0 / n
    freqs = np.fft.rfftfreq(n, d=step)

    # Bin 0 is the DC component
    spectrum = magnitudes[1:]
    if spectrum.size == 0:
        return NO_PERIODICITY

    peak = int(np.argmax(spectrum))
    peak_magnitude = float(spectrum[peak])
    noise_floor = float(np.median(spectrum))

    if peak_magnitude <= 1e-9 or peak_magnitude <= noise_floor_multiple * noise_floor:
        return SpectralResult(
            dominant_period_hours=None,
            dominant_magnitude=peak_magnitude,
            noise_floor=noise_floor,
        )

    return SpectralResult(
        dominant_period_hours=float(1.0 / freqs[peak + 1]),
        dominant_magnitude=peak_magnitude,
        noise_floor=noise_floor,
    )
