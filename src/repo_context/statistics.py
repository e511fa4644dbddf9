from __future__ import annotations

from typing import TYPE_CHECKING

from repo_context.config import OutlierMethod, OutlierReport, OutlierStats

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from repo_context.config import FileRecord

MEAN_MULTIPLIER = 5
MEDIAN_MULTIPLIER = 10
IQR_FENCE = 1.5


def median_of(sorted_sizes: Sequence[int]) -> float:
    n = len(sorted_sizes)
    mid = n // 2
    if n % 2:
        return float(sorted_sizes[mid])
    return (sorted_sizes[mid - 1] + sorted_sizes[mid]) / 2


def detect_outliers(files: Iterable[FileRecord], method: OutlierMethod = OutlierMethod.MEDIAN) -> OutlierReport:
    """Flag files whose size is far above the rest of the listing.

    Thresholds: ``mean * 5`` (MEAN), ``median * 10`` (MEDIAN) or
    ``q3 + 1.5 * iqr`` (IQR, quartiles read at ``floor(n * 0.25)`` and
    ``floor(n * 0.75)`` of the sorted sizes). Root-level files are never
    flagged: large root manifests are left to the static exclusion rules.

    Args:
        files (Iterable[FileRecord]): the flat listing
        method (OutlierMethod): the threshold strategy

    Returns:
        OutlierReport: threshold, statistics and the flagged paths
    """
    sized = [rec for rec in files if rec.is_file and rec.size is not None]
    if not sized:
        return OutlierReport(method=method)

    sizes = sorted(rec.size for rec in sized)
    n = len(sizes)
    mean = sum(sizes) / n
    median = median_of(sizes)

    stats = OutlierStats(mean=mean, median=median)
    if method == OutlierMethod.MEAN:
        threshold = mean * MEAN_MULTIPLIER
    elif method == OutlierMethod.MEDIAN:
        threshold = median * MEDIAN_MULTIPLIER
    else:
        q1 = float(sizes[int(n * 0.25)])
        q3 = float(sizes[int(n * 0.75)])
        iqr = q3 - q1
        threshold = q3 + IQR_FENCE * iqr
        stats = OutlierStats(mean=mean, median=median, q1=q1, q3=q3, iqr=iqr)

    flagged = frozenset(rec.path for rec in sized if rec.size > threshold and not rec.is_root_level)
    return OutlierReport(threshold=threshold, method=method, stats=stats, flagged=flagged)
