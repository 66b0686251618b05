"""
Per-image quality analysis.

Scores an image from its decoded statistics: resolution, aspect ratio,
brightness, contrast and blur. Analysis is a pure function of the input so a
batch of images can be analysed in parallel without shared state.
"""

import io
from typing import List, Optional, Sequence
import numpy as np
from PIL import Image, UnidentifiedImageError
from app.core.config import EngineConfig
from app.core.exceptions import AnalysisError
from app.core.logging_config import logger
from app.schemas.quality import IssueType, QualityCheckResult, QualityIssue, Severity


LAPLACIAN_KERNEL = np.array(
    [[-1, -1, -1],
     [-1, 8, -1],
     [-1, -1, -1]],
    dtype=np.float64,
)

# Penalty per issue type, subtracted from a starting score of 100
RESOLUTION_MISSING_PENALTY = 30
RESOLUTION_LOW_PENALTY = 20
ASPECT_RATIO_PENALTY = 10
BRIGHTNESS_PENALTY = 15
CONTRAST_PENALTY = 15
BLUR_PENALTY = 25


class ImageStatistics:
    """Decoded statistics for one image."""

    def __init__(
        self,
        width: Optional[int],
        height: Optional[int],
        channel_means: Sequence[float],
        channel_stdevs: Sequence[float],
        grayscale: Optional[np.ndarray],
    ):
        self.width = width
        self.height = height
        self.channel_means = list(channel_means)
        self.channel_stdevs = list(channel_stdevs)
        self.grayscale = grayscale


def decode_image(data: bytes) -> ImageStatistics:
    """
    Decode raw image bytes into statistics with Pillow and numpy.

    Raises:
        AnalysisError: If the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            rgb = np.asarray(image.convert("RGB"), dtype=np.float64)
            gray = np.asarray(image.convert("L"), dtype=np.float64)
            width, height = image.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise AnalysisError(f"Unreadable image: {e}")

    pixels = rgb.reshape(-1, 3)
    return ImageStatistics(
        width=width,
        height=height,
        channel_means=pixels.mean(axis=0).tolist(),
        channel_stdevs=pixels.std(axis=0).tolist(),
        grayscale=gray,
    )


def laplacian_blur_score(grayscale: np.ndarray) -> float:
    """
    Mean squared Laplacian response over interior pixels.

    Normalised by the number of interior pixels so the value does not grow
    with resolution. Low values mean few edges, i.e. a blurry image.
    """
    gray = np.asarray(grayscale, dtype=np.float64)
    if gray.ndim != 2 or gray.shape[0] < 3 or gray.shape[1] < 3:
        raise AnalysisError(f"Grayscale buffer too small for blur detection: {gray.shape}")

    height, width = gray.shape
    response = np.zeros((height - 2, width - 2), dtype=np.float64)
    for dy in range(3):
        for dx in range(3):
            weight = LAPLACIAN_KERNEL[dy, dx]
            response += weight * gray[dy:dy + height - 2, dx:dx + width - 2]

    return float(np.mean(response ** 2))


def is_high_quality(score: float, config: EngineConfig) -> bool:
    return score >= config.high_quality_image_score


def analyze_image(stats: ImageStatistics, config: EngineConfig) -> QualityCheckResult:
    """
    Score one image. Never raises: unreadable statistics degrade to a
    zero-score failing result.
    """
    try:
        return _analyze(stats, config)
    except AnalysisError as e:
        logger.warning(f"Image analysis degraded to failure: {e.message}")
        return analysis_failure()


def analyze_image_bytes(data: bytes, config: EngineConfig) -> QualityCheckResult:
    try:
        stats = decode_image(data)
    except AnalysisError as e:
        logger.warning(f"Image analysis degraded to failure: {e.message}")
        return analysis_failure()
    return analyze_image(stats, config)


def analysis_failure() -> QualityCheckResult:
    return QualityCheckResult(
        passed=False,
        score=0,
        issues=[
            QualityIssue(
                type=IssueType.RESOLUTION,
                severity=Severity.HIGH,
                description="Failed to analyze image quality",
                suggested_fix="Upload a valid image file",
            )
        ],
        recommendations=["Upload a valid image file in a supported format"],
    )


def _analyze(stats: ImageStatistics, config: EngineConfig) -> QualityCheckResult:
    if stats.grayscale is None:
        raise AnalysisError("No grayscale buffer available")

    issues: List[QualityIssue] = []
    score = 100

    # Resolution
    if not stats.width or not stats.height:
        issues.append(QualityIssue(
            type=IssueType.RESOLUTION,
            severity=Severity.HIGH,
            description="Unable to determine image dimensions",
            suggested_fix="Upload a valid image file",
        ))
        score -= RESOLUTION_MISSING_PENALTY
    elif stats.width < config.min_image_width or stats.height < config.min_image_height:
        issues.append(QualityIssue(
            type=IssueType.RESOLUTION,
            severity=Severity.MEDIUM,
            description=(
                f"Image resolution {stats.width}x{stats.height} is below minimum "
                f"{config.min_image_width}x{config.min_image_height}"
            ),
            suggested_fix="Upload a higher resolution image",
        ))
        score -= RESOLUTION_LOW_PENALTY

    # Aspect ratio
    if stats.width and stats.height:
        aspect_ratio = stats.width / stats.height
        acceptable = any(
            abs(aspect_ratio - ratio) < config.aspect_ratio_tolerance
            for ratio in config.acceptable_aspect_ratios
        )
        if not acceptable:
            issues.append(QualityIssue(
                type=IssueType.ASPECT_RATIO,
                severity=Severity.LOW,
                description=f"Aspect ratio {aspect_ratio:.2f} may not display optimally",
                suggested_fix="Consider cropping to standard aspect ratios like 16:9 or 4:3",
            ))
            score -= ASPECT_RATIO_PENALTY

    # Brightness and contrast from channel statistics
    if stats.channel_means:
        brightness = sum(stats.channel_means) / len(stats.channel_means)
        if brightness < config.min_brightness:
            issues.append(QualityIssue(
                type=IssueType.BRIGHTNESS,
                severity=Severity.MEDIUM,
                description="Image appears too dark",
                suggested_fix="Increase brightness or improve lighting when taking the photo",
            ))
            score -= BRIGHTNESS_PENALTY
        elif brightness > config.max_brightness:
            issues.append(QualityIssue(
                type=IssueType.BRIGHTNESS,
                severity=Severity.MEDIUM,
                description="Image appears overexposed",
                suggested_fix="Reduce brightness or avoid harsh lighting",
            ))
            score -= BRIGHTNESS_PENALTY

    if stats.channel_stdevs:
        contrast = sum(stats.channel_stdevs) / len(stats.channel_stdevs)
        if contrast < config.min_contrast:
            issues.append(QualityIssue(
                type=IssueType.CONTRAST,
                severity=Severity.MEDIUM,
                description="Image has low contrast",
                suggested_fix="Increase contrast or ensure better lighting conditions",
            ))
            score -= CONTRAST_PENALTY

    # Blur
    blur_score = laplacian_blur_score(stats.grayscale)
    if blur_score < config.blur_threshold:
        issues.append(QualityIssue(
            type=IssueType.BLUR,
            severity=Severity.HIGH,
            description="Image appears blurry or out of focus",
            suggested_fix="Ensure camera is focused and stable when taking the photo",
        ))
        score -= BLUR_PENALTY

    if not issues:
        recommendations = ["Image meets all quality standards"]
    else:
        recommendations = [issue.suggested_fix for issue in issues]

    return QualityCheckResult(
        passed=not any(issue.severity == Severity.HIGH for issue in issues),
        score=max(0, score),
        issues=issues,
        recommendations=recommendations,
    )
