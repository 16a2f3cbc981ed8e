import math

from bracket_guidance.core.types import Feedback, QualityLevel, Vector3

PERFECT_MAX_MM = 0.3
GOOD_MAX_MM = 0.5
ACCEPTABLE_MAX_MM = 1.0
GUIDANCE_THRESHOLD_MM = 0.2
MAX_SUGGESTIONS = 2

PERFECT_TEXT = 'Perfect! Within tolerance'
ALMOST_THERE_TEXT = 'Almost there - fine-tune the position'

# Positive offset word first, negative second; evaluated in this order.
_AXIS_DIRECTIONS = (
    ('x', 'mesial', 'distal'),
    ('y', 'up', 'down'),
    ('z', 'forward', 'back'),
)


def classify_quality(distance_mm: float) -> QualityLevel:
    if distance_mm <= PERFECT_MAX_MM:
        return QualityLevel.PERFECT
    if distance_mm <= GOOD_MAX_MM:
        return QualityLevel.GOOD
    if distance_mm <= ACCEPTABLE_MAX_MM:
        return QualityLevel.ACCEPTABLE
    return QualityLevel.NEEDS_ADJUSTMENT


def build_guidance_text(offset_mm: Vector3, quality: QualityLevel, guidance_threshold_mm: float = GUIDANCE_THRESHOLD_MM) -> str:
    if quality == QualityLevel.PERFECT:
        return PERFECT_TEXT

    suggestions: list[str] = []
    for axis, positive, negative in _AXIS_DIRECTIONS:
        value = getattr(offset_mm, axis)
        if not math.isfinite(value) or abs(value) <= guidance_threshold_mm:
            continue
        direction = positive if value > 0 else negative
        suggestions.append(f'Move {abs(value):.1f}mm {direction}')

    if not suggestions:
        return ALMOST_THERE_TEXT
    return ', '.join(suggestions[:MAX_SUGGESTIONS])


def compute_feedback(current: Vector3, target: Vector3, guidance_threshold_mm: float = GUIDANCE_THRESHOLD_MM) -> Feedback:
    """Score the placed position against the target; positions are in metres."""
    # Nanometre rounding keeps exact bucket boundaries free of float noise
    # while 0.01 micrometre past a boundary still moves to the next bucket.
    offset_mm = Vector3(
        round((current.x - target.x) * 1000.0, 6),
        round((current.y - target.y) * 1000.0, 6),
        round((current.z - target.z) * 1000.0, 6),
    )
    distance_mm = round(offset_mm.magnitude(), 6)
    quality = classify_quality(distance_mm)
    return Feedback(
        distance_mm=distance_mm,
        quality=quality,
        guidance_text=build_guidance_text(offset_mm, quality, guidance_threshold_mm),
        offset_mm=offset_mm,
    )
