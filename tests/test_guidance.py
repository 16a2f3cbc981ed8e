import pytest

from bracket_guidance.core.guidance import ALMOST_THERE_TEXT, PERFECT_TEXT, build_guidance_text, classify_quality, compute_feedback
from bracket_guidance.core.types import QualityLevel, Vector3

ORIGIN = Vector3(0.0, 0.0, 0.0)


@pytest.mark.parametrize(
    ('distance_mm', 'expected'),
    [
        (0.0, QualityLevel.PERFECT),
        (0.3, QualityLevel.PERFECT),
        (0.30001, QualityLevel.GOOD),
        (0.5, QualityLevel.GOOD),
        (0.50001, QualityLevel.ACCEPTABLE),
        (1.0, QualityLevel.ACCEPTABLE),
        (1.00001, QualityLevel.NEEDS_ADJUSTMENT),
        (25.0, QualityLevel.NEEDS_ADJUSTMENT),
    ],
)
def test_quality_buckets_have_closed_upper_bounds(distance_mm, expected):
    assert classify_quality(distance_mm) == expected


def test_small_offset_is_perfect():
    feedback = compute_feedback(Vector3(0.0002, 0.0, 0.0), ORIGIN)

    assert feedback.distance_mm == pytest.approx(0.2)
    assert feedback.quality == QualityLevel.PERFECT
    assert feedback.quality != QualityLevel.GOOD
    assert feedback.guidance_text == PERFECT_TEXT


def test_exact_boundary_offsets_in_metres():
    assert compute_feedback(Vector3(0.0003, 0.0, 0.0), ORIGIN).quality == QualityLevel.PERFECT
    assert compute_feedback(Vector3(0.00030001, 0.0, 0.0), ORIGIN).quality == QualityLevel.GOOD


def test_offsets_are_reported_per_axis_in_millimetres():
    feedback = compute_feedback(Vector3(0.0108, 0.0195, 0.0304), Vector3(0.01, 0.02, 0.03))

    assert feedback.offset_mm.x == pytest.approx(0.8)
    assert feedback.offset_mm.y == pytest.approx(-0.5)
    assert feedback.offset_mm.z == pytest.approx(0.4)
    assert feedback.distance_mm == pytest.approx((0.8 ** 2 + 0.5 ** 2 + 0.4 ** 2) ** 0.5)
    assert feedback.quality == QualityLevel.NEEDS_ADJUSTMENT
    assert feedback.guidance_text == 'Move 0.8mm mesial, Move 0.5mm down'


def test_suggestions_keep_axis_order_not_magnitude_order():
    text = build_guidance_text(Vector3(0.3, 0.0, 0.9), QualityLevel.ACCEPTABLE)

    assert text == 'Move 0.3mm mesial, Move 0.9mm forward'


def test_only_the_first_two_axes_are_suggested():
    text = build_guidance_text(Vector3(0.4, 0.5, 2.0), QualityLevel.NEEDS_ADJUSTMENT)

    assert text == 'Move 0.4mm mesial, Move 0.5mm up'


def test_negative_offsets_use_the_opposite_direction_words():
    assert build_guidance_text(Vector3(-0.6, 0.0, 0.0), QualityLevel.ACCEPTABLE) == 'Move 0.6mm distal'
    assert build_guidance_text(Vector3(0.0, 0.0, -1.24), QualityLevel.NEEDS_ADJUSTMENT) == 'Move 1.2mm back'


def test_no_axis_over_threshold_falls_back_to_generic_message():
    feedback = compute_feedback(Vector3(0.0002, 0.0002, 0.0002), ORIGIN)

    assert feedback.quality == QualityLevel.GOOD
    assert feedback.guidance_text == ALMOST_THERE_TEXT


def test_guidance_text_is_always_a_string():
    assert isinstance(build_guidance_text(Vector3(float('nan'), 0.0, 0.0), QualityLevel.NEEDS_ADJUSTMENT), str)


def test_sub_nanometre_noise_does_not_cross_a_bucket_edge():
    noisy = compute_feedback(Vector3(0.0003000004, 0.0, 0.0), ORIGIN)
    just_over = compute_feedback(Vector3(0.00030001, 0.0, 0.0), ORIGIN)

    assert noisy.distance_mm == 0.3
    assert noisy.quality == QualityLevel.PERFECT
    assert just_over.distance_mm == pytest.approx(0.30001)
    assert just_over.quality == QualityLevel.GOOD
