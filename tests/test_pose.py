import math

import pytest

from bracket_guidance.core.errors import PoseEstimationError
from bracket_guidance.core.pose import PoseEstimator, surface_normal
from bracket_guidance.core.tooth_labels import FDI_LABELS
from bracket_guidance.core.types import BoundingBox, CameraIntrinsics, LANDMARK_NAMES, RawDetection

INTRINSICS = CameraIntrinsics(fx=500.0, fy=500.0, cx=320.0, cy=240.0)


def make_detection(center_x, center_y, width, height=60.0, tooth_id='11', confidence=0.9):
    box = BoundingBox(center_x - width / 2, center_y - height / 2, width, height)
    return RawDetection(class_index=0, confidence=confidence, box=box, tooth_id=tooth_id)


def test_depth_comes_from_apparent_width():
    tooth = PoseEstimator(INTRINSICS).estimate(make_detection(320.0, 240.0, 50.0))

    position = tooth.pose.position
    assert position.z == pytest.approx(0.08)
    assert position.x == pytest.approx(0.0)
    assert position.y == pytest.approx(0.0)


def test_off_center_box_is_projected_through_the_principal_point():
    tooth = PoseEstimator(INTRINSICS).estimate(make_detection(420.0, 190.0, 50.0))

    position = tooth.pose.position
    assert position.x == pytest.approx(0.016)
    assert position.y == pytest.approx(-0.008)
    assert position.z == pytest.approx(0.08)


def test_larger_box_is_closer():
    estimator = PoseEstimator(INTRINSICS)

    near = estimator.estimate(make_detection(320.0, 240.0, 100.0))
    far = estimator.estimate(make_detection(320.0, 240.0, 25.0))

    assert near.pose.position.z < far.pose.position.z


def test_zero_width_box_is_rejected():
    with pytest.raises(PoseEstimationError):
        PoseEstimator(INTRINSICS).estimate(make_detection(320.0, 240.0, 0.0))


@pytest.mark.parametrize(
    'intrinsics',
    [None, CameraIntrinsics(0.0, 500.0, 320.0, 240.0), CameraIntrinsics(500.0, 0.0, 320.0, 240.0), CameraIntrinsics(math.nan, 500.0, 320.0, 240.0)],
)
def test_unset_or_zero_intrinsics_are_rejected(intrinsics):
    with pytest.raises(PoseEstimationError):
        PoseEstimator(intrinsics).estimate(make_detection(320.0, 240.0, 50.0))


def test_estimate_all_drops_only_the_singular_detection():
    detections = [
        make_detection(200.0, 240.0, 50.0, tooth_id='12'),
        make_detection(320.0, 240.0, 0.0, tooth_id='11'),
        make_detection(440.0, 240.0, 50.0, tooth_id='21'),
    ]

    teeth = PoseEstimator(INTRINSICS).estimate_all(detections)

    assert [tooth.tooth_id for tooth in teeth] == ['12', '21']
    for tooth in teeth:
        assert tooth.pose.position.is_finite()
        assert tooth.optimal_attachment_position.is_finite()


def test_intrinsics_can_arrive_after_construction():
    estimator = PoseEstimator()
    assert estimator.estimate_all([make_detection(320.0, 240.0, 50.0)]) == []

    estimator.set_intrinsics(INTRINSICS)

    assert len(estimator.estimate_all([make_detection(320.0, 240.0, 50.0)])) == 1


def test_surface_normals_are_unit_length_and_face_the_arch():
    for tooth_id in FDI_LABELS:
        normal = surface_normal(tooth_id)
        assert normal.magnitude() == pytest.approx(1.0)
        if tooth_id[0] in '12':
            assert normal.y < 0
        else:
            assert normal.y > 0
        assert normal.z > 0


def test_lateral_component_grows_away_from_the_midline():
    assert surface_normal('11').x > 0
    assert surface_normal('21').x < 0
    assert surface_normal('14').x == pytest.approx(0.0)
    assert abs(surface_normal('18').x) > abs(surface_normal('15').x)


def test_unparseable_label_falls_back_to_central_incisor():
    assert surface_normal('??') == surface_normal('11')


def test_landmarks_follow_the_fixed_order():
    tooth = PoseEstimator(INTRINSICS).estimate(make_detection(320.0, 240.0, 50.0))

    assert len(tooth.landmarks) == len(LANDMARK_NAMES) == 5
    center, incisal, gingival, mesial, distal = tooth.landmarks
    assert center == tooth.pose.position
    assert incisal.y - center.y == pytest.approx(0.002)
    assert center.y - gingival.y == pytest.approx(0.002)
    assert center.x - mesial.x == pytest.approx(0.002)
    assert distal.x - center.x == pytest.approx(0.002)


def test_attachment_point_sits_one_millimetre_along_the_normal():
    tooth = PoseEstimator(INTRINSICS).estimate(make_detection(320.0, 240.0, 50.0, tooth_id='12'))

    offset = tooth.optimal_attachment_position - tooth.pose.position
    assert offset.magnitude() == pytest.approx(0.001)
    assert offset.x == pytest.approx(tooth.surface_normal.x * 0.001)
    assert offset.y == pytest.approx(tooth.surface_normal.y * 0.001)
    assert offset.z == pytest.approx(tooth.surface_normal.z * 0.001)


@pytest.mark.parametrize('tooth_id', ['55', '7', '90'])
def test_integer_label_outside_the_arches_has_no_lateral_component(tooth_id):
    normal = surface_normal(tooth_id)

    assert normal.x == 0.0
    assert normal.y > 0
    assert normal.magnitude() == pytest.approx(1.0)
    assert normal != surface_normal('11')
