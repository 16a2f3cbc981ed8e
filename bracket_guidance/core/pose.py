"""Monocular pose approximation for detected teeth.

Depth comes from the apparent box width and an assumed physical tooth width,
so it is only as good as that assumption. The surface normal is inferred from
the tooth's arch position, not from image content.
"""
import logging
import math

from bracket_guidance.core.errors import PoseEstimationError
from bracket_guidance.core.tooth_labels import parse_arch_position
from bracket_guidance.core.types import CameraIntrinsics, DetectedTooth, Pose, RawDetection, Vector3

logger = logging.getLogger('bracket_guidance.pose')

MM_PER_M = 1000.0
NORMAL_LATERAL_STEP = 0.3
NORMAL_DEPTH_COMPONENT = 0.2


def surface_normal(tooth_id: str) -> Vector3:
    quadrant, index = parse_arch_position(tooth_id)
    # Upper teeth face down the Y axis, lower teeth face up.
    normal_y = -1.0 if quadrant in (1, 2) else 1.0
    if quadrant in (1, 4):
        normal_x = -NORMAL_LATERAL_STEP * (index - 4)
    elif quadrant in (2, 3):
        normal_x = NORMAL_LATERAL_STEP * (index - 4)
    else:
        normal_x = 0.0
    return Vector3(normal_x, normal_y, NORMAL_DEPTH_COMPONENT).normalized()


def tooth_landmarks(center: Vector3, offset_m: float) -> tuple[Vector3, ...]:
    """Center, incisal, gingival, mesial, distal."""
    return (
        center,
        center + Vector3(0.0, offset_m, 0.0),
        center - Vector3(0.0, offset_m, 0.0),
        center - Vector3(offset_m, 0.0, 0.0),
        center + Vector3(offset_m, 0.0, 0.0),
    )


class PoseEstimator:
    def __init__(
        self,
        intrinsics: CameraIntrinsics | None = None,
        assumed_tooth_width_mm: float = 8.0,
        attachment_offset_mm: float = 1.0,
        landmark_offset_mm: float = 2.0,
    ) -> None:
        self._intrinsics = intrinsics
        self.assumed_tooth_width_mm = float(assumed_tooth_width_mm)
        self.attachment_offset_mm = float(attachment_offset_mm)
        self.landmark_offset_mm = float(landmark_offset_mm)

    @property
    def intrinsics(self) -> CameraIntrinsics | None:
        return self._intrinsics

    def set_intrinsics(self, intrinsics: CameraIntrinsics | None) -> None:
        self._intrinsics = intrinsics
        logger.info('Camera intrinsics updated intrinsics=%s', intrinsics)

    def estimate(self, detection: RawDetection, intrinsics: CameraIntrinsics | None = None) -> DetectedTooth:
        intrinsics = intrinsics if intrinsics is not None else self._intrinsics
        if intrinsics is None or not intrinsics.is_valid():
            raise PoseEstimationError('Camera intrinsics are unset or invalid.', details={'tooth_id': detection.tooth_id})
        box = detection.box
        if not math.isfinite(box.width) or box.width <= 0:
            raise PoseEstimationError('Bounding box width must be positive.', details={'tooth_id': detection.tooth_id, 'width': box.width})

        depth_mm = (self.assumed_tooth_width_mm * intrinsics.fx) / box.width
        world_x_mm = (box.center_x - intrinsics.cx) * depth_mm / intrinsics.fx
        world_y_mm = (box.center_y - intrinsics.cy) * depth_mm / intrinsics.fy
        center = Vector3(world_x_mm, world_y_mm, depth_mm) * (1.0 / MM_PER_M)
        if not center.is_finite():
            raise PoseEstimationError('Estimated position is not finite.', details={'tooth_id': detection.tooth_id})

        normal = surface_normal(detection.tooth_id)
        return DetectedTooth(
            tooth_id=detection.tooth_id,
            confidence=detection.confidence,
            bounding_box=box,
            pose=Pose(position=center),
            surface_normal=normal,
            landmarks=tooth_landmarks(center, self.landmark_offset_mm / MM_PER_M),
            optimal_attachment_position=center + normal * (self.attachment_offset_mm / MM_PER_M),
        )

    def estimate_all(self, detections: list[RawDetection]) -> list[DetectedTooth]:
        intrinsics = self._intrinsics
        teeth: list[DetectedTooth] = []
        for detection in detections:
            try:
                teeth.append(self.estimate(detection, intrinsics))
            except PoseEstimationError as exc:
                logger.warning('Pose estimation failed tooth_id=%s reason=%s', detection.tooth_id, exc.message)
        return teeth
