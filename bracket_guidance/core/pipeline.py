import logging
import threading

from bracket_guidance.config import Settings
from bracket_guidance.core.decoder import decode_output
from bracket_guidance.core.detector import Detector, create_detector
from bracket_guidance.core.guidance import GUIDANCE_THRESHOLD_MM, compute_feedback
from bracket_guidance.core.image_region import find_tooth_at, find_tooth_by_id
from bracket_guidance.core.pose import PoseEstimator
from bracket_guidance.core.suppression import DEFAULT_IOU_THRESHOLD, non_max_suppression
from bracket_guidance.core.tooth_labels import LabelMapper, class_label_mapper, get_label_mapper
from bracket_guidance.core.transforms import TransformController
from bracket_guidance.core.types import CameraIntrinsics, DetectedTooth, Feedback, Transform, Vector3
from bracket_guidance.utils.timings import measure_ms

logger = logging.getLogger('bracket_guidance.pipeline')


class GuidancePipeline:
    """Detection-to-guidance facade: decode, suppress, localise, track, score."""

    def __init__(
        self,
        estimator: PoseEstimator | None = None,
        transforms: TransformController | None = None,
        detector: Detector | None = None,
        num_classes: int = 32,
        conf_threshold: float = 0.65,
        iou_threshold: float = DEFAULT_IOU_THRESHOLD,
        label_mapper: LabelMapper = class_label_mapper,
        guidance_threshold_mm: float = GUIDANCE_THRESHOLD_MM,
    ) -> None:
        self.estimator = estimator or PoseEstimator()
        self.transforms = transforms or TransformController()
        self.detector = detector
        self.num_classes = num_classes
        self.conf_threshold = conf_threshold
        self.iou_threshold = iou_threshold
        self.label_mapper = label_mapper
        self.guidance_threshold_mm = guidance_threshold_mm
        self._latest_teeth: list[DetectedTooth] = []
        self._teeth_lock = threading.Lock()
        self._pass_counter = 0
        self._published_pass = 0

    @property
    def latest_teeth(self) -> list[DetectedTooth]:
        with self._teeth_lock:
            return list(self._latest_teeth)

    def set_intrinsics(self, fx: float, fy: float, cx: float, cy: float) -> CameraIntrinsics:
        intrinsics = CameraIntrinsics(fx=float(fx), fy=float(fy), cx=float(cx), cy=float(cy))
        self.estimator.set_intrinsics(intrinsics)
        return intrinsics

    def begin_pass(self) -> int:
        """Reserve the generation of a pass that is about to start."""
        with self._teeth_lock:
            self._pass_counter += 1
            return self._pass_counter

    def publish(self, teeth: list[DetectedTooth], generation: int | None = None) -> bool:
        """Replace the latest list unless a newer pass has already published.

        Without a generation the list counts as the newest pass.
        """
        with self._teeth_lock:
            if generation is None:
                self._pass_counter += 1
                generation = self._pass_counter
            if generation < self._published_pass:
                logger.debug(
                    'Dropping stale detection pass generation=%s published=%s', generation, self._published_pass
                )
                return False
            self._published_pass = generation
            self._latest_teeth = list(teeth)
            return True

    def detect(self, buffer, image_width: int, image_height: int, declared_shape: tuple[int, int] | None = None) -> list[DetectedTooth]:
        generation = self.begin_pass()
        teeth = self.localize(buffer, image_width, image_height, declared_shape)
        self.publish(teeth, generation)
        return teeth

    def detect_frame(self, image) -> list[DetectedTooth]:
        generation = self.begin_pass()
        teeth = self.localize_frame(image)
        self.publish(teeth, generation)
        return teeth

    def run_frame_pass(self, image) -> tuple[int, list[DetectedTooth]]:
        """Localize a frame for deferred publishing; returns ``(generation, teeth)``."""
        generation = self.begin_pass()
        return generation, self.localize_frame(image)

    def localize(self, buffer, image_width: int, image_height: int, declared_shape: tuple[int, int] | None = None) -> list[DetectedTooth]:
        """Run decode, suppression and pose estimation without publishing."""
        with measure_ms() as elapsed:
            candidates = decode_output(
                buffer,
                (int(image_width), int(image_height)),
                num_classes=self.num_classes,
                conf_threshold=self.conf_threshold,
                label_mapper=self.label_mapper,
                declared_shape=declared_shape,
            )
            accepted = non_max_suppression(candidates, self.iou_threshold)
            teeth = self.estimator.estimate_all(accepted)
        logger.info(
            'Detection pass candidates=%s accepted=%s localized=%s latency_ms=%s',
            len(candidates),
            len(accepted),
            len(teeth),
            elapsed(),
        )
        return teeth

    def localize_frame(self, image) -> list[DetectedTooth]:
        if self.detector is None:
            raise RuntimeError('No detector configured for frame detection.')
        output = self.detector.run(image)
        width, height = output.image_size
        return self.localize(output.buffer, width, height, declared_shape=output.shape)

    def find_tooth_at(self, x: float, y: float) -> DetectedTooth | None:
        return find_tooth_at(self.latest_teeth, x, y)

    def create_transform(self, fixture_id: str, initial_position: Vector3, tooth_id: str | None = None) -> Transform:
        return self.transforms.create(fixture_id, initial_position, tooth_id=tooth_id)

    def get_transform(self, fixture_id: str) -> Transform:
        return self.transforms.get(fixture_id)

    def rotate(self, fixture_id: str, d_x: float, d_y: float, d_z: float) -> Transform:
        return self.transforms.rotate(fixture_id, d_x, d_y, d_z)

    def scale(self, fixture_id: str, factor: float) -> Transform:
        return self.transforms.scale(fixture_id, factor)

    def scale_to(self, fixture_id: str, size_mm: float) -> Transform:
        return self.transforms.scale_to(fixture_id, size_mm)

    def move(self, fixture_id: str, d_x: float, d_y: float, d_z: float) -> Transform:
        return self.transforms.move(fixture_id, d_x, d_y, d_z)

    def set_visible(self, fixture_id: str, visible: bool) -> Transform:
        return self.transforms.set_visible(fixture_id, visible)

    def reset(self, fixture_id: str) -> Transform:
        return self.transforms.reset(fixture_id)

    def remove(self, fixture_id: str) -> Transform:
        return self.transforms.remove(fixture_id)

    def feedback(self, fixture_id: str, target: Vector3) -> Feedback:
        transform = self.transforms.get(fixture_id)
        return compute_feedback(transform.position, target, self.guidance_threshold_mm)

    def feedback_for_teeth(self, teeth: list[DetectedTooth] | None = None) -> dict[str, Feedback]:
        teeth = self.latest_teeth if teeth is None else teeth
        results: dict[str, Feedback] = {}
        for fixture_id, transform in self.transforms.snapshot().items():
            if transform.tooth_id is None:
                continue
            tooth = find_tooth_by_id(teeth, transform.tooth_id)
            if tooth is None:
                continue
            results[fixture_id] = compute_feedback(transform.position, tooth.optimal_attachment_position, self.guidance_threshold_mm)
        return results

    def best_feedback(self, teeth: list[DetectedTooth] | None = None) -> Feedback | None:
        results = self.feedback_for_teeth(teeth)
        if not results:
            return None
        return min(results.values(), key=lambda item: item.distance_mm)


def create_pipeline(settings: Settings, detector: Detector | None = None) -> GuidancePipeline:
    intrinsics = None
    camera = (settings.camera_fx, settings.camera_fy, settings.camera_cx, settings.camera_cy)
    if all(value is not None for value in camera):
        intrinsics = CameraIntrinsics(*(float(value) for value in camera))
    estimator = PoseEstimator(
        intrinsics=intrinsics,
        assumed_tooth_width_mm=settings.assumed_tooth_width_mm,
        attachment_offset_mm=settings.attachment_offset_mm,
        landmark_offset_mm=settings.landmark_offset_mm,
    )
    transforms = TransformController(
        default_size_mm=settings.bracket_default_size_mm,
        min_size_mm=settings.bracket_min_size_mm,
        max_size_mm=settings.bracket_max_size_mm,
    )
    return GuidancePipeline(
        estimator=estimator,
        transforms=transforms,
        detector=detector if detector is not None else create_detector(settings),
        num_classes=settings.num_classes,
        conf_threshold=settings.conf_threshold,
        iou_threshold=settings.iou_threshold,
        label_mapper=get_label_mapper(settings.label_policy),
        guidance_threshold_mm=settings.guidance_threshold_mm,
    )
