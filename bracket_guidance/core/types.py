import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __add__(self, other: 'Vector3') -> 'Vector3':
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: 'Vector3') -> 'Vector3':
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, factor: float) -> 'Vector3':
        return Vector3(self.x * factor, self.y * factor, self.z * factor)

    def magnitude(self) -> float:
        return math.hypot(self.x, self.y, self.z)

    def normalized(self) -> 'Vector3':
        length = self.magnitude()
        if length <= 0:
            return Vector3()
        return Vector3(self.x / length, self.y / length, self.z / length)

    def is_finite(self) -> bool:
        return all(math.isfinite(value) for value in (self.x, self.y, self.z))

    def as_list(self) -> list[float]:
        return [self.x, self.y, self.z]


@dataclass(frozen=True)
class BoundingBox:
    """Image-space box; ``x``/``y`` is the top-left corner."""

    x: float
    y: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height

    def as_list(self) -> list[float]:
        return [self.x, self.y, self.width, self.height]


@dataclass(frozen=True)
class RawDetection:
    class_index: int
    confidence: float
    box: BoundingBox
    tooth_id: str


@dataclass(frozen=True)
class Quaternion:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0


@dataclass(frozen=True)
class Pose:
    position: Vector3
    rotation: Quaternion = field(default_factory=Quaternion)


@dataclass(frozen=True)
class CameraIntrinsics:
    fx: float
    fy: float
    cx: float
    cy: float

    def is_valid(self) -> bool:
        values = (self.fx, self.fy, self.cx, self.cy)
        return all(math.isfinite(value) for value in values) and self.fx > 0 and self.fy > 0


LANDMARK_NAMES = ('center', 'incisal', 'gingival', 'mesial', 'distal')


@dataclass(frozen=True)
class DetectedTooth:
    tooth_id: str
    confidence: float
    bounding_box: BoundingBox
    pose: Pose
    surface_normal: Vector3
    landmarks: tuple[Vector3, ...]
    optimal_attachment_position: Vector3


@dataclass(frozen=True)
class Transform:
    fixture_id: str
    position: Vector3
    rotation: Vector3 = field(default_factory=Vector3)
    scale: float = 4.0
    visible: bool = True
    tooth_id: str | None = None


class QualityLevel(str, Enum):
    PERFECT = 'PERFECT'
    GOOD = 'GOOD'
    ACCEPTABLE = 'ACCEPTABLE'
    NEEDS_ADJUSTMENT = 'NEEDS_ADJUSTMENT'


@dataclass(frozen=True)
class Feedback:
    distance_mm: float
    quality: QualityLevel
    guidance_text: str
    offset_mm: Vector3


@dataclass
class RawOutput:
    buffer: Any
    shape: tuple[int, int] | None
    image_size: tuple[int, int]
    model_id: str
    latency_ms: int
