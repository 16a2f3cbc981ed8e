from pydantic import BaseModel, Field

from bracket_guidance.core.types import DetectedTooth, Feedback, Transform, Vector3


class Vector3In(BaseModel):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def to_vector(self) -> Vector3:
        return Vector3(self.x, self.y, self.z)


class Vector3Out(BaseModel):
    x: float
    y: float
    z: float

    @classmethod
    def from_vector(cls, vector: Vector3) -> 'Vector3Out':
        return cls(x=vector.x, y=vector.y, z=vector.z)


class BoundingBoxOut(BaseModel):
    x: float
    y: float
    width: float
    height: float


class DetectedToothOut(BaseModel):
    tooth_id: str
    confidence: float = Field(ge=0.0, le=1.0)
    bounding_box: BoundingBoxOut
    position: Vector3Out
    rotation: list[float]
    surface_normal: Vector3Out
    landmarks: list[Vector3Out]
    optimal_attachment_position: Vector3Out

    @classmethod
    def from_tooth(cls, tooth: DetectedTooth) -> 'DetectedToothOut':
        box = tooth.bounding_box
        rotation = tooth.pose.rotation
        return cls(
            tooth_id=tooth.tooth_id,
            confidence=tooth.confidence,
            bounding_box=BoundingBoxOut(x=box.x, y=box.y, width=box.width, height=box.height),
            position=Vector3Out.from_vector(tooth.pose.position),
            rotation=[rotation.x, rotation.y, rotation.z, rotation.w],
            surface_normal=Vector3Out.from_vector(tooth.surface_normal),
            landmarks=[Vector3Out.from_vector(point) for point in tooth.landmarks],
            optimal_attachment_position=Vector3Out.from_vector(tooth.optimal_attachment_position),
        )


class DetectRequest(BaseModel):
    output: list[float]
    image_width: int = Field(gt=0)
    image_height: int = Field(gt=0)
    shape: list[int] | None = None


class DetectResponse(BaseModel):
    ok: bool = True
    model: str | None = None
    latency_ms: int
    teeth: list[DetectedToothOut]


class FrameSubmitResponse(BaseModel):
    ok: bool = True
    accepted: bool
    generation: int | None = None


class FrameErrorOut(BaseModel):
    generation: int
    error: str
    message: str
    details: dict | None = None


class FrameStatusResponse(BaseModel):
    ok: bool = True
    published: int
    discarded: int
    last_result_generation: int | None = None
    last_error: FrameErrorOut | None = None


class IntrinsicsIn(BaseModel):
    fx: float = Field(gt=0.0)
    fy: float = Field(gt=0.0)
    cx: float
    cy: float


class IntrinsicsOut(BaseModel):
    ok: bool = True
    fx: float
    fy: float
    cx: float
    cy: float


class FixtureCreateRequest(BaseModel):
    fixture_id: str = Field(min_length=1)
    position: Vector3In | None = None
    tooth_id: str | None = None


class RotateRequest(BaseModel):
    dx: float = 0.0
    dy: float = 0.0
    dz: float = 0.0


class MoveRequest(BaseModel):
    dx: float = 0.0
    dy: float = 0.0
    dz: float = 0.0


class VisibilityRequest(BaseModel):
    visible: bool


class ScaleRequest(BaseModel):
    factor: float | None = None
    size_mm: float | None = None


class TransformOut(BaseModel):
    ok: bool = True
    fixture_id: str
    position: Vector3Out
    rotation: Vector3Out
    scale: float
    visible: bool
    tooth_id: str | None = None

    @classmethod
    def from_transform(cls, transform: Transform) -> 'TransformOut':
        return cls(
            fixture_id=transform.fixture_id,
            position=Vector3Out.from_vector(transform.position),
            rotation=Vector3Out.from_vector(transform.rotation),
            scale=transform.scale,
            visible=transform.visible,
            tooth_id=transform.tooth_id,
        )


class FeedbackRequest(BaseModel):
    target: Vector3In | None = None


class FeedbackOut(BaseModel):
    ok: bool = True
    fixture_id: str
    distance_mm: float
    quality: str
    guidance_text: str
    offset_mm: Vector3Out

    @classmethod
    def from_feedback(cls, fixture_id: str, feedback: Feedback) -> 'FeedbackOut':
        return cls(
            fixture_id=fixture_id,
            distance_mm=feedback.distance_mm,
            quality=feedback.quality.value,
            guidance_text=feedback.guidance_text,
            offset_mm=Vector3Out.from_vector(feedback.offset_mm),
        )


class HealthResponse(BaseModel):
    ok: bool
    version: str
    provider: str
    model: str | None = None
    weights_path: str | None = None
    simulated: bool
    intrinsics_set: bool
    fixtures: int
    uptime_s: float


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    message: str
    request_id: str | None = None
    details: dict | None = None
