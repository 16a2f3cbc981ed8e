import logging
import time
import uuid

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse

from bracket_guidance.config import get_settings
from bracket_guidance.core.errors import GuidanceError
from bracket_guidance.core.image_region import find_tooth_by_id
from bracket_guidance.core.pipeline import GuidancePipeline, create_pipeline
from bracket_guidance.core.worker import DetectionWorker
from bracket_guidance.logging_setup import setup_logging
from bracket_guidance.schemas import (
    DetectedToothOut,
    DetectRequest,
    DetectResponse,
    ErrorResponse,
    FeedbackOut,
    FeedbackRequest,
    FixtureCreateRequest,
    FrameErrorOut,
    FrameStatusResponse,
    FrameSubmitResponse,
    HealthResponse,
    IntrinsicsIn,
    IntrinsicsOut,
    MoveRequest,
    RotateRequest,
    ScaleRequest,
    TransformOut,
    VisibilityRequest,
)
from bracket_guidance.utils.image_io import load_frame
from bracket_guidance.utils.timings import measure_ms

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger('bracket_guidance')

app = FastAPI(title='Bracket Guidance Service', version=settings.version)
started_at = time.time()


def _pipeline() -> GuidancePipeline:
    return app.state.pipeline


@app.on_event('startup')
def startup_event() -> None:
    pipeline = create_pipeline(settings)
    app.state.last_result_generation = None
    app.state.last_frame_error = None

    def on_result(generation: int, result) -> None:
        pass_generation, teeth = result
        if pipeline.publish(teeth, pass_generation):
            app.state.last_result_generation = generation

    def on_error(generation: int, exc: GuidanceError) -> None:
        app.state.last_frame_error = FrameErrorOut(
            generation=generation,
            error=exc.code,
            message=exc.message,
            details=exc.details or None,
        )

    worker = DetectionWorker(
        detect=pipeline.run_frame_pass,
        on_result=on_result,
        on_error=on_error,
        every_n_frames=settings.detect_every_n_frames,
    )
    worker.start()
    app.state.pipeline = pipeline
    app.state.worker = worker
    logger.info(
        'Pipeline initialized provider=%s model=%s simulated=%s label_policy=%s intrinsics=%s',
        settings.provider,
        pipeline.detector.model_id,
        pipeline.detector.is_simulated,
        settings.label_policy,
        pipeline.estimator.intrinsics,
    )
    if pipeline.detector.is_simulated:
        logger.warning('Using simulated tooth detection; no trained model is loaded.')


@app.on_event('shutdown')
def shutdown_event() -> None:
    worker: DetectionWorker | None = getattr(app.state, 'worker', None)
    if worker is not None:
        worker.stop()


@app.exception_handler(GuidanceError)
async def guidance_error_handler(request: Request, exc: GuidanceError):
    request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
    logger.info('Request failed request_id=%s code=%s message=%s', request_id, exc.code, exc.message)
    payload = ErrorResponse(
        error=exc.code,
        message=exc.message,
        request_id=request_id,
        details=exc.details or None,
    )
    return JSONResponse(status_code=exc.status_code, content=payload.model_dump())


@app.exception_handler(Exception)
async def generic_error_handler(request: Request, exc: Exception):
    request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
    logger.exception('Unhandled exception request_id=%s', request_id)
    payload = ErrorResponse(
        error='UNEXPECTED_SERVER_ERROR',
        message='Unexpected server error.',
        request_id=request_id,
    )
    return JSONResponse(status_code=500, content=payload.model_dump())


@app.get('/health', response_model=HealthResponse)
def health():
    pipeline = _pipeline()
    detector = pipeline.detector
    return HealthResponse(
        ok=True,
        version=settings.version,
        provider=settings.provider,
        model=getattr(detector, 'model_id', None),
        weights_path=getattr(detector, 'weights_path', None),
        simulated=bool(getattr(detector, 'is_simulated', False)),
        intrinsics_set=pipeline.estimator.intrinsics is not None,
        fixtures=len(pipeline.transforms),
        uptime_s=round(time.time() - started_at, 3),
    )


@app.put('/intrinsics', response_model=IntrinsicsOut)
def update_intrinsics(payload: IntrinsicsIn):
    intrinsics = _pipeline().set_intrinsics(payload.fx, payload.fy, payload.cx, payload.cy)
    return IntrinsicsOut(fx=intrinsics.fx, fy=intrinsics.fy, cx=intrinsics.cx, cy=intrinsics.cy)


@app.post('/detect', response_model=DetectResponse)
def detect(payload: DetectRequest):
    shape = tuple(payload.shape) if payload.shape is not None else None
    with measure_ms() as elapsed:
        teeth = _pipeline().detect(payload.output, payload.image_width, payload.image_height, declared_shape=shape)
    return DetectResponse(
        latency_ms=elapsed(),
        teeth=[DetectedToothOut.from_tooth(tooth) for tooth in teeth],
    )


@app.post('/detect-frame', response_model=DetectResponse)
async def detect_frame(image: UploadFile = File(...)):
    image_bytes = await image.read()
    frame = load_frame(image_bytes, settings.max_image_bytes)
    pipeline = _pipeline()
    with measure_ms() as elapsed:
        teeth = pipeline.detect_frame(frame)
    return DetectResponse(
        model=pipeline.detector.model_id,
        latency_ms=elapsed(),
        teeth=[DetectedToothOut.from_tooth(tooth) for tooth in teeth],
    )


@app.post('/frames', response_model=FrameSubmitResponse)
async def submit_frame(image: UploadFile = File(...)):
    image_bytes = await image.read()
    frame = load_frame(image_bytes, settings.max_image_bytes)
    generation = app.state.worker.submit(frame)
    return FrameSubmitResponse(accepted=generation is not None, generation=generation)


@app.get('/frames/status', response_model=FrameStatusResponse)
def frame_status():
    worker: DetectionWorker = app.state.worker
    return FrameStatusResponse(
        published=worker.published,
        discarded=worker.discarded,
        last_result_generation=app.state.last_result_generation,
        last_error=app.state.last_frame_error,
    )


@app.get('/teeth', response_model=list[DetectedToothOut])
def latest_teeth():
    return [DetectedToothOut.from_tooth(tooth) for tooth in _pipeline().latest_teeth]


@app.get('/teeth/at', response_model=DetectedToothOut | None)
def tooth_at(x: float, y: float):
    tooth = _pipeline().find_tooth_at(x, y)
    return DetectedToothOut.from_tooth(tooth) if tooth is not None else None


@app.post('/fixtures', response_model=TransformOut, status_code=201)
def create_fixture(payload: FixtureCreateRequest):
    pipeline = _pipeline()
    if payload.position is not None:
        position = payload.position.to_vector()
    elif payload.tooth_id is not None:
        tooth = find_tooth_by_id(pipeline.latest_teeth, payload.tooth_id)
        if tooth is None:
            raise GuidanceError('TOOTH_NOT_DETECTED', f'Tooth {payload.tooth_id} is not in the latest detection.', status_code=409)
        position = tooth.optimal_attachment_position
    else:
        raise GuidanceError('INVALID_ARGUMENT', 'Provide a position or a detected tooth_id.', status_code=400)
    transform = pipeline.create_transform(payload.fixture_id, position, tooth_id=payload.tooth_id)
    return TransformOut.from_transform(transform)


@app.get('/fixtures/{fixture_id}', response_model=TransformOut)
def get_fixture(fixture_id: str):
    return TransformOut.from_transform(_pipeline().get_transform(fixture_id))


@app.delete('/fixtures/{fixture_id}', response_model=TransformOut)
def remove_fixture(fixture_id: str):
    return TransformOut.from_transform(_pipeline().remove(fixture_id))


@app.post('/fixtures/{fixture_id}/rotate', response_model=TransformOut)
def rotate_fixture(fixture_id: str, payload: RotateRequest):
    return TransformOut.from_transform(_pipeline().rotate(fixture_id, payload.dx, payload.dy, payload.dz))


@app.post('/fixtures/{fixture_id}/scale', response_model=TransformOut)
def scale_fixture(fixture_id: str, payload: ScaleRequest):
    if (payload.factor is None) == (payload.size_mm is None):
        raise GuidanceError('INVALID_ARGUMENT', 'Provide exactly one of factor or size_mm.', status_code=400)
    pipeline = _pipeline()
    if payload.factor is not None:
        transform = pipeline.scale(fixture_id, payload.factor)
    else:
        transform = pipeline.scale_to(fixture_id, payload.size_mm)
    return TransformOut.from_transform(transform)


@app.post('/fixtures/{fixture_id}/move', response_model=TransformOut)
def move_fixture(fixture_id: str, payload: MoveRequest):
    return TransformOut.from_transform(_pipeline().move(fixture_id, payload.dx, payload.dy, payload.dz))


@app.post('/fixtures/{fixture_id}/visibility', response_model=TransformOut)
def set_fixture_visibility(fixture_id: str, payload: VisibilityRequest):
    return TransformOut.from_transform(_pipeline().set_visible(fixture_id, payload.visible))


@app.post('/fixtures/{fixture_id}/reset', response_model=TransformOut)
def reset_fixture(fixture_id: str):
    return TransformOut.from_transform(_pipeline().reset(fixture_id))


@app.post('/fixtures/{fixture_id}/feedback', response_model=FeedbackOut)
def fixture_feedback(fixture_id: str, payload: FeedbackRequest | None = None):
    pipeline = _pipeline()
    if payload is not None and payload.target is not None:
        feedback = pipeline.feedback(fixture_id, payload.target.to_vector())
        return FeedbackOut.from_feedback(fixture_id, feedback)

    transform = pipeline.get_transform(fixture_id)
    feedback = pipeline.feedback_for_teeth().get(fixture_id)
    if feedback is None:
        raise GuidanceError(
            'TARGET_UNAVAILABLE',
            'No target given and the fixture tooth is not in the latest detection.',
            status_code=409,
            details={'fixture_id': fixture_id, 'tooth_id': transform.tooth_id},
        )
    return FeedbackOut.from_feedback(fixture_id, feedback)


@app.get('/feedback', response_model=list[FeedbackOut])
def all_feedback():
    results = _pipeline().feedback_for_teeth()
    return [FeedbackOut.from_feedback(fixture_id, feedback) for fixture_id, feedback in sorted(results.items())]