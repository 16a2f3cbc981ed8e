class GuidanceError(Exception):
    def __init__(self, code: str, message: str, status_code: int = 400, details: dict | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class DecodeError(GuidanceError):
    def __init__(self, code: str, message: str, details: dict | None = None):
        super().__init__(code, message, status_code=422, details=details)


class PoseEstimationError(GuidanceError):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__('POSE_ESTIMATION_FAILED', message, status_code=422, details=details)


class FixtureNotFoundError(GuidanceError):
    def __init__(self, fixture_id: str):
        super().__init__('FIXTURE_NOT_FOUND', f'Unknown fixture id {fixture_id!r}.', status_code=404, details={'fixture_id': fixture_id})
        self.fixture_id = fixture_id


class FixtureExistsError(GuidanceError):
    def __init__(self, fixture_id: str):
        super().__init__('FIXTURE_EXISTS', f'Fixture id {fixture_id!r} is already placed.', status_code=409, details={'fixture_id': fixture_id})
        self.fixture_id = fixture_id
