import logging
import math
import threading
from dataclasses import replace

from bracket_guidance.core.errors import FixtureExistsError, FixtureNotFoundError, GuidanceError
from bracket_guidance.core.types import Transform, Vector3

logger = logging.getLogger('bracket_guidance.transforms')

DEFAULT_SIZE_MM = 4.0
MIN_SIZE_MM = 2.0
MAX_SIZE_MM = 8.0


def wrap_degrees(value: float) -> float:
    wrapped = value % 360.0
    # A tiny negative input can round up to exactly 360.0.
    return 0.0 if wrapped >= 360.0 else wrapped


def _require_finite(**values: float) -> None:
    bad = {name: value for name, value in values.items() if not math.isfinite(value)}
    if bad:
        raise GuidanceError('INVALID_ARGUMENT', f'Non-finite transform argument(s): {", ".join(sorted(bad))}.', details={'arguments': sorted(bad)})


class TransformController:
    """Keyed store of fixture transforms.

    Transforms are immutable snapshots; every edit swaps in a new one under the
    lock, so a reader never sees a half-applied change.
    """

    def __init__(
        self,
        default_size_mm: float = DEFAULT_SIZE_MM,
        min_size_mm: float = MIN_SIZE_MM,
        max_size_mm: float = MAX_SIZE_MM,
    ) -> None:
        if not min_size_mm <= default_size_mm <= max_size_mm:
            raise ValueError('Default fixture size must lie within the size bounds.')
        self.default_size_mm = float(default_size_mm)
        self.min_size_mm = float(min_size_mm)
        self.max_size_mm = float(max_size_mm)
        self._transforms: dict[str, Transform] = {}
        self._lock = threading.Lock()

    def __contains__(self, fixture_id: str) -> bool:
        with self._lock:
            return fixture_id in self._transforms

    def __len__(self) -> int:
        with self._lock:
            return len(self._transforms)

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._transforms)

    def snapshot(self) -> dict[str, Transform]:
        with self._lock:
            return dict(self._transforms)

    def clamp_size(self, size_mm: float) -> float:
        return max(self.min_size_mm, min(self.max_size_mm, size_mm))

    def create(self, fixture_id: str, initial_position: Vector3, tooth_id: str | None = None) -> Transform:
        _require_finite(x=initial_position.x, y=initial_position.y, z=initial_position.z)
        transform = Transform(
            fixture_id=fixture_id,
            position=initial_position,
            rotation=Vector3(0.0, 0.0, 0.0),
            scale=self.default_size_mm,
            visible=True,
            tooth_id=tooth_id,
        )
        with self._lock:
            if fixture_id in self._transforms:
                raise FixtureExistsError(fixture_id)
            self._transforms[fixture_id] = transform
        logger.info('Fixture created fixture_id=%s tooth_id=%s', fixture_id, tooth_id)
        return transform

    def get(self, fixture_id: str) -> Transform:
        with self._lock:
            transform = self._transforms.get(fixture_id)
        if transform is None:
            raise FixtureNotFoundError(fixture_id)
        return transform

    def _update(self, fixture_id: str, **changes) -> Transform:
        with self._lock:
            current = self._transforms.get(fixture_id)
            if current is None:
                raise FixtureNotFoundError(fixture_id)
            updated = replace(current, **changes)
            self._transforms[fixture_id] = updated
        return updated

    def rotate(self, fixture_id: str, d_x: float, d_y: float, d_z: float) -> Transform:
        _require_finite(d_x=d_x, d_y=d_y, d_z=d_z)
        with self._lock:
            current = self._transforms.get(fixture_id)
            if current is None:
                raise FixtureNotFoundError(fixture_id)
            rotation = Vector3(
                wrap_degrees(current.rotation.x + d_x),
                wrap_degrees(current.rotation.y + d_y),
                wrap_degrees(current.rotation.z + d_z),
            )
            updated = replace(current, rotation=rotation)
            self._transforms[fixture_id] = updated
        return updated

    def scale(self, fixture_id: str, factor: float) -> Transform:
        _require_finite(factor=factor)
        with self._lock:
            current = self._transforms.get(fixture_id)
            if current is None:
                raise FixtureNotFoundError(fixture_id)
            updated = replace(current, scale=self.clamp_size(current.scale * factor))
            self._transforms[fixture_id] = updated
        return updated

    def scale_to(self, fixture_id: str, size_mm: float) -> Transform:
        _require_finite(size_mm=size_mm)
        return self._update(fixture_id, scale=self.clamp_size(size_mm))

    def move(self, fixture_id: str, d_x: float, d_y: float, d_z: float) -> Transform:
        _require_finite(d_x=d_x, d_y=d_y, d_z=d_z)
        with self._lock:
            current = self._transforms.get(fixture_id)
            if current is None:
                raise FixtureNotFoundError(fixture_id)
            updated = replace(current, position=current.position + Vector3(d_x, d_y, d_z))
            self._transforms[fixture_id] = updated
        return updated

    def set_visible(self, fixture_id: str, visible: bool) -> Transform:
        return self._update(fixture_id, visible=bool(visible))

    def reset(self, fixture_id: str) -> Transform:
        return self._update(fixture_id, rotation=Vector3(0.0, 0.0, 0.0), scale=self.default_size_mm)

    def remove(self, fixture_id: str) -> Transform:
        with self._lock:
            removed = self._transforms.pop(fixture_id, None)
        if removed is None:
            raise FixtureNotFoundError(fixture_id)
        logger.info('Fixture removed fixture_id=%s', fixture_id)
        return removed
