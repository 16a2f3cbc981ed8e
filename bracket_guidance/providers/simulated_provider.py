import time

import numpy as np

from bracket_guidance.core.detector import Detector
from bracket_guidance.core.tooth_labels import FDI_LABELS
from bracket_guidance.core.types import RawOutput

# (tooth_id, cx, cy, w, h, score) normalised to the model input. The repeated 11
# overlaps the first one and the last row sits below any sensible threshold.
_SIMULATED_SLOTS = (
    ('13', 0.20, 0.40, 0.10, 0.16, 0.86),
    ('12', 0.30, 0.38, 0.10, 0.16, 0.89),
    ('11', 0.42, 0.37, 0.10, 0.17, 0.93),
    ('21', 0.58, 0.37, 0.10, 0.17, 0.92),
    ('22', 0.70, 0.38, 0.10, 0.16, 0.88),
    ('23', 0.80, 0.40, 0.10, 0.16, 0.84),
    ('11', 0.43, 0.37, 0.10, 0.17, 0.71),
    ('31', 0.50, 0.75, 0.08, 0.12, 0.30),
)


class SimulatedProvider(Detector):
    """Placeholder detector used when no trained model is available."""

    def __init__(self, num_classes: int = 32, model_id: str = 'simulated-v1') -> None:
        self._num_classes = num_classes
        self._model_id = model_id

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def is_simulated(self) -> bool:
        return True

    def run(self, image) -> RawOutput:
        start = time.perf_counter()
        width, height = image.size
        rows = [slot for slot in _SIMULATED_SLOTS if FDI_LABELS.index(slot[0]) < self._num_classes]
        output = np.zeros((len(rows), 4 + self._num_classes), dtype=np.float32)
        for row, (tooth_id, cx, cy, w, h, score) in enumerate(rows):
            output[row, :4] = (cx, cy, w, h)
            output[row, 4 + FDI_LABELS.index(tooth_id)] = score
        latency_ms = int((time.perf_counter() - start) * 1000)
        return RawOutput(
            buffer=output.ravel(),
            shape=(output.shape[0], output.shape[1]),
            image_size=(width, height),
            model_id=self.model_id,
            latency_ms=max(latency_ms, 1),
        )
