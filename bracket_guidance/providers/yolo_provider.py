import time
from pathlib import Path

import numpy as np

from bracket_guidance.core.detector import Detector
from bracket_guidance.core.types import RawOutput


class YoloProvider(Detector):
    def __init__(self, model_id: str = 'tooth_detection_full.pt', num_classes: int = 32, input_size: int = 416) -> None:
        try:
            from ultralytics import YOLO
        except ImportError as exc:
            raise RuntimeError('ultralytics is required for PROVIDER=yolo. Install it first.') from exc

        self._model_id = model_id
        self._num_classes = num_classes
        self._input_size = input_size
        self._model = YOLO(model_id)

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def weights_path(self) -> str | None:
        ckpt_path = getattr(self._model, 'ckpt_path', None)
        if ckpt_path:
            return str(Path(ckpt_path).resolve())
        model_candidate = Path(self._model_id)
        if model_candidate.exists():
            return str(model_candidate.resolve())
        return None

    def run(self, image) -> RawOutput:
        start = time.perf_counter()
        width, height = image.size
        # Keep every candidate; thresholding and suppression belong to the pipeline.
        prediction = self._model(image, imgsz=self._input_size, conf=0.001, iou=1.0, verbose=False)

        rows: list[np.ndarray] = []
        if prediction:
            boxes = prediction[0].boxes
            if boxes is not None:
                for cls_id, conf, xywhn in zip(boxes.cls.tolist(), boxes.conf.tolist(), boxes.xywhn.tolist()):
                    class_index = int(cls_id)
                    if not 0 <= class_index < self._num_classes:
                        continue
                    row = np.zeros(4 + self._num_classes, dtype=np.float32)
                    row[:4] = xywhn
                    row[4 + class_index] = float(conf)
                    rows.append(row)

        output = np.stack(rows) if rows else np.zeros((0, 4 + self._num_classes), dtype=np.float32)
        latency_ms = int((time.perf_counter() - start) * 1000)
        return RawOutput(
            buffer=output.ravel(),
            shape=(output.shape[0], output.shape[1]),
            image_size=(width, height),
            model_id=self.model_id,
            latency_ms=max(latency_ms, 1),
        )
