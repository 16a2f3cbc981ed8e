import io
import time

import httpx

from bracket_guidance.core.detector import Detector
from bracket_guidance.core.errors import DecodeError
from bracket_guidance.core.types import RawOutput


def _join_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


class RemoteProvider(Detector):
    """Inference runtime reached over HTTP.

    The runtime answers with ``{"shape": [N, 4 + C], "output": [...]}``, the raw
    tensor flattened row by row.
    """

    def __init__(
        self,
        base_url: str = 'http://127.0.0.1:5000',
        predict_path: str = '/model/raw',
        timeout_ms: int = 12000,
        model_id: str = 'remote-tooth-detector',
    ) -> None:
        self._base_url = base_url
        self._predict_path = predict_path
        self._timeout = max(int(timeout_ms), 1000) / 1000.0
        self._model_id = model_id

    @property
    def model_id(self) -> str:
        return self._model_id

    def run(self, image) -> RawOutput:
        start = time.perf_counter()
        width, height = image.size
        payload = io.BytesIO()
        image.save(payload, format='JPEG', quality=92)
        payload.seek(0)

        with httpx.Client(timeout=self._timeout) as client:
            response = client.post(
                _join_url(self._base_url, self._predict_path),
                files={'image': ('frame.jpg', payload.getvalue(), 'image/jpeg')},
            )
        response.raise_for_status()
        body = response.json()

        shape = body.get('shape')
        output = body.get('output')
        if output is None:
            raise DecodeError('MISSING_OUTPUT', 'Inference runtime response has no output buffer.')

        latency_ms = int((time.perf_counter() - start) * 1000)
        return RawOutput(
            buffer=output,
            shape=tuple(shape) if shape is not None else None,
            image_size=(width, height),
            model_id=str(body.get('model') or self.model_id),
            latency_ms=max(latency_ms, 1),
        )
