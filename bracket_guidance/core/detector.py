from abc import ABC, abstractmethod

from bracket_guidance.config import Settings
from bracket_guidance.core.types import RawOutput


class Detector(ABC):
    @abstractmethod
    def run(self, image) -> RawOutput:
        raise NotImplementedError

    @property
    @abstractmethod
    def model_id(self) -> str:
        raise NotImplementedError

    @property
    def weights_path(self) -> str | None:
        return None

    @property
    def is_simulated(self) -> bool:
        return False


def create_detector(settings: Settings) -> Detector:
    provider = settings.provider.strip().lower()
    if provider == 'simulated':
        from bracket_guidance.providers.simulated_provider import SimulatedProvider

        return SimulatedProvider(num_classes=settings.num_classes)
    if provider == 'yolo':
        from bracket_guidance.providers.yolo_provider import YoloProvider

        return YoloProvider(model_id=settings.model_id, num_classes=settings.num_classes, input_size=settings.input_size)
    if provider == 'remote':
        from bracket_guidance.providers.remote_provider import RemoteProvider

        return RemoteProvider(
            base_url=settings.remote_base_url,
            predict_path=settings.remote_predict_path,
            timeout_ms=settings.remote_timeout_ms,
        )
    raise ValueError(f'Unsupported PROVIDER={settings.provider!r}')
