from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    provider: str = 'simulated'
    model_id: str = 'tooth_detection_full.pt'
    remote_base_url: str = 'http://127.0.0.1:5000'
    remote_predict_path: str = '/model/raw'
    remote_timeout_ms: int = 12000
    input_size: int = 416
    num_classes: int = 32
    conf_threshold: float = 0.65
    iou_threshold: float = 0.45
    label_policy: str = 'class'
    camera_fx: float | None = 500.0
    camera_fy: float | None = 500.0
    camera_cx: float | None = 320.0
    camera_cy: float | None = 240.0
    assumed_tooth_width_mm: float = 8.0
    attachment_offset_mm: float = 1.0
    landmark_offset_mm: float = 2.0
    bracket_default_size_mm: float = 4.0
    bracket_min_size_mm: float = 2.0
    bracket_max_size_mm: float = 8.0
    guidance_threshold_mm: float = 0.2
    detect_every_n_frames: int = 3
    max_image_bytes: int = 8 * 1024 * 1024
    host: str = '127.0.0.1'
    port: int = 8002
    log_level: str = 'INFO'
    version: str = '1.0.0'


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
