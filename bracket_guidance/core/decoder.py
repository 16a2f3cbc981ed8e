import logging
import math
from typing import Any

import numpy as np

from bracket_guidance.core.errors import DecodeError
from bracket_guidance.core.tooth_labels import LabelMapper, class_label_mapper
from bracket_guidance.core.types import BoundingBox, RawDetection

logger = logging.getLogger('bracket_guidance.decoder')

GEOMETRY_VALUES = 4


def _check_declared_shape(declared_shape: Any, stride: int, available: int) -> int:
    try:
        rows, width = (int(value) for value in declared_shape)
    except (TypeError, ValueError) as exc:
        raise DecodeError(
            'UNEXPECTED_SHAPE',
            'Declared output shape must be two-dimensional.',
            details={'declared_shape': list(declared_shape) if isinstance(declared_shape, (list, tuple)) else str(declared_shape)},
        ) from exc
    if rows < 0 or width != stride:
        raise DecodeError(
            'UNEXPECTED_SHAPE',
            f'Declared output shape ({rows}, {width}) does not match the expected row width {stride}.',
            details={'declared_shape': [rows, width], 'expected_width': stride},
        )
    expected = rows * stride
    if available < expected:
        raise DecodeError(
            'BUFFER_TOO_SHORT',
            f'Output buffer holds {available} values, declared shape needs {expected}.',
            details={'declared_shape': [rows, width], 'buffer_length': available, 'complete_slots': available // stride},
        )
    return expected


def decode_output(
    buffer,
    image_size: tuple[int, int],
    num_classes: int,
    conf_threshold: float,
    label_mapper: LabelMapper = class_label_mapper,
    declared_shape: tuple[int, int] | None = None,
) -> list[RawDetection]:
    """Turn a flat ``N x (4 + num_classes)`` detector output into raw detections.

    Each slot holds centre-x, centre-y, width and height normalised to the model
    input, then one score per class. Malformed buffers raise ``DecodeError``; a
    buffer with no slots is a normal empty result.
    """
    width, height = image_size
    if width <= 0 or height <= 0:
        raise DecodeError('INVALID_IMAGE_SIZE', f'Invalid source image size {width}x{height}.', details={'image_size': [width, height]})
    if num_classes <= 0:
        raise DecodeError('UNEXPECTED_SHAPE', 'Detector must declare at least one class.', details={'num_classes': num_classes})

    stride = GEOMETRY_VALUES + num_classes
    values = np.asarray(buffer, dtype=np.float64).ravel()

    if declared_shape is not None:
        expected = _check_declared_shape(declared_shape, stride, values.size)
        if values.size > expected:
            logger.warning('Output buffer longer than declared shape buffer_length=%s expected=%s', values.size, expected)
        values = values[:expected]

    if values.size % stride != 0:
        complete_slots = values.size // stride
        raise DecodeError(
            'BUFFER_MISALIGNED',
            f'Output buffer length {values.size} is not a multiple of the slot stride {stride}; '
            f'decoding would stop after {complete_slots} complete slots.',
            details={'buffer_length': int(values.size), 'stride': stride, 'complete_slots': complete_slots},
        )
    if values.size == 0:
        return []

    rows = values.reshape(-1, stride)
    scores = rows[:, GEOMETRY_VALUES:]
    class_indices = np.argmax(scores, axis=1)
    confidences = scores[np.arange(rows.shape[0]), class_indices]

    detections: list[RawDetection] = []
    for row, class_index, confidence in zip(rows, class_indices.tolist(), confidences.tolist()):
        if not math.isfinite(confidence) or confidence < conf_threshold:
            continue
        center_x, center_y, box_w, box_h = (float(value) for value in row[:GEOMETRY_VALUES])
        if not all(math.isfinite(value) for value in (center_x, center_y, box_w, box_h)):
            logger.debug('Skipping slot with non-finite geometry class_index=%s', class_index)
            continue
        box = BoundingBox(
            x=(center_x - box_w / 2) * width,
            y=(center_y - box_h / 2) * height,
            width=box_w * width,
            height=box_h * height,
        )
        tooth_id = label_mapper(int(class_index), box, (width, height))
        if tooth_id is None:
            continue
        detections.append(
            RawDetection(
                class_index=int(class_index),
                confidence=max(0.0, min(1.0, float(confidence))),
                box=box,
                tooth_id=tooth_id,
            )
        )
    return detections
