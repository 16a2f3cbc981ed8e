from typing import Callable

from bracket_guidance.core.types import BoundingBox

# FDI notation, in the class order of the detection model.
FDI_LABELS: tuple[str, ...] = tuple(f'{quadrant}{index}' for quadrant in (1, 2, 3, 4) for index in range(1, 9))

UPPER_FRONT_TEETH: tuple[str, ...] = ('11', '12', '13', '21', '22', '23')

LabelMapper = Callable[[int, BoundingBox, tuple[int, int]], str | None]


def parse_arch_position(tooth_id: str) -> tuple[int, int]:
    """Split a tooth label into ``(quadrant, index)``.

    Labels that are not integers read as tooth 11. Integers outside FDI
    notation are split as they are; callers check the quadrant.
    """
    try:
        number = int(str(tooth_id).strip())
    except (TypeError, ValueError):
        number = 11
    return divmod(number, 10)


def is_upper_arch(tooth_id: str) -> bool:
    quadrant, _ = parse_arch_position(tooth_id)
    return quadrant in (1, 2)


def class_label_mapper(class_index: int, _box: BoundingBox, _image_size: tuple[int, int]) -> str | None:
    if 0 <= class_index < len(FDI_LABELS):
        return FDI_LABELS[class_index]
    return None


def position_label_mapper(_class_index: int, box: BoundingBox, image_size: tuple[int, int]) -> str | None:
    # The camera faces the patient, so image-left is the patient's right side.
    width, height = image_size
    if width <= 0 or height <= 0:
        return None
    norm_x = box.center_x / width
    norm_y = box.center_y / height
    upper = norm_y < 0.5
    patient_right = norm_x < 0.5
    if upper:
        quadrant = 1 if patient_right else 2
    else:
        quadrant = 4 if patient_right else 3
    distance = min(abs(norm_x - 0.5) / 0.5, 1.0)
    index = min(8, 1 + int(distance * 8))
    return f'{quadrant}{index}'


def get_label_mapper(policy: str) -> LabelMapper:
    policy = policy.strip().lower()
    if policy == 'class':
        return class_label_mapper
    if policy == 'position':
        return position_label_mapper
    raise ValueError(f'Unsupported LABEL_POLICY={policy!r}')
