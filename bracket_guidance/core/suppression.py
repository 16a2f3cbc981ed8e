from bracket_guidance.core.types import BoundingBox, RawDetection

DEFAULT_IOU_THRESHOLD = 0.45


def iou(left: BoundingBox, right: BoundingBox) -> float:
    left_half_w, left_half_h = abs(left.width) / 2, abs(left.height) / 2
    right_half_w, right_half_h = abs(right.width) / 2, abs(right.height) / 2
    ix1 = max(left.center_x - left_half_w, right.center_x - right_half_w)
    iy1 = max(left.center_y - left_half_h, right.center_y - right_half_h)
    ix2 = min(left.center_x + left_half_w, right.center_x + right_half_w)
    iy2 = min(left.center_y + left_half_h, right.center_y + right_half_h)
    intersection = max(0.0, ix2 - ix1) * max(0.0, iy2 - iy1)
    left_area = 4 * left_half_w * left_half_h
    right_area = 4 * right_half_w * right_half_h
    union = left_area + right_area - intersection
    return (intersection / union) if union > 0 else 0.0


def non_max_suppression(detections: list[RawDetection], iou_threshold: float = DEFAULT_IOU_THRESHOLD) -> list[RawDetection]:
    # sorted() is stable, so equal confidences keep their input order.
    remaining = sorted(detections, key=lambda item: item.confidence, reverse=True)
    kept: list[RawDetection] = []
    while remaining:
        best = remaining.pop(0)
        kept.append(best)
        remaining = [candidate for candidate in remaining if iou(best.box, candidate.box) <= iou_threshold]
    return kept
