from bracket_guidance.core.types import DetectedTooth


def find_tooth_at(teeth: list[DetectedTooth], x: float, y: float) -> DetectedTooth | None:
    """Return the tooth whose box contains the pixel ``(x, y)``.

    Overlapping hits resolve to the smallest box, then the highest confidence.
    """
    hits = [tooth for tooth in teeth if tooth.bounding_box.contains(x, y)]
    if not hits:
        return None
    return min(hits, key=lambda tooth: (tooth.bounding_box.area, -tooth.confidence))


def find_tooth_by_id(teeth: list[DetectedTooth], tooth_id: str) -> DetectedTooth | None:
    matches = [tooth for tooth in teeth if tooth.tooth_id == tooth_id]
    if not matches:
        return None
    return max(matches, key=lambda tooth: tooth.confidence)
