from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from bracket_guidance.core.errors import GuidanceError


def load_frame(image_bytes: bytes, max_bytes: int) -> Image.Image:
    """Decode an uploaded camera frame as upright RGB.

    Phone cameras store orientation in EXIF; pixel coordinates sent to
    ``/teeth/at`` refer to the displayed frame, so it is transposed here.
    """
    if not image_bytes:
        raise GuidanceError('MISSING_IMAGE', 'Missing frame upload (field name: image).', status_code=400)
    if len(image_bytes) > max_bytes:
        raise GuidanceError(
            'IMAGE_TOO_LARGE',
            f'Frame is {len(image_bytes)} bytes; the limit is {max_bytes}.',
            status_code=413,
            details={'size_bytes': len(image_bytes), 'max_bytes': max_bytes},
        )

    try:
        frame = Image.open(BytesIO(image_bytes))
        frame.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise GuidanceError('IMAGE_DECODE_FAILED', 'Could not decode frame.', status_code=400) from exc

    frame = ImageOps.exif_transpose(frame)
    return frame if frame.mode == 'RGB' else frame.convert('RGB')
