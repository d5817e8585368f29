import io
import base64
from typing import Iterable, List

from PIL import Image, UnidentifiedImageError

from config import settings
from . import utils
from .schemas import ContentBlock, UploadedFile

logger = utils.setup_logger(__name__)

# allow opening very large scans; we control size ourselves
Image.MAX_IMAGE_PIXELS = None


def strip_data_uri(raw: str) -> str:
    """'data:application/pdf;base64,JVBER…' -> 'JVBER…'; bare payloads pass through."""
    raw = (raw or "").strip()
    if raw.startswith("data:") and "," in raw:
        return raw.split(",", 1)[1]
    return raw


def uploaded_file_from_bytes(name: str, mime_type: str, data: bytes) -> UploadedFile:
    """File-input helper: wrap raw bytes the way the browser's FileReader does (data URI)."""
    encoded = base64.b64encode(data).decode("ascii")
    return UploadedFile(
        name=name,
        mime_type=mime_type,
        raw_content=f"data:{mime_type};base64,{encoded}",
    )


# -------- Image helpers for oversized page scans --------

def _downscale_width(img: Image.Image, max_w: int) -> Image.Image:
    """Downscale image to a target max width while preserving aspect ratio."""
    if img.width <= max_w:
        return img
    h = max(1, int(img.height * (max_w / img.width)))
    return img.resize((max_w, h), Image.LANCZOS)


def _encode_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG", optimize=True)
    return buf.getvalue()


def _shrink_image_block(block: ContentBlock, max_w: int) -> ContentBlock:
    """Re-encode a wide page image as a narrower PNG. Unreadable images are left as they are."""
    try:
        with Image.open(io.BytesIO(base64.b64decode(block.data))) as img:
            if img.width <= max_w:
                return block
            original = img.size
            small = _downscale_width(img.convert("RGB"), max_w)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.debug("Extract: image left untouched (%s)", e)
        return block

    logger.info("Extract: downscaled page image %sx%s -> %sx%s", original[0], original[1], small.width, small.height)
    return ContentBlock(
        mime_type="image/png",
        data=base64.b64encode(_encode_png(small)).decode("ascii"),
    )


def extract(files: Iterable[UploadedFile]) -> List[ContentBlock]:
    """
    Convert uploaded files into inline content blocks, one per file, same order.

    The payload keeps its transport encoding (base64); only a data-URI header is
    removed. Page images wider than settings.IMAGE_MAX_WIDTH are downscaled.
    """
    max_w = settings.IMAGE_MAX_WIDTH
    blocks: List[ContentBlock] = []
    for f in files:
        block = ContentBlock(mime_type=f.mime_type, data=strip_data_uri(f.raw_content))
        if max_w and block.mime_type.startswith("image/"):
            block = _shrink_image_block(block, max_w)
        blocks.append(block)
    logger.debug("Extract: %d content block(s) ready", len(blocks))
    return blocks
