"""
Evidence validation for return requests and appeals.

The validator only decides which files may be forwarded to storage; it
never touches storage itself. Every rejected file produces its own message
and accepted files are kept even when siblings in the batch are rejected.
"""

import io
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import mutagen
from mutagen import MutagenError

from returns_engine.config import settings
from returns_engine.models.return_model import MediaType

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class MediaContext(str, Enum):
    """Which submission the evidence belongs to"""
    RETURN = "return"
    APPEAL = "appeal"


class MediaProcessingError(Exception):
    """Raised when a file's metadata cannot be decoded"""


@dataclass
class EvidenceFile:
    """An uploaded file that has not been stored yet"""
    filename: str
    content_type: str
    data: bytes = b""
    size: Optional[int] = None
    duration: Optional[float] = None
    media_type: Optional[MediaType] = None

    def __post_init__(self):
        if self.size is None:
            self.size = len(self.data)


@dataclass(frozen=True)
class MediaLimits:
    max_image_bytes: int
    max_video_bytes: int
    max_video_seconds: float
    max_return_images: int
    max_return_videos: int
    max_appeal_files: int

    @classmethod
    def from_settings(cls) -> "MediaLimits":
        return cls(
            max_image_bytes=settings.max_image_bytes,
            max_video_bytes=settings.max_video_bytes,
            max_video_seconds=settings.max_video_seconds,
            max_return_images=settings.max_return_images,
            max_return_videos=settings.max_return_videos,
            max_appeal_files=settings.max_appeal_files,
        )


@dataclass
class MediaValidationResult:
    accepted: List[EvidenceFile] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def rejected_count(self) -> int:
        return len(self.errors)

    @property
    def summary(self) -> str:
        return f"{len(self.accepted)} file(s) accepted, {self.rejected_count} rejected"


def probe_video_duration(file: EvidenceFile) -> float:
    """Read a video's duration in seconds from its container metadata"""
    try:
        parsed = mutagen.File(io.BytesIO(file.data))
    except MutagenError as e:
        raise MediaProcessingError(str(e)) from e

    length = getattr(getattr(parsed, "info", None), "length", None)
    if not length:
        raise MediaProcessingError(f"No duration metadata in {file.filename}")
    return float(length)


def media_type_of(content_type: str) -> Optional[MediaType]:
    content_type = (content_type or "").lower()
    if content_type.startswith("image/"):
        return MediaType.IMAGE
    if content_type.startswith("video/"):
        return MediaType.VIDEO
    return None


def _format_mb(size: int) -> str:
    return f"{size / MB:.2f}MB"


def validate_evidence(
    files: List[EvidenceFile],
    context: MediaContext,
    limits: Optional[MediaLimits] = None,
    duration_probe: Callable[[EvidenceFile], float] = probe_video_duration,
) -> MediaValidationResult:
    """
    Partition a batch of evidence files into accepted files and error messages.

    Per-file checks run first (type, size, video duration), then the
    aggregate caps of the context are applied in upload order.
    """
    limits = limits or MediaLimits.from_settings()
    result = MediaValidationResult()
    images = videos = 0

    for file in files:
        name = file.filename
        media_type = media_type_of(file.content_type)

        if media_type is None:
            result.errors.append(f'"{name}" is not a valid image or video file')
            continue

        max_size = limits.max_image_bytes if media_type == MediaType.IMAGE else limits.max_video_bytes
        if file.size > max_size:
            result.errors.append(
                f'"{name}" is too large ({_format_mb(file.size)}). '
                f"Maximum size is {max_size // MB}MB"
            )
            continue

        if media_type == MediaType.VIDEO:
            try:
                duration = file.duration if file.duration is not None else duration_probe(file)
            except MediaProcessingError as e:
                logger.warning(f"Could not read video metadata for {name}: {e}")
                result.errors.append(f'"{name}" could not be processed. Please try again.')
                continue
            if duration > limits.max_video_seconds:
                result.errors.append(
                    f'"{name}" is too long ({duration:.1f}s). '
                    f"Maximum duration is {limits.max_video_seconds:g} seconds"
                )
                continue
            file.duration = duration

        if context == MediaContext.APPEAL:
            if len(result.accepted) >= limits.max_appeal_files:
                result.errors.append(
                    f'"{name}" exceeds the limit of {limits.max_appeal_files} files per appeal'
                )
                continue
        elif media_type == MediaType.IMAGE and images >= limits.max_return_images:
            result.errors.append(
                f'"{name}" exceeds the limit of {limits.max_return_images} images per return'
            )
            continue
        elif media_type == MediaType.VIDEO and videos >= limits.max_return_videos:
            result.errors.append(
                f'"{name}" exceeds the limit of {limits.max_return_videos} video(s) per return'
            )
            continue

        if media_type == MediaType.IMAGE:
            images += 1
        else:
            videos += 1
        file.media_type = media_type
        result.accepted.append(file)

    return result
