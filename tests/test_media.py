"""Tests for evidence validation"""

import pytest

from returns_engine.services.media import (
    EvidenceFile,
    MediaContext,
    MediaProcessingError,
    probe_video_duration,
    validate_evidence,
)
from tests.helpers import MB, image, video


def test_oversized_image_is_rejected():
    result = validate_evidence([EvidenceFile("big.jpg", "image/jpeg", size=12 * MB)], MediaContext.RETURN)
    assert result.accepted == []
    assert result.errors == ['"big.jpg" is too large (12.00MB). Maximum size is 10MB']


def test_long_video_is_rejected():
    clip = EvidenceFile("long.mp4", "video/mp4", size=40 * MB, duration=20.0)
    result = validate_evidence([clip], MediaContext.RETURN)
    assert result.accepted == []
    assert result.errors == ['"long.mp4" is too long (20.0s). Maximum duration is 15 seconds']


def test_video_over_size_limit():
    clip = EvidenceFile("huge.mp4", "video/mp4", size=60 * MB, duration=5.0)
    result = validate_evidence([clip], MediaContext.RETURN)
    assert result.errors == ['"huge.mp4" is too large (60.00MB). Maximum size is 50MB']


def test_partial_batch_keeps_accepted_files():
    files = [image("a.jpg"), image("b.jpg"), image("c.jpg"), video("v.mp4", size=60 * MB)]
    result = validate_evidence(files, MediaContext.RETURN)

    assert [f.filename for f in result.accepted] == ["a.jpg", "b.jpg", "c.jpg"]
    assert len(result.errors) == 1
    assert result.errors[0].startswith('"v.mp4" is too large')
    assert result.summary == "3 file(s) accepted, 1 rejected"


def test_unsupported_type():
    result = validate_evidence([EvidenceFile("notes.txt", "text/plain", data=b"hi")], MediaContext.RETURN)
    assert result.errors == ['"notes.txt" is not a valid image or video file']


def test_return_caps_images_and_videos():
    files = [image(f"{i}.jpg") for i in range(6)] + [video("one.mp4"), video("two.mp4")]
    result = validate_evidence(files, MediaContext.RETURN)

    assert len(result.accepted) == 6
    assert result.errors == [
        '"5.jpg" exceeds the limit of 5 images per return',
        '"two.mp4" exceeds the limit of 1 video(s) per return',
    ]


def test_appeal_caps_total_files():
    files = [image(f"{i}.jpg") for i in range(4)] + [video("a.mp4"), video("b.mp4")]
    result = validate_evidence(files, MediaContext.APPEAL)

    assert len(result.accepted) == 5
    assert result.errors == ['"b.mp4" exceeds the limit of 5 files per appeal']


def test_probe_failure_rejects_only_that_file():
    def broken_probe(file):
        raise MediaProcessingError("no moov atom")

    clip = EvidenceFile("broken.mp4", "video/mp4", data=b"\x00" * 100)
    result = validate_evidence([image(), clip], MediaContext.RETURN, duration_probe=broken_probe)

    assert len(result.accepted) == 1
    assert result.errors == ['"broken.mp4" could not be processed. Please try again.']


def test_probed_duration_is_recorded():
    clip = EvidenceFile("ok.mp4", "video/mp4", data=b"\x00" * 100)
    result = validate_evidence([clip], MediaContext.RETURN, duration_probe=lambda f: 9.5)

    assert result.accepted[0].duration == 9.5
    assert result.accepted[0].media_type == "video"


def test_probe_rejects_unreadable_video():
    with pytest.raises(MediaProcessingError):
        probe_video_duration(EvidenceFile("junk.mp4", "video/mp4", data=b"not a video"))
