"""
Blob storage for return and appeal evidence.

Files are written under ``settings.media_root`` and served from
``settings.media_base_url``. Each stored file is tracked in the
``media_uploads`` collection: it starts ``staged`` and becomes ``attached``
once the return or appeal that owns it has been created. Staged uploads
whose record creation failed are deleted right away, and
``reclaim_orphaned_media`` sweeps any that were left behind.
"""

import logging
import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from returns_engine.config import settings
from returns_engine.models.return_model import MediaAttachment
from returns_engine.services.media import EvidenceFile

logger = logging.getLogger(__name__)

MEDIA_STAGED = "staged"
MEDIA_ATTACHED = "attached"


class BlobStorage:
    """Local filesystem blob store"""

    def __init__(self, root: Optional[str] = None, base_url: Optional[str] = None):
        self.root = Path(root or settings.media_root).resolve()
        self.base_url = (base_url or settings.media_base_url).rstrip("/")

    def save(self, data: bytes, filename: str, subdir: str) -> str:
        """Write bytes under ``root/subdir`` and return the public URL"""
        ext = os.path.splitext(filename or "")[1].lower()
        stored_name = f"{uuid.uuid4().hex}{ext}"
        target_dir = self.root / subdir
        target_dir.mkdir(parents=True, exist_ok=True)
        (target_dir / stored_name).write_bytes(data)
        return f"{self.base_url}/{subdir}/{stored_name}"

    def path_for(self, url: str) -> Optional[Path]:
        if not url or not url.startswith(self.base_url + "/"):
            return None
        relative = url[len(self.base_url) + 1:]
        path = (self.root / relative).resolve()
        if self.root not in path.parents:
            return None
        return path

    def delete(self, url: str) -> bool:
        """Delete a stored file. Returns False when the URL is not ours or is already gone."""
        path = self.path_for(url)
        if path is None or not path.is_file():
            return False
        path.unlink()
        return True


def get_storage() -> BlobStorage:
    """Dependency to get the blob storage"""
    return BlobStorage()


async def stage_evidence(
    db: AsyncIOMotorDatabase,
    storage: BlobStorage,
    files: List[EvidenceFile],
    subdir: str,
) -> List[MediaAttachment]:
    """Store validated files and register them as staged uploads"""
    attachments = []
    try:
        for file in files:
            url = storage.save(file.data, file.filename, subdir)
            attachment = MediaAttachment(
                id=uuid.uuid4().hex,
                url=url,
                media_type=file.media_type,
                mime_type=file.content_type,
                size=file.size,
                duration=file.duration,
                filename=file.filename,
            )
            attachments.append(attachment)
            await db.media_uploads.insert_one({
                "_id": attachment.id,
                "url": url,
                "state": MEDIA_STAGED,
                "owner_id": None,
                "created_at": attachment.uploaded_at,
            })
    except Exception:
        await discard_media(db, storage, attachments)
        raise
    return attachments


async def attach_media(db: AsyncIOMotorDatabase, attachments: List[MediaAttachment], owner_id: str):
    """Mark staged uploads as owned by a created return or appeal"""
    if not attachments:
        return
    await db.media_uploads.update_many(
        {"_id": {"$in": [a.id for a in attachments]}},
        {"$set": {"state": MEDIA_ATTACHED, "owner_id": owner_id}},
    )


async def discard_media(db: AsyncIOMotorDatabase, storage: BlobStorage, attachments: List[MediaAttachment]):
    """Remove uploads whose owning record was never created"""
    for attachment in attachments:
        storage.delete(attachment.url)
        await db.media_uploads.delete_one({"_id": attachment.id, "state": MEDIA_STAGED})
    if attachments:
        logger.info(f"Discarded {len(attachments)} unattached upload(s)")


async def reclaim_orphaned_media(
    db: AsyncIOMotorDatabase,
    storage: BlobStorage,
    older_than: datetime,
) -> int:
    """
    Delete staged uploads created before ``older_than`` that never got an owner.

    Returns the number of uploads reclaimed.
    """
    cursor = db.media_uploads.find({"state": MEDIA_STAGED, "created_at": {"$lt": older_than}})
    reclaimed = 0
    async for upload in cursor:
        try:
            storage.delete(upload["url"])
        except OSError as e:
            logger.error(f"Could not delete orphaned upload {upload['url']}: {str(e)}")
            continue
        await db.media_uploads.delete_one({"_id": upload["_id"], "state": MEDIA_STAGED})
        reclaimed += 1

    if reclaimed:
        logger.info(f"Reclaimed {reclaimed} orphaned upload(s)")
    return reclaimed
