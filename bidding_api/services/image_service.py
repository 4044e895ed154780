from typing import Dict, Optional
from fastapi import HTTPException, UploadFile, status
from bidding_api.core.config import settings
from bidding_api.sao.cloudinary_sao import cloudinary_sao
import structlog

logger = structlog.get_logger()


class ImageService:
    """Moves product images in and out of the image host."""

    def __init__(self, image_store=None, folder: Optional[str] = None):
        self.image_store = image_store or cloudinary_sao
        self.folder = folder or settings.cloudinary_upload_folder

    async def upload_product_image(self, file: UploadFile) -> Dict[str, str]:
        content_type = file.content_type or ""
        if not content_type.startswith("image/"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only image files are allowed"
            )

        content = await file.read()
        try:
            uploaded = await self.image_store.upload(content, file.filename, folder=self.folder)
        except Exception as e:
            logger.error("Image upload failed", file_name=file.filename, error=str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Image could not be uploaded"
            )

        return {
            "file_name": file.filename,
            "file_path": uploaded["secure_url"],
            "file_type": content_type,
            "public_id": uploaded["public_id"],
        }

    async def discard(self, public_id: str) -> None:
        """Best-effort removal used after the owning record has changed. Never raises."""
        try:
            await self.image_store.destroy(public_id)
            logger.info("Deleted image from image store", public_id=public_id)
        except Exception as e:
            logger.error("Error deleting image from image store", public_id=public_id, error=str(e))


image_service = ImageService()
