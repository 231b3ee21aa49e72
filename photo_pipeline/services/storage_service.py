import logging
from typing import Optional
from google.cloud import storage
from google.cloud.exceptions import GoogleCloudError, NotFound

from photo_pipeline.config.pipeline_config import (
    PHOTO_PATH_PREFIX,
    PHOTO_CACHE_CONTROL,
    PUBLIC_URL_BASE,
)

logger = logging.getLogger(__name__)


class StorageUnavailableError(Exception):
    """Custom exception for storage service errors"""
    pass


def get_storage_client(credentials_path: Optional[str] = None) -> storage.Client:
    """
    Get Google Cloud Storage client.

    Args:
        credentials_path: Optional service account JSON path

    Returns:
        storage.Client instance

    Raises:
        StorageUnavailableError: If client cannot be created
    """
    try:
        if credentials_path:
            return storage.Client.from_service_account_json(credentials_path)
        # Use default credentials (e.g., from environment or gcloud auth)
        return storage.Client()
    except Exception as e:
        raise StorageUnavailableError(f"Failed to create GCS client: {str(e)}")


def photo_path(location_id: str, index: int) -> str:
    """Blob path for a location's photo slot: location_photos/{id}/{index}.jpg"""
    return f"{PHOTO_PATH_PREFIX}/{location_id}/{index}.jpg"


class DurableStorageWriter:
    """
    Writes validated photo bytes to a public Cloud Storage bucket.

    One writer (and one client) per process; the bucket handle is created
    once in the constructor.
    """

    def __init__(self, bucket_name: Optional[str], client: Optional[storage.Client] = None):
        if not bucket_name:
            raise StorageUnavailableError("FIREBASE_STORAGE_BUCKET (or GCS_BUCKET_NAME) is not set")
        self.bucket_name = bucket_name
        self.client = client or get_storage_client()
        self.bucket = self.client.bucket(bucket_name)

    def get_public_url(self, bucket_path: str) -> str:
        """Public URL for an object in the bucket."""
        return f"{PUBLIC_URL_BASE}/{self.bucket_name}/{bucket_path}"

    def store_photo(
        self,
        location_id: str,
        index: int,
        image_bytes: bytes,
        content_type: str = "image/jpeg",
    ) -> str:
        """
        Upload a photo to its slot and make it public.

        Writing to an existing slot overwrites it.

        Args:
            location_id: Location id (folder name)
            index: Zero-based slot index (original reference position)
            image_bytes: Image data
            content_type: MIME type of the image

        Returns:
            Public URL of the stored photo

        Raises:
            StorageUnavailableError: If the upload fails
        """
        bucket_path = photo_path(location_id, index)

        try:
            blob = self.bucket.blob(bucket_path)
            blob.cache_control = PHOTO_CACHE_CONTROL
            blob.upload_from_string(image_bytes, content_type=content_type)
        except GoogleCloudError as e:
            raise StorageUnavailableError(f"GCS upload error for {bucket_path}: {str(e)}")
        except Exception as e:
            raise StorageUnavailableError(f"Failed to upload {bucket_path}: {str(e)}")

        # For buckets with uniform bucket-level access, we can't use make_public()
        # Instead, construct the public URL directly (bucket must be configured for public access)
        try:
            blob.make_public()
        except GoogleCloudError as e:
            logger.debug(f"[GCS] make_public not allowed for {bucket_path}, using bucket URL: {e}")

        public_url = self.get_public_url(bucket_path)
        logger.info(f"[GCS] Uploaded {bucket_path}")
        return public_url

    def delete_location_photos(self, location_id: str) -> int:
        """
        Delete every stored photo for a location.

        Returns:
            Number of objects deleted

        Raises:
            StorageUnavailableError: If listing or deleting fails
        """
        prefix = f"{PHOTO_PATH_PREFIX}/{location_id}/"
        deleted = 0

        try:
            for blob in self.client.list_blobs(self.bucket_name, prefix=prefix):
                try:
                    blob.delete()
                    deleted += 1
                except NotFound:
                    # Already gone, that's okay
                    continue
        except GoogleCloudError as e:
            raise StorageUnavailableError(f"GCS delete error for {prefix}: {str(e)}")

        logger.info(f"[GCS] Deleted {deleted} photos under {prefix}")
        return deleted
