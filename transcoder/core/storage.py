# Output storage - media directory layout, local filesystem backend, MinIO mirror backend

import logging
import mimetypes
import os
from pathlib import Path
from typing import List, Optional

import urllib3
from minio import Minio
from minio.error import S3Error

from .exceptions import StorageError

logger = logging.getLogger(__name__)

# Streaming formats mimetypes does not know about on every platform
CONTENT_TYPES = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".ts": "video/mp2t",
    ".vtt": "text/vtt",
    ".jpg": "image/jpeg",
}


class MediaPaths:
    """
    Filesystem layout of the media root, partitioned per video id:

        <root>/hls/<video_id>/master.m3u8
        <root>/hls/thumbnails/<video_id>.jpg
        <root>/hls/thumbnails/<video_id>-sprite.jpg
        <root>/hls/thumbnails/<video_id>-sprite.vtt

    hls_root overrides <root>/hls when a job names its own output directory;
    thumbnails then sit beside that job's HLS directory.
    """

    def __init__(self, root: str, hls_root: Optional[str] = None):
        self.root = os.path.abspath(root)
        self.hls_root = os.path.abspath(hls_root) if hls_root else os.path.join(self.root, "hls")
        self.thumbnails_dir = os.path.join(self.hls_root, "thumbnails")

    @classmethod
    def for_output_dir(cls, root: str, output_dir: str) -> "MediaPaths":
        """Layout whose HLS root is the parent of a job's output directory"""
        return cls(root, hls_root=os.path.dirname(os.path.normpath(output_dir)))

    def hls_dir(self, video_id: str) -> str:
        return os.path.join(self.hls_root, video_id)

    def thumbnail_path(self, video_id: str) -> str:
        return os.path.join(self.thumbnails_dir, f"{video_id}.jpg")

    def sprite_path(self, video_id: str) -> str:
        return os.path.join(self.thumbnails_dir, f"{video_id}-sprite.jpg")

    def vtt_path(self, video_id: str) -> str:
        return os.path.join(self.thumbnails_dir, f"{video_id}-sprite.vtt")


class LocalStorage:
    """Outputs stay where FFmpeg wrote them; publishing is a no-op"""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def write_text(self, path: str, content: str) -> str:
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise StorageError(f"Failed to write '{path}': {e}") from e
        return path

    def publish(self, path: str) -> List[str]:
        return []


class MinIOStorage(LocalStorage):
    """Writes to the local media root and mirrors published files into a bucket"""

    def __init__(
        self,
        root: str,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        client: Optional[Minio] = None,
    ):
        super().__init__(root)
        self.bucket_name = bucket

        if client is None:
            # Remove protocol prefix for endpoint
            secure = endpoint.startswith("https://")
            endpoint = endpoint.replace("http://", "").replace("https://", "")

            http_client = urllib3.PoolManager(
                maxsize=int(os.getenv("S3_HTTP_POOL_MAXSIZE", "16")),
                timeout=urllib3.Timeout(connect=5, read=60),
                retries=urllib3.Retry(
                    total=3,
                    backoff_factor=0.2,
                    status_forcelist=[500, 502, 503, 504],
                ),
            )
            client = Minio(
                endpoint=endpoint,
                access_key=access_key,
                secret_key=secret_key,
                secure=secure,
                http_client=http_client,
            )
        self.client = client
        self._ensure_bucket_exists()

    def _ensure_bucket_exists(self) -> None:
        """Create bucket if it doesn't exist"""
        try:
            if not self.client.bucket_exists(self.bucket_name):
                self.client.make_bucket(self.bucket_name)
        except S3Error as e:
            raise StorageError(f"Failed to create/access bucket '{self.bucket_name}': {e}") from e

    def object_name(self, path: str) -> str:
        """Object key for a local path, relative to the media root"""
        relative = os.path.relpath(os.path.abspath(path), self.root)
        if relative.startswith(".."):
            raise StorageError(f"Path '{path}' is outside the media root {self.root}")
        return Path(relative).as_posix()

    def _upload(self, path: str) -> str:
        object_name = self.object_name(path)
        extension = os.path.splitext(path)[1].lower()
        content_type = (
            CONTENT_TYPES.get(extension)
            or mimetypes.guess_type(path)[0]
            or "application/octet-stream"
        )
        try:
            self.client.fput_object(
                bucket_name=self.bucket_name,
                object_name=object_name,
                file_path=path,
                content_type=content_type,
            )
        except S3Error as e:
            raise StorageError(f"Failed to upload file '{object_name}': {e}") from e
        return object_name

    def write_text(self, path: str, content: str) -> str:
        super().write_text(path, content)
        self._upload(path)
        return path

    def publish(self, path: str) -> List[str]:
        """
        Upload a file, or every file under a directory

        Returns:
            List of object keys written
        """
        if os.path.isfile(path):
            return [self._upload(path)]

        uploaded = []
        for dirpath, _, filenames in os.walk(path):
            for filename in sorted(filenames):
                uploaded.append(self._upload(os.path.join(dirpath, filename)))
        logger.info(f"Published {len(uploaded)} file(s) from {path} to bucket {self.bucket_name}")
        return uploaded


def create_storage(settings) -> LocalStorage:
    """Build the storage backend selected by settings.storage_backend"""
    if settings.storage_backend == "minio":
        missing = [
            name for name in ("s3_endpoint", "s3_access_key", "s3_secret_key", "s3_bucket")
            if not getattr(settings, name)
        ]
        if missing:
            raise StorageError(f"MinIO storage requires settings: {', '.join(missing)}")
        return MinIOStorage(
            root=settings.media_root,
            endpoint=settings.s3_endpoint,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            bucket=settings.s3_bucket,
        )
    return LocalStorage(settings.media_root)
