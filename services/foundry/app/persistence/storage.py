"""Export bundle publishing (S3/MinIO or local files)."""
from __future__ import annotations

import hashlib
import os

import aioboto3
import structlog

from ..config import StorageSettings, get_settings
from ..domain.types import ExportTarget

logger = structlog.get_logger(__name__)


class ExportBundleStorage:
    """Publish export packs under content-hash keys.

    Without a configured bucket the bundle is written below ``local_dir``.
    """

    def __init__(self, settings: StorageSettings | None = None, local_dir: str = "./.artifacts") -> None:
        self._settings = settings or get_settings().storage
        self._local_dir = local_dir

    async def put_pack(self, project_id: str, target: ExportTarget, text: str) -> str:
        """Store a rendered pack and return its reference."""
        payload = text.encode("utf-8")
        digest = hashlib.sha256(payload).hexdigest()
        key = f"exports/{project_id}/{target.value}-{digest}.md"

        if not self._settings.s3_bucket:
            path = os.path.join(self._local_dir, key)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as handle:
                handle.write(payload)
            ref = f"file://{path}"
        else:
            session = aioboto3.Session()
            async with session.client(
                "s3",
                endpoint_url=self._settings.s3_endpoint,
                region_name=self._settings.s3_region,
            ) as client:
                await client.put_object(
                    Bucket=self._settings.s3_bucket,
                    Key=key,
                    Body=payload,
                    ContentType="text/markdown",
                )
            ref = f"s3://{self._settings.s3_bucket}/{key}"

        logger.info("export_storage.published", project_id=project_id, target=target.value, ref=ref)
        return ref


__all__ = ["ExportBundleStorage"]
