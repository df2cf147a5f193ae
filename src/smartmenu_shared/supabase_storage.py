"""
Supabase Storage helper for QR code uploads.
"""

from __future__ import annotations

import logging
import os
from typing import Any
from urllib.parse import quote

from supabase import Client, create_client

from smartmenu_shared.config import load_config

logger = logging.getLogger(__name__)


class SupabaseStorage:
    """Lightweight wrapper around Supabase Storage buckets."""

    _client: Client | None = None

    @classmethod
    def _get_client(cls) -> Client | None:
        if cls._client is None:
            config = load_config(os.getenv("APP_NAME", "smartmenu"))
            if not config.supabase_url or not config.supabase_service_role_key:
                logger.info("Supabase Storage credentials missing; uploads disabled.")
                return None
            try:
                cls._client = create_client(config.supabase_url, config.supabase_service_role_key)
            except Exception as exc:
                logger.error("Failed to initialize Supabase Storage client: %s", exc)
                return None
        return cls._client

    @classmethod
    def is_available(cls) -> bool:
        """Check whether the Supabase client is ready for storage operations."""
        return cls._get_client() is not None

    @classmethod
    def upload_bytes(
        cls,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str | None = None,
    ) -> dict[str, Any]:
        client = cls._get_client()
        if client is None:
            raise RuntimeError("Supabase client not available")

        options: dict[str, Any] = {"upsert": "true"}
        if content_type:
            options["content-type"] = content_type

        response = client.storage.from_(bucket).upload(path, content, options)
        return response.model_dump() if hasattr(response, "model_dump") else {"data": response}

    @classmethod
    def get_public_url(cls, bucket: str, path: str) -> str:
        config = load_config(os.getenv("APP_NAME", "smartmenu"))
        safe_path = quote(path, safe="/")
        return f"{config.supabase_url}/storage/v1/object/public/{bucket}/{safe_path}"
