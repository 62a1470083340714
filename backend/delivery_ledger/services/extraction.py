"""AI-assisted extraction of delivery rows from photos of printed delivery sheets."""
from __future__ import annotations

import base64
import io
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import openai
import pillow_heif
from openai import AsyncOpenAI
from PIL import Image, UnidentifiedImageError

from delivery_ledger.core.config import get_settings
from delivery_ledger.core.errors import IngestionError
from delivery_ledger.core.logging import logger

pillow_heif.register_heif_opener()


EXT_TO_MIME = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
}

EXTRACTION_PROMPT = """Extract every delivery row from this photo of a delivery spreadsheet.
Columns of interest: PLACA (plate), MOTORISTA (driver), AJUDANTE (helper),
ROTA (route), ENTREGAS (number of deliveries), CARGA (load number) and
VALOR (amount in BRL).

Return ONLY a JSON object of the form {"records": [...]} where each item has
the keys: motorista, placa, ajudantes, rota, entregas, carga, valor.
entregas and valor must be numbers; use null for anything unreadable.
"""


def is_image(filename: str, content_type: Optional[str] = None) -> bool:
    if content_type and content_type.startswith("image/"):
        return True
    return Path(filename or "").suffix.lower() in EXT_TO_MIME


class ImageExtractionService:
    """Send a photo to an OpenAI-compatible vision model and read back rows."""

    def __init__(self) -> None:
        self.settings = get_settings()
        self.model = self.settings.vision_model
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = self.settings.resolved_openai_api_key()
            if api_key is None:
                raise IngestionError(
                    "Photo import is not configured: set OPENAI_API_KEY or a local OPENAI_BASE_URL",
                    source="image",
                )
            self._client = AsyncOpenAI(api_key=api_key, base_url=self.settings.openai_base_url or None)
        return self._client

    @staticmethod
    def _convert_heic_to_jpeg(content: bytes) -> bytes:
        try:
            with Image.open(io.BytesIO(content)) as image:
                buffer = io.BytesIO()
                image.convert("RGB").save(buffer, format="JPEG", quality=90)
        except (UnidentifiedImageError, OSError) as exc:
            raise IngestionError(f"Could not read HEIC/HEIF photo: {exc}", source="image") from exc
        return buffer.getvalue()

    def _prepare_image(self, content: bytes, filename: str, content_type: Optional[str]) -> tuple[bytes, str]:
        mime_type = content_type if content_type and content_type.startswith("image/") else None
        if mime_type is None:
            mime_type = EXT_TO_MIME.get(Path(filename or "").suffix.lower(), "image/jpeg")
        if mime_type in {"image/heic", "image/heif"}:
            return self._convert_heic_to_jpeg(content), "image/jpeg"
        return content, mime_type

    @staticmethod
    def _parse_rows(raw: str) -> List[Dict[str, Any]]:
        try:
            payload = json.loads(raw or "{}")
        except json.JSONDecodeError as exc:
            raise IngestionError("Extraction returned malformed JSON", source="image") from exc

        if isinstance(payload, dict):
            payload = payload.get("records", [])
        if not isinstance(payload, list):
            raise IngestionError("Extraction returned an unexpected structure", source="image")
        return [item for item in payload if isinstance(item, dict)]

    async def extract_records(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return raw candidate rows read from the photo.

        Raises ``IngestionError`` on service failure or unusable output so the
        caller can abort the import without committing anything.
        """
        client = self._get_client()
        image_bytes, mime_type = self._prepare_image(content, filename, content_type)
        data_url = f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": "You are a data extraction specialist for delivery logistics sheets. Return only valid JSON.",
                    },
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": EXTRACTION_PROMPT},
                            {"type": "image_url", "image_url": {"url": data_url}},
                        ],
                    },
                ],
                temperature=self.settings.llm_temperature,
                max_tokens=self.settings.llm_max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as exc:
            logger.error("Photo extraction request failed", filename=filename, error=str(exc))
            raise IngestionError(
                "Could not read the photo. Check that the MOTORISTA, ROTA and VALOR columns are visible.",
                source="image",
            ) from exc

        rows = self._parse_rows(response.choices[0].message.content)
        logger.info("Photo extraction completed", filename=filename, rows=len(rows))
        return rows


extraction_service = ImageExtractionService()
