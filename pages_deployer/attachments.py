# attachments.py
import base64
import binascii
import logging
import os
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import unquote_to_bytes

import httpx

from .models import Attachment

logger = logging.getLogger("pages_deployer.attachments")

DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*),(?P<data>.*)$", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class LoadedAttachment:
    name: str
    mime_type: str
    data: bytes

    def as_text(self) -> Optional[str]:
        try:
            return self.data.decode("utf-8")
        except UnicodeDecodeError:
            return None


def decode_data_uri(data_uri: str) -> Optional[Tuple[str, bytes]]:
    """Split a ``data:`` URI into (mime type, payload bytes).

    Returns None when ``data_uri`` is not a well-formed data URI.
    """
    match = DATA_URI_RE.match(data_uri or "")
    if not match:
        return None
    mime_type = match.group("mime") or "text/plain"
    params = match.group("params").lower()
    payload = match.group("data")
    if ";base64" in params:
        try:
            return mime_type, base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError):
            return None
    return mime_type, unquote_to_bytes(payload)


def safe_filename(name: str) -> Optional[str]:
    base = os.path.basename((name or "").replace("\\", "/")).strip()
    if not base or base in (".", ".."):
        return None
    return base


async def load_attachments(attachments: List[Attachment], transport: Optional[httpx.AsyncBaseTransport] = None) -> List[LoadedAttachment]:
    """Decode inline attachments and fetch remote ones.

    Entries that cannot be decoded or fetched are logged and skipped.
    """
    loaded = []
    if not attachments:
        return loaded
    logger.info(f"[ATTACHMENTS] Processing {len(attachments)} attachments")
    async with httpx.AsyncClient(timeout=30, transport=transport) as client:
        for attachment in attachments:
            filename = safe_filename(attachment.name)
            url = attachment.url
            if not filename or not url:
                logger.warning(f"[ATTACHMENTS] Skipping invalid attachment entry: {attachment.name!r}")
                continue
            if url.startswith("data:"):
                decoded = decode_data_uri(url)
                if decoded is None:
                    logger.warning(f"[ATTACHMENTS] Malformed data URI for {filename}")
                    continue
                mime_type, file_bytes = decoded
            elif url.startswith(("http://", "https://")):
                try:
                    resp = await client.get(url)
                    resp.raise_for_status()
                except httpx.HTTPError as e:
                    logger.warning(f"[ATTACHMENTS] Failed to fetch {url}: {e}")
                    continue
                mime_type = resp.headers.get("Content-Type", "application/octet-stream").split(";")[0]
                file_bytes = resp.content
            else:
                logger.warning(f"[ATTACHMENTS] Unsupported attachment URL scheme for {filename}")
                continue
            logger.info(f"   -> Loaded attachment: {filename} (bytes: {len(file_bytes)})")
            loaded.append(LoadedAttachment(name=filename, mime_type=mime_type, data=file_bytes))
    return loaded


def summarize_for_prompt(attachments: List[LoadedAttachment], preview_chars: int) -> str:
    """Render attachments as prompt context, keeping only a prefix of each."""
    sections = []
    for att in attachments:
        text = att.as_text()
        if text is None:
            body = f"(binary {att.mime_type} file, {len(att.data)} bytes)"
        else:
            body = text[:preview_chars]
        sections.append(f"**File: {att.name}**\n```\n{body}\n```")
    return "\n\n".join(sections)
