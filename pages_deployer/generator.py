# generator.py
import logging
import re
from typing import List, Optional

import httpx

from .attachments import LoadedAttachment, summarize_for_prompt
from .errors import GenerationFailed
from .settings import Settings

logger = logging.getLogger("pages_deployer.generator")

HTML_FENCE_RE = re.compile(r"```html[^\S\n]*\n?(.*?)(?:```|\Z)", re.IGNORECASE | re.DOTALL)
ANY_FENCE_RE = re.compile(r"```(?:[\w+-]*[^\S\n]*\n)?(.*?)(?:```|\Z)", re.DOTALL)

BANNER = "=" * 80


def extract_code_block(text: str) -> str:
    """Return the inner text of the first fenced code block in ``text``.

    An ``html`` tagged block wins over an earlier untagged one. Without any
    fence the response is returned untouched.
    """
    if "```" not in text:
        return text
    match = HTML_FENCE_RE.search(text) or ANY_FENCE_RE.search(text)
    if not match:
        return text
    return match.group(1).strip()


def _checklist(checks: List[str]) -> str:
    return "\n".join(f"- {c}" for c in checks)


def build_render_prompt(brief: str, checks: List[str], attachment_context: str) -> str:
    prompt_parts = [
        "You are an expert web developer. Create a minimal, production-ready single-page HTML application.",
        "",
        BANNER,
        "TASK BRIEF",
        BANNER,
        brief,
        "",
    ]
    if attachment_context:
        prompt_parts.extend([
            BANNER,
            "ATTACHED FILES (saved next to index.html, reference them by exact name)",
            BANNER,
            attachment_context,
            "",
        ])
    if checks:
        prompt_parts.extend([
            BANNER,
            "CHECKS (must pass all)",
            BANNER,
            _checklist(checks),
            "",
        ])
    prompt_parts.extend([
        BANNER,
        "REQUIREMENTS",
        BANNER,
        "1. Return ONLY valid HTML (single file, no build step)",
        "2. Include all necessary JS/CSS inline or via CDN",
        "3. Use semantic HTML and ARIA labels",
        "4. Handle errors gracefully",
        "5. Make it responsive and accessible",
        "",
        "Return ONLY the HTML code block wrapped in triple backticks, nothing else.",
    ])
    return "\n".join(prompt_parts)


def build_revise_prompt(existing: str, brief: str, checks: List[str]) -> str:
    prompt_parts = [
        "You are an expert web developer. Improve the existing HTML application based on the new requirements.",
        "",
        BANNER,
        "CURRENT HTML",
        BANNER,
        f"```html\n{existing}\n```",
        "",
        BANNER,
        "NEW REQUIREMENTS",
        BANNER,
        brief,
        "",
    ]
    if checks:
        prompt_parts.extend([
            BANNER,
            "NEW CHECKS (must pass all)",
            BANNER,
            _checklist(checks),
            "",
        ])
    prompt_parts.extend([
        BANNER,
        "UPDATE INSTRUCTIONS",
        BANNER,
        "1. Improve the existing code, do not rewrite it from scratch",
        "2. Keep the same structure and style",
        "3. Add only the new features requested",
        "4. Ensure all checks pass",
        "",
        "Return ONLY the complete updated HTML code block wrapped in triple backticks, nothing else.",
    ])
    return "\n".join(prompt_parts)


class Generator:
    """Produces and revises single-file web apps through a chat-completion endpoint."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    async def render(self, brief: str, checks: List[str], attachments: List[LoadedAttachment]) -> str:
        context = summarize_for_prompt(attachments, self.settings.ATTACHMENT_PREVIEW_CHARS)
        logger.info(f"[LLM] Generating app ({len(checks)} checks, {len(attachments)} attachments)")
        artifact = await self._complete(build_render_prompt(brief, checks, context))
        logger.info(f"[LLM] App generated (chars: {len(artifact)})")
        return artifact

    async def revise(self, existing: str, brief: str, checks: List[str]) -> str:
        excerpt = existing[: self.settings.REVISE_CONTEXT_CHARS]
        logger.info(f"[LLM] Revising app (existing chars: {len(existing)}, forwarded: {len(excerpt)})")
        artifact = await self._complete(build_revise_prompt(excerpt, brief, checks))
        logger.info(f"[LLM] App revised (chars: {len(artifact)})")
        return artifact

    async def _complete(self, prompt: str) -> str:
        if not self.settings.LLM_API_KEY:
            raise GenerationFailed("LLM_API_KEY not configured.")
        payload = {
            "model": self.settings.LLM_MODEL,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.settings.LLM_MAX_TOKENS,
            "temperature": self.settings.LLM_TEMPERATURE,
        }
        headers = {
            "Authorization": f"Bearer {self.settings.LLM_API_KEY}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.settings.LLM_TIMEOUT_SECONDS, transport=self.transport) as client:
                resp = await client.post(self.settings.LLM_API_URL, json=payload, headers=headers)
                resp.raise_for_status()
                content = resp.json()["choices"][0]["message"]["content"]
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:500]
            logger.error(f"[LLM] HTTP {e.response.status_code} from completion endpoint: {detail}")
            raise GenerationFailed(f"Failed to generate app: HTTP {e.response.status_code}: {detail}") from e
        except httpx.HTTPError as e:
            logger.error(f"[LLM] Request error: {e!r}")
            raise GenerationFailed(f"Failed to generate app: {e!r}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise GenerationFailed(f"Failed to generate app: malformed completion response ({e!r})") from e
        if not isinstance(content, str):
            raise GenerationFailed("Failed to generate app: completion content is not text")
        return extract_code_block(content)
