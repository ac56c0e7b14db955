"""Code generation service client and response parser."""

import logging
import re
from typing import List, Optional

import httpx

from .errors import GenerationFailure
from .models import GeneratedFile

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an expert Flutter developer creating modern Flutter 3.24+ applications. \
Generate ONLY working, error-free code using current Flutter APIs.

- Use Material Design 3 components only.
- Use current TextTheme properties (headlineMedium, bodyLarge, ...), never headline1-6, \
bodyText1-2, subtitle1-2, caption or overline.
- Include every import each file needs; use only real, published pub.dev packages with \
exact versions in pubspec.yaml.
- Handle errors and loading states for every async operation.

Respond with complete files in exactly this format, no extra text:

=== pubspec.yaml ===
<complete pubspec.yaml>
=== lib/main.dart ===
<complete main.dart>
=== lib/screens/home_screen.dart ===
<complete home screen>
=== README.md ===
<setup instructions>
"""

_FILE_MARKER = re.compile(r"===\s*(.+?)\s*===")
_FENCE_OPEN = re.compile(r"```[a-zA-Z]*\n?")


def clean_content(content: str) -> str:
    """Remove Markdown code fences from file content."""
    return _FENCE_OPEN.sub("", content).replace("```", "")


def parse_files(response: str) -> List[GeneratedFile]:
    """Split a ``=== path ===`` delimited response into files.

    Blocks with an empty path or empty content are dropped.
    """
    blocks = _FILE_MARKER.split(response)[1:]
    files = []
    for i in range(0, len(blocks), 2):
        path = blocks[i].strip()
        content = blocks[i + 1].strip() if i + 1 < len(blocks) else ""
        if path and content:
            files.append(GeneratedFile(relative_path=path, content=content))
    return files


class GenerationClient:
    """Calls a chat-completions endpoint and returns the raw completion text."""

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.mistral.ai/v1/chat/completions",
        model: str = "mistral-large-latest",
        timeout: float = 180.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.timeout = timeout
        self._client = client

    def build_payload(self, prompt: str) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": 16384,
            "temperature": 0.1,
        }

    async def _post(self, client: httpx.AsyncClient, prompt: str) -> httpx.Response:
        return await client.post(
            self.api_url,
            json=self.build_payload(prompt),
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )

    async def generate(self, prompt: str) -> str:
        try:
            if self._client is not None:
                response = await self._post(self._client, prompt)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, prompt)
        except httpx.HTTPError as e:
            raise GenerationFailure(f"Generation service unreachable: {e}") from e

        if response.is_error:
            raise GenerationFailure(f"Mistral API error: {response.status_code} {response.text}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationFailure(f"Malformed generation response: {e!r}") from e
        logger.info("Generation service returned %d characters", len(content or ""))
        return content or ""

    async def generate_files(self, prompt: str) -> List[GeneratedFile]:
        """Generate and parse. Raises ``GenerationFailure`` if nothing parses."""
        files = parse_files(await self.generate(prompt))
        if not files:
            raise GenerationFailure("No files generated from AI response")
        return files
