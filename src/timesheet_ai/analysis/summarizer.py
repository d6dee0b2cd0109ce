"""AI summarization of timesheet entries."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from timesheet_ai.core.errors import SummarizerError
from timesheet_ai.core.models import TimesheetEntry

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"

SYSTEM_INSTRUCTION = """\
Anda adalah asisten AI yang bertugas merangkum poin-poin penting dari catatan kerja.
Analisis data timesheet berikut dan buat ringkasan singkat dalam bentuk poin-poin (bullet points).
Fokus hanya pada pencapaian utama dan hasil konkret. Hindari kalimat yang panjang dan bertele-tele.
Tujuannya adalah untuk memberikan inti sari dari pekerjaan yang telah dilakukan.
Format output dalam Markdown."""

COMMUNICATION_ERROR = (
    "Gagal berkomunikasi dengan AI. Pastikan koneksi dan konfigurasi Anda benar."
)


def format_entries_for_prompt(entries: list[TimesheetEntry]) -> str:
    """Render entries as the plain-text block sent to the model."""
    return "\n\n".join(
        f"- Tanggal: {e.date}, Waktu Kerja: {e.start_time}-{e.end_time}\n  Rangkuman: {e.task}"
        for e in entries
    )


class Summarizer(ABC):
    """Base class for summarization services."""

    @abstractmethod
    async def summarize(
        self, entries: list[TimesheetEntry], instructions: Optional[str] = None
    ) -> str:
        """Generate a summary of the given entries.

        Args:
            entries: Entries to summarize
            instructions: Free-text instructions replacing the default ones

        Returns:
            Generated text (Markdown)

        Raises:
            SummarizerError: If the service cannot be reached or fails
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the summarizer."""
        pass


class GeminiSummarizer(Summarizer):
    """Summarizer backed by the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        temperature: float = 0.3,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
        base_url: str = GEMINI_API_URL,
    ):
        """Initialize Gemini summarizer.

        Args:
            api_key: Gemini API key
            model: Model name
            temperature: Sampling temperature
            http: HTTP client to use. Creates one if None
            timeout: Request timeout in seconds for a created client
            base_url: API root
        """
        if not api_key:
            raise ValueError("Gemini API key is not set")
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.base_url = base_url.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._http.aclose()

    def build_request(
        self, entries: list[TimesheetEntry], instructions: Optional[str] = None
    ) -> dict[str, Any]:
        """Build the ``generateContent`` request body."""
        contents = (
            "Berikut adalah data catatan kerja harian yang perlu diringkas:\n"
            f"{format_entries_for_prompt(entries)}"
        )
        return {
            "systemInstruction": {"parts": [{"text": instructions or SYSTEM_INSTRUCTION}]},
            "contents": [{"role": "user", "parts": [{"text": contents}]}],
            "generationConfig": {"temperature": self.temperature},
        }

    async def summarize(
        self, entries: list[TimesheetEntry], instructions: Optional[str] = None
    ) -> str:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            response = await self._http.post(
                url,
                json=self.build_request(entries, instructions),
                headers={"x-goog-api-key": self.api_key},
            )
            response.raise_for_status()
            return self._extract_text(response.json())
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Error generating performance review: {e}")
            raise SummarizerError(COMMUNICATION_ERROR) from e

    @staticmethod
    def _extract_text(data: dict[str, Any]) -> str:
        parts = data["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            raise ValueError("Model returned no text")
        return text
