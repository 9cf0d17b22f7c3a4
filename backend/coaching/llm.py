# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Client for the local language model.

The model runs out of process behind an OpenAI-compatible completion API
(GPT4All's local server by default, vLLM or llama.cpp work the same way).
``CompletionClient.stream`` returns a finite, one-shot generator of text
chunks read from the server-sent event stream.  Closing the generator
early (client went away) closes the HTTP response, which makes the server
stop generating.

``stream_completion`` adapts that blocking generator for async callers by
pulling each chunk on the thread pool.

With ``llm_offline`` set, no HTTP call is made and a canned reply is
streamed instead; used for UI work and tests.
"""

from typing import AsyncIterator, Iterator, Optional

import orjson
import requests
from starlette.concurrency import iterate_in_threadpool

from core.config import settings
from core.errors import ModelUnavailable
from core.logger import logger
from coaching.prompts import STOP_SEQUENCES

FALLBACK_REPLY = (
    "I encountered a technical issue. Let's continue your minimalism journey - "
    "what would you like to work on?"
)

OFFLINE_REPLY = (
    "Let's keep it simple: pick one item you have not used this month and decide "
    "today whether it still earns its place."
)


class CompletionClient:
    """Low-level HTTP client for OpenAI-style /v1/completions streaming."""

    def __init__(
        self,
        base_url: str,
        model_name: str,
        timeout: float = 60.0,
        offline: bool = False,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model_name = model_name
        self.timeout = timeout
        self.offline = offline
        self._http = http or requests.Session()

    def stream(self, prompt: str, generation: dict) -> Iterator[str]:
        if self.offline:
            yield from self._offline_chunks()
            return

        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "temperature": generation.get("temperature", 0.65),
            "max_tokens": generation.get("max_tokens", 190),
            "top_p": generation.get("top_p", 0.9),
            "stop": STOP_SEQUENCES,
            "stream": True,
        }
        url = self.base_url + "/v1/completions"
        try:
            resp = self._http.post(url, json=payload, stream=True, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("Language model unreachable at %s: %s", self.base_url, exc)
            raise ModelUnavailable() from exc

        with resp:
            try:
                resp.raise_for_status()
                for line in resp.iter_lines(decode_unicode=True):
                    chunk = self._parse_event(line)
                    if chunk is None:
                        break
                    if chunk:
                        yield chunk
            except requests.RequestException as exc:
                logger.error("Language model stream failed: %s", exc)
                raise ModelUnavailable() from exc

    def complete(self, prompt: str, generation: dict) -> str:
        return "".join(self.stream(prompt, generation)).strip()

    @staticmethod
    def _parse_event(line: Optional[str]) -> Optional[str]:
        """
        Return the text carried by one SSE line, "" for lines without text,
        or None for the terminating ``[DONE]`` event.
        """
        if not line or not line.startswith("data:"):
            return ""
        data = line[len("data:"):].strip()
        if data == "[DONE]":
            return None
        try:
            event = orjson.loads(data)
            return event["choices"][0].get("text") or ""
        except (orjson.JSONDecodeError, KeyError, IndexError, TypeError, AttributeError) as exc:
            raise ModelUnavailable("Malformed response from the language model") from exc

    @staticmethod
    def _offline_chunks() -> Iterator[str]:
        words = OFFLINE_REPLY.split(" ")
        for index, word in enumerate(words):
            yield word if index == len(words) - 1 else word + " "


async def stream_completion(client: CompletionClient, prompt: str, generation: dict) -> AsyncIterator[str]:
    """Async view of ``client.stream``; closing it abandons the generation."""
    chunks = client.stream(prompt, generation)
    try:
        async for chunk in iterate_in_threadpool(chunks):
            yield chunk
    finally:
        chunks.close()


_client: Optional[CompletionClient] = None


def get_completion_client() -> CompletionClient:
    """FastAPI dependency returning the process-wide client."""
    global _client
    if _client is None:
        _client = CompletionClient(
            settings.llm_base_url,
            settings.llm_model_name,
            timeout=settings.llm_timeout_seconds,
            offline=settings.llm_offline,
        )
    return _client
