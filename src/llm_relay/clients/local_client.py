"""In-process GGUF model handle backed by llama-cpp-python.

llama.cpp generation is blocking, so a worker thread drives it and hands
chunks to the event loop through an ``asyncio.Queue``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import threading
from typing import Any, AsyncIterator

from ..models.content import AdaptedTurn
from ..providers.profile import ProviderProfile
from ..utils.config import ModelDefinition
from .base import ModelHandle, StreamChunk

try:
    from llama_cpp import Llama
    _llama_cpp_available = True
except ImportError:
    Llama = None
    _llama_cpp_available = False

logger = logging.getLogger(__name__)


class LocalModelHandle(ModelHandle):
    """Runs a GGUF model from ``model_path`` in a single worker thread."""

    def __init__(
        self,
        definition: ModelDefinition,
        profile: ProviderProfile,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        llm: Any | None = None,
    ):
        if llm is None and not _llama_cpp_available:
            raise ImportError(
                "`llama-cpp-python` not found. Install the 'local' extra: pip install 'llm-relay[local]'"
            )
        super().__init__(definition, profile, temperature, max_tokens)
        self._llm = llm
        self._load_lock = threading.Lock()

    def _load_model(self) -> Any:
        with self._load_lock:
            if self._llm is not None:
                return self._llm
            model_path = self.definition.model_path or self.definition.model_id
            if not model_path:
                raise ValueError(f"Model alias '{self.definition.alias}' has no model_path")
            logger.info(f"Loading GGUF model: {model_path}")
            with open(os.devnull, "w") as fnull, contextlib.redirect_stderr(fnull):
                self._llm = Llama(
                    model_path=os.path.expanduser(model_path),
                    n_ctx=self.definition.context_window or 8192,
                    verbose=False,
                )
            return self._llm

    def _generation_params(self, turns: list[AdaptedTurn], stream: bool) -> dict[str, Any]:
        return {
            "messages": [{"role": turn.role, "content": turn.text} for turn in turns],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stream": stream,
        }

    async def stream(self, turns: list[AdaptedTurn]) -> AsyncIterator[StreamChunk]:
        loop = asyncio.get_running_loop()
        chunk_queue: asyncio.Queue = asyncio.Queue()
        stop_event = threading.Event()
        params = self._generation_params(turns, stream=True)

        def _emit(item: Any) -> None:
            if not loop.is_closed():
                loop.call_soon_threadsafe(chunk_queue.put_nowait, item)

        def _stream_to_queue() -> None:
            try:
                raw_stream = self._load_model().create_chat_completion(**params)
                for raw in raw_stream:
                    if stop_event.is_set():
                        break
                    choices = raw.get("choices") or []
                    delta = choices[0].get("delta", {}) if choices else {}
                    text = delta.get("content")
                    if text:
                        _emit(StreamChunk(content=text))
            except Exception as e:
                if not stop_event.is_set():
                    _emit(e)
            finally:
                _emit(None)  # Sentinel

        worker = threading.Thread(target=_stream_to_queue, daemon=True, name="llama-cpp-stream")
        worker.start()
        try:
            while True:
                item = await chunk_queue.get()
                if item is None:
                    break
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            # Consumer stopped early (cancellation) or finished
            stop_event.set()

    async def invoke(self, turns: list[AdaptedTurn]) -> StreamChunk:
        params = self._generation_params(turns, stream=False)
        completion = await asyncio.to_thread(lambda: self._load_model().create_chat_completion(**params))
        message = completion["choices"][0]["message"]
        return StreamChunk(content=message.get("content") or "")
