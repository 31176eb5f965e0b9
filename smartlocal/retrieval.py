"""Asynchronous, correlated retrieval of locale asset bytes."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import pathlib
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Set

from .structures import AssetCatalogEntry

log = logging.getLogger(__name__)

REQUEST_TYPE = "request-image-bytes"
RESPONSE_TYPE = "image-bytes-response"
REQUEST_TIMEOUT_SECONDS = 10.0

MessageSender = Callable[[Dict[str, Any]], None]
ImageFactory = Callable[[bytes], str]


def decode_payload(payload: Any) -> Optional[bytes]:
    """Coerce a response payload into bytes, or None when unusable."""

    if isinstance(payload, (bytes, bytearray, memoryview)):
        data = bytes(payload)
    elif isinstance(payload, list):
        try:
            data = bytes(payload)
        except (TypeError, ValueError):
            return None
    elif isinstance(payload, str):
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            return None
    else:
        return None
    return data or None


@dataclass
class PendingByteRequest:
    """An in-flight request waiting for its correlated response."""

    request_id: str
    file_key: str
    future: "asyncio.Future[Optional[bytes]]"
    timeout_handle: asyncio.TimerHandle


class ImageByteRetriever:
    """Requests asset bytes from an external source and caches image handles.

    Requests are signalled through ``send`` and resolved when the source
    calls :meth:`handle_response` with the same request id. A request that
    gets no answer within the timeout resolves to ``None``; nothing here
    raises for a missing or failed response.
    """

    def __init__(
        self,
        send: MessageSender,
        *,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._send = send
        self._timeout = timeout
        self._pending: Dict[str, PendingByteRequest] = {}
        self._handles: Dict[str, str] = {}
        self.request_count = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def reset_cache(self) -> None:
        self._handles.clear()

    async def request_bytes(self, file_key: str) -> Optional[bytes]:
        loop = asyncio.get_running_loop()
        request_id = uuid.uuid4().hex
        future: "asyncio.Future[Optional[bytes]]" = loop.create_future()
        handle = loop.call_later(self._timeout, self._expire, request_id)
        self._pending[request_id] = PendingByteRequest(
            request_id=request_id,
            file_key=file_key,
            future=future,
            timeout_handle=handle,
        )
        self.request_count += 1

        try:
            self._send({"type": REQUEST_TYPE, "requestId": request_id, "fileKey": file_key})
        except Exception as exc:
            log.warning("Could not request bytes for %s: %s", file_key, exc)
            self._discard(request_id)
            return None

        return await future

    def handle_response(self, message: Mapping[str, Any]) -> bool:
        """Resolve the pending request a response belongs to.

        Returns False for messages that are not byte responses or that
        arrive after their request has expired.
        """

        if message.get("type") != RESPONSE_TYPE:
            return False
        request_id = message.get("requestId")
        pending = self._pending.pop(request_id, None) if isinstance(request_id, str) else None
        if pending is None:
            log.debug("Ignoring response for unknown request %r.", request_id)
            return False
        pending.timeout_handle.cancel()

        data: Optional[bytes] = None
        if message.get("ok"):
            data = decode_payload(message.get("bytes"))
            if data is None:
                log.warning("Empty or undecodable bytes for %s.", pending.file_key)
        else:
            log.warning(
                "Byte source could not read %s: %s",
                pending.file_key,
                message.get("error") or "unknown error",
            )

        if not pending.future.done():
            pending.future.set_result(data)
        return True

    async def fetch_handle(
        self,
        file_key: str,
        create_image: ImageFactory,
    ) -> Optional[str]:
        """Return an image handle for an asset, requesting bytes only once."""

        cached = self._handles.get(file_key)
        if cached is not None:
            return cached
        data = await self.request_bytes(file_key)
        if data is None:
            return None
        handle = create_image(data)
        self._handles[file_key] = handle
        return handle

    def _expire(self, request_id: str) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        log.warning(
            "Timed out after %.1fs waiting for bytes of %s.",
            self._timeout,
            pending.file_key,
        )
        if not pending.future.done():
            pending.future.set_result(None)

    def _discard(self, request_id: str) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is not None:
            pending.timeout_handle.cancel()


def _is_safe_relative(rel_path: str) -> bool:
    path = pathlib.PurePosixPath(rel_path.replace("\\", "/"))
    return not path.is_absolute() and ".." not in path.parts


class FolderByteSource:
    """Answers byte requests by reading catalog entries below a folder."""

    def __init__(
        self,
        root: pathlib.Path,
        entries: Iterable[AssetCatalogEntry],
    ) -> None:
        self.root = root
        self.entries = {entry.key: entry for entry in entries}
        self._reply: Optional[Callable[[Dict[str, Any]], Any]] = None
        self._tasks: Set["asyncio.Task[None]"] = set()

    def connect(self, reply: Callable[[Dict[str, Any]], Any]) -> None:
        self._reply = reply

    def dispatch(self, message: Mapping[str, Any]) -> None:
        if message.get("type") != REQUEST_TYPE:
            return
        task = asyncio.get_running_loop().create_task(self._serve(dict(message)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _serve(self, message: Dict[str, Any]) -> None:
        request_id = message.get("requestId")
        file_key = message.get("fileKey")
        response: Dict[str, Any] = {"type": RESPONSE_TYPE, "requestId": request_id}

        entry = self.entries.get(file_key) if isinstance(file_key, str) else None
        if entry is None:
            response.update(ok=False, error=f"Unknown asset key {file_key!r}")
        elif not _is_safe_relative(entry.rel_path):
            response.update(ok=False, error=f"Refusing unsafe asset path {entry.rel_path!r}")
        else:
            try:
                data = await asyncio.to_thread((self.root / entry.rel_path).read_bytes)
            except OSError as exc:
                response.update(ok=False, error=str(exc))
            else:
                response.update(ok=True, bytes=data)

        if self._reply is not None:
            self._reply(response)


def connect_folder_source(
    root: pathlib.Path,
    entries: Iterable[AssetCatalogEntry],
) -> ImageByteRetriever:
    """Wire a retriever to a folder-backed byte source."""

    source = FolderByteSource(root, entries)
    retriever = ImageByteRetriever(send=source.dispatch)
    source.connect(retriever.handle_response)
    return retriever
