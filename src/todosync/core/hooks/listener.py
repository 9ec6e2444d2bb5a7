"""
Loopback HTTP listener for Claude Code hook push notifications.

Claude Code runs the installed hook commands (curl) at lifecycle points and
pipes the hook's JSON input to one of three endpoints:

    POST /hook/session   UserPromptSubmit -> 'sessionUpdate'
    POST /hook/todo      PostToolUse      -> 'todoUpdate' for the task tool,
                                              'hook' for any other tool
    POST /hook/general   anything else    -> 'hook'

Every well-formed request gets {"success": true, "suppressOutput": true}; the
suppress flag stops Claude Code from echoing the hook output to the user.
Errors are plain text: 404 unknown path, 405 wrong method, 408 slow body,
413 oversized body, 500 body that is not JSON. Valid JSON that is not an
object (an array, a number) is accepted as an empty payload.

The server only binds a loopback address on an OS-assigned port, so CORS is
allowed from any origin: nothing outside this machine can reach it.
"""

from __future__ import annotations

import asyncio
import json
import logging
import socket
import threading
import time
from collections.abc import Callable
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from todosync.core.config.models import ListenerConfig
from todosync.core.exceptions import ListenerBindError
from todosync.core.hooks.models import HookEvent, HookEventKind, HookKind, HookPayload

logger = logging.getLogger(__name__)

SESSION_PATH = "/hook/session"
TODO_PATH = "/hook/todo"
GENERAL_PATH = "/hook/general"
HOOK_PATHS = {
    SESSION_PATH: HookKind.PROMPT_SUBMITTED,
    TODO_PATH: HookKind.TOOL_USED,
    GENERAL_PATH: HookKind.GENERIC,
}

SUCCESS_BODY = {"success": True, "suppressOutput": True}
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
STOP_TIMEOUT = 5.0

HookSubscriber = Callable[[HookEvent], None]


class HookListener:
    """
    Ephemeral loopback HTTP server receiving hook push notifications.

    The server runs uvicorn on a daemon thread. Subscribers are called on
    that thread and must hand events off quickly (the sync engine only
    enqueues them).

    Example:
        >>> listener = HookListener(task_tool_name="TodoWrite")
        >>> url = listener.start()           # e.g. http://127.0.0.1:53817
        >>> unsubscribe = listener.subscribe(print)
        >>> listener.stop()
    """

    def __init__(
        self,
        config: ListenerConfig | None = None,
        task_tool_name: str = "TodoWrite",
    ) -> None:
        """
        Initialize the listener (does not bind).

        Args:
            config: Listener settings (loopback host, body limits, timeouts)
            task_tool_name: Tool whose PostToolUse hook means the task list changed
        """
        self._config = config or ListenerConfig()
        self.task_tool_name = task_tool_name
        self._subscribers: list[HookSubscriber] = []
        self._lock = threading.Lock()
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._socket: socket.socket | None = None
        self._port: int | None = None
        self.app = self._create_app()

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, callback: HookSubscriber) -> Callable[[], None]:
        """
        Register a callback for every classified hook event.

        Returns:
            Function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, event: HookEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Hook subscriber failed for {event.kind.value} event")

    def classify(self, payload: HookPayload) -> HookEventKind:
        """Map a payload to the event kind subscribers receive."""
        if payload.kind == HookKind.PROMPT_SUBMITTED:
            return HookEventKind.SESSION_UPDATE
        if payload.kind == HookKind.TOOL_USED and payload.tool_name == self.task_tool_name:
            return HookEventKind.TODO_UPDATE
        return HookEventKind.HOOK

    # ------------------------------------------------------------------
    # HTTP application
    # ------------------------------------------------------------------

    def _create_app(self) -> FastAPI:
        app = FastAPI(
            title="todosync hook listener",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )

        @app.exception_handler(StarletteHTTPException)
        async def plain_text_errors(request: Request, exc: StarletteHTTPException) -> Response:
            # Bare OPTIONS (no preflight headers) falls through CORSMiddleware
            # and the router; answer it here for any path.
            if request.method == "OPTIONS" and exc.status_code in (404, 405):
                return Response(status_code=200, headers=CORS_HEADERS)
            return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["POST", "OPTIONS"],
            allow_headers=["Content-Type"],
        )

        for path, kind in HOOK_PATHS.items():
            app.add_api_route(path, self._endpoint(kind), methods=["POST"])
        return app

    def _endpoint(self, kind: HookKind) -> Callable[[Request], Any]:
        async def endpoint(request: Request) -> Response:
            return await self._handle(request, kind)

        endpoint.__name__ = f"{kind.name.lower()}_hook"
        return endpoint

    async def _read_body(self, request: Request) -> bytes:
        limit = self._config.max_body_bytes
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > limit:
            raise HTTPException(status_code=413, detail="Payload Too Large")

        body = bytearray()

        async def collect() -> None:
            async for chunk in request.stream():
                body.extend(chunk)
                if len(body) > limit:
                    raise HTTPException(status_code=413, detail="Payload Too Large")

        try:
            await asyncio.wait_for(collect(), timeout=self._config.body_timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Timed out reading hook body on {request.url.path}")
            raise HTTPException(status_code=408, detail="Request Timeout") from e
        return bytes(body)

    async def _handle(self, request: Request, kind: HookKind) -> Response:
        raw = await self._read_body(request)
        try:
            body = json.loads(raw)
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            logger.warning(f"Malformed hook body on {request.url.path}: {e}")
            return PlainTextResponse("Internal Server Error", status_code=500)
        if not isinstance(body, dict):
            logger.debug(f"Non-object hook body on {request.url.path}: {type(body).__name__}")
            body = {}

        payload = HookPayload.from_body(kind, body)
        event_kind = self.classify(payload)
        logger.debug(
            f"Hook {request.url.path} -> {event_kind.value} (session {payload.session_id})"
        )
        self._publish(HookEvent(kind=event_kind, payload=payload))
        return JSONResponse(SUCCESS_BODY)

    # ------------------------------------------------------------------
    # Server lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """Whether the server thread is up and serving."""
        return self._server is not None and self._thread is not None and self._thread.is_alive()

    @property
    def port(self) -> int | None:
        """Bound port, or None when stopped."""
        return self._port if self.is_running else None

    @property
    def url(self) -> str:
        """
        Base URL of the running listener.

        Raises:
            ListenerBindError: If the listener is not running
        """
        if not self.is_running or self._port is None:
            raise ListenerBindError("Hook listener is not running")
        host = self._config.host
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self._port}"

    def start(self) -> str:
        """
        Bind an ephemeral loopback port and start serving.

        Idempotent: returns the existing URL when already running.

        Returns:
            Base URL, e.g. http://127.0.0.1:53817

        Raises:
            ListenerBindError: If the socket cannot be bound or the server
                does not come up within start_timeout
        """
        with self._lock:
            if self.is_running:
                return self.url

            family = socket.AF_INET6 if ":" in self._config.host else socket.AF_INET
            sock = socket.socket(family, socket.SOCK_STREAM)
            try:
                sock.bind((self._config.host, 0))
            except OSError as e:
                sock.close()
                raise ListenerBindError(
                    f"Cannot bind hook listener on {self._config.host}: {e}"
                ) from e

            config = uvicorn.Config(
                self.app,
                log_level="warning",
                access_log=False,
                lifespan="off",
                timeout_keep_alive=int(max(1, self._config.body_timeout)),
            )
            server = uvicorn.Server(config)
            thread = threading.Thread(
                target=server.run,
                kwargs={"sockets": [sock]},
                name="todosync-hook-listener",
                daemon=True,
            )
            thread.start()

            deadline = time.monotonic() + self._config.start_timeout
            while not server.started:
                if not thread.is_alive() or time.monotonic() > deadline:
                    server.should_exit = True
                    thread.join(timeout=STOP_TIMEOUT)
                    sock.close()
                    raise ListenerBindError("Hook listener failed to start")
                time.sleep(0.01)

            self._server = server
            self._thread = thread
            self._socket = sock
            self._port = sock.getsockname()[1]

        logger.info(f"Hook listener started on {self.url}")
        return self.url

    def stop(self) -> None:
        """Gracefully stop serving. Safe to call when not running."""
        with self._lock:
            server, thread, sock = self._server, self._thread, self._socket
            self._server = None
            self._thread = None
            self._socket = None
            self._port = None

        if server is None or thread is None:
            return

        server.should_exit = True
        thread.join(timeout=STOP_TIMEOUT)
        if thread.is_alive():
            server.force_exit = True
            thread.join(timeout=STOP_TIMEOUT)
        if sock is not None:
            sock.close()
        logger.info("Hook listener stopped")
