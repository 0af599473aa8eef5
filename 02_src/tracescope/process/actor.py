"""Minimal asyncio actor runtime.

An Actor owns a state value and a mailbox and runs its Behaviour's handlers
one message at a time in its own task:

- ``call``: request/response, the caller awaits the reply
- ``cast``: fire-and-forget
- ``send``: out-of-band message, handled by ``handle_info``

``stop`` drains the mailbox, then calls the behaviour's optional
``terminate(reason, state)`` hook.

Inside the actor task ``self_ref()`` returns the actor's process ref.
"""

import asyncio
import uuid
from contextvars import ContextVar
from typing import Any, Protocol

from ..errors import ActorNotRunningError
from ..logging_config import get_logger
from ..models import ProcessRef

logger = get_logger(__name__)

_current_process: ContextVar[ProcessRef | None] = ContextVar(
    "tracescope_current_process", default=None
)

_CALL = "call"
_CAST = "cast"
_INFO = "info"
_STOP = "stop"


def current_process() -> ProcessRef | None:
    """Process ref of the running actor, or None outside of one."""
    return _current_process.get()


def self_ref() -> ProcessRef:
    """Process ref of the running actor."""
    ref = _current_process.get()
    if ref is None:
        raise RuntimeError("self_ref() called outside of an actor")
    return ref


class Behaviour(Protocol):
    """Callbacks driven by an Actor."""

    async def init(self, args: Any) -> Any:
        """Return the initial state."""
        ...

    async def handle_call(self, message: Any, state: Any) -> tuple[Any, Any]:
        """Return (reply, new_state)."""
        ...

    async def handle_cast(self, message: Any, state: Any) -> Any:
        """Return new_state."""
        ...

    async def handle_info(self, message: Any, state: Any) -> Any:
        """Return new_state."""
        ...

    # Optional: async def terminate(self, reason: Any, state: Any) -> None


class Actor:
    """Runs a Behaviour in its own task with a FIFO mailbox."""

    def __init__(self, behaviour: Behaviour, name: str | None = None):
        self._behaviour = behaviour
        self._name = name or type(behaviour).__name__
        self._pid: ProcessRef = f"{self._name}<{uuid.uuid4().hex[:12]}>"
        self._mailbox: asyncio.Queue = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._state: Any = None
        self._running = False

    @property
    def pid(self) -> ProcessRef:
        return self._pid

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> Any:
        """Current state (live reference, for inspection only)."""
        return self._state

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, args: Any = None) -> None:
        """Run init in the actor task; raises whatever init raises."""
        if self._running:
            return
        ready = asyncio.get_running_loop().create_future()
        self._task = asyncio.create_task(self._run(args, ready), name=self._pid)
        await ready

    async def stop(self, reason: Any = "normal") -> None:
        """Process already queued messages, run terminate, then stop."""
        if not self._running:
            return
        done = asyncio.get_running_loop().create_future()
        self._mailbox.put_nowait((_STOP, reason, done))
        await done
        if self._task:
            await self._task
            self._task = None

    async def call(self, message: Any, timeout: float | None = 5.0) -> Any:
        """Send a request and wait for the reply."""
        self._ensure_running()
        reply = asyncio.get_running_loop().create_future()
        self._mailbox.put_nowait((_CALL, message, reply))
        return await asyncio.wait_for(reply, timeout)

    def cast(self, message: Any) -> None:
        """Send a message without waiting for it to be handled."""
        self._ensure_running()
        self._mailbox.put_nowait((_CAST, message, None))

    def send(self, message: Any) -> None:
        """Send an out-of-band message (handled by handle_info)."""
        self._ensure_running()
        self._mailbox.put_nowait((_INFO, message, None))

    def _ensure_running(self) -> None:
        if not self._running:
            raise ActorNotRunningError(f"Actor {self._pid} is not running")

    async def _run(self, args: Any, ready: asyncio.Future) -> None:
        _current_process.set(self._pid)
        try:
            self._state = await self._behaviour.init(args)
        except Exception as e:
            ready.set_exception(e)
            return

        self._running = True
        ready.set_result(None)
        logger.debug("Actor %s started", self._pid)

        while True:
            kind, message, reply = await self._mailbox.get()
            if kind == _STOP:
                self._running = False
                await self._terminate(message)
                reply.set_result(None)
                break
            try:
                await self._dispatch(kind, message, reply)
            except Exception as e:
                if reply is not None and not reply.done():
                    reply.set_exception(e)
                else:
                    logger.error(
                        "Actor %s failed handling %s message",
                        self._pid,
                        kind,
                        exc_info=True,
                    )

        logger.debug("Actor %s stopped", self._pid)

    async def _terminate(self, reason: Any) -> None:
        terminate = getattr(self._behaviour, "terminate", None)
        if terminate is None:
            return
        try:
            await terminate(reason, self._state)
        except Exception:
            logger.error("Actor %s failed in terminate", self._pid, exc_info=True)

    async def _dispatch(self, kind: str, message: Any, reply: asyncio.Future | None) -> None:
        if kind == _CALL:
            response, self._state = await self._behaviour.handle_call(message, self._state)
            if not reply.done():
                reply.set_result(response)
        elif kind == _CAST:
            self._state = await self._behaviour.handle_cast(message, self._state)
        else:
            self._state = await self._behaviour.handle_info(message, self._state)
