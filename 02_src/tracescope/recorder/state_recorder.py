"""StateRecorder: explicit instrumentation of a Behaviour's entry points."""

from typing import Any

from ..logging_config import get_logger
from ..models import Callback, EventKind
from ..process import Behaviour, current_process
from ..tracer import ITracer
from .recorder import Delivery, IRecorder

logger = get_logger(__name__)

_CALLBACK_KINDS = {
    Callback.CALL: EventKind.CALL,
    Callback.CAST: EventKind.CAST,
    Callback.INFO: EventKind.INFO,
}


def module_name(behaviour: Any) -> str:
    """Default module identity of a behaviour: its dotted class path."""
    cls = type(behaviour)
    return f"{cls.__module__}.{cls.__qualname__}"


class StateRecorder:
    """
    Wraps a Behaviour and records an event after every transition.

    - init: a state-change event
    - call/cast/info: a call/cast/info event when the module is traced,
      then a state-change event
    - terminate: a state-change event with the stop reason as message

    With ``record_state=False`` the process opts out of state-change events
    and only emits events while its module is traced.

    The wrapped behaviour's return values and exceptions pass through
    unchanged.
    """

    def __init__(
        self,
        behaviour: Behaviour,
        recorder: IRecorder,
        tracer: ITracer,
        *,
        module: str | None = None,
        delivery: Delivery = Delivery.SYNC,
        record_state: bool = True,
    ):
        self._behaviour = behaviour
        self._recorder = recorder
        self._tracer = tracer
        self._module = module or module_name(behaviour)
        self._delivery = Delivery(delivery)
        self._record_state = record_state

    @property
    def module(self) -> str:
        return self._module

    @property
    def wrapped(self) -> Behaviour:
        return self._behaviour

    async def init(self, args: Any) -> Any:
        state = await self._behaviour.init(args)
        if self._record_state:
            await self._emit(EventKind.STATE_CHANGE, Callback.INIT, state, message=args)
        return state

    async def handle_call(self, message: Any, state: Any) -> tuple[Any, Any]:
        reply, new_state = await self._behaviour.handle_call(message, state)
        await self._record(Callback.CALL, message, new_state, response=reply)
        return reply, new_state

    async def handle_cast(self, message: Any, state: Any) -> Any:
        new_state = await self._behaviour.handle_cast(message, state)
        await self._record(Callback.CAST, message, new_state)
        return new_state

    async def handle_info(self, message: Any, state: Any) -> Any:
        new_state = await self._behaviour.handle_info(message, state)
        await self._record(Callback.INFO, message, new_state)
        return new_state

    async def terminate(self, reason: Any, state: Any) -> None:
        terminate = getattr(self._behaviour, "terminate", None)
        if terminate is not None:
            await terminate(reason, state)
        if self._record_state:
            await self._emit(
                EventKind.STATE_CHANGE, Callback.TERMINATE, state, message=reason
            )

    async def _record(
        self, callback: Callback, message: Any, state: Any, response: Any = None
    ) -> None:
        if self._tracer.is_traced(self._module):
            await self._emit(_CALLBACK_KINDS[callback], callback, state, message, response)
        if self._record_state:
            await self._emit(EventKind.STATE_CHANGE, callback, state, message, response)

    async def _emit(
        self,
        kind: EventKind,
        callback: Callback,
        state: Any,
        message: Any = None,
        response: Any = None,
    ) -> None:
        process_ref = current_process()
        if process_ref is None:
            logger.warning("%s transition outside of an actor, not recorded", self._module)
            return

        payload = {
            "process_ref": process_ref,
            "module": self._module,
            "callback": callback,
            "message": message,
            "response": response,
            "state": state,
        }
        if self._delivery is Delivery.SYNC:
            await self._recorder.capture_sync(kind, payload)
        else:
            self._recorder.capture_async(kind, payload)
