"""Sample actor behaviours used by the tests."""


class Counter:
    """Counter actor: state is {"count": int}."""

    async def init(self, args):
        return {"count": args or 0}

    async def handle_call(self, message, state):
        if message == "get":
            return state["count"], state
        op, value = message
        if op == "set":
            return value, {**state, "count": value}
        if op == "fail":
            raise ValueError(value)
        raise ValueError(f"unknown call {message!r}")

    async def handle_cast(self, message, state):
        op, amount = message
        if op == "increment":
            return {**state, "count": state["count"] + amount}
        if op == "decrement":
            return {**state, "count": state["count"] - amount}
        if op == "reset":
            return {**state, "count": amount}
        return state

    async def handle_info(self, message, state):
        if message == "tick":
            return {**state, "count": state["count"] + 1}
        return state


class Accumulator:
    """Mutates its list state in place."""

    async def init(self, args):
        return []

    async def handle_call(self, message, state):
        return list(state), state

    async def handle_cast(self, message, state):
        state.append(message)
        return state

    async def handle_info(self, message, state):
        return state


class Uncopyable:
    """A value that refuses to be deep-copied."""

    def __deepcopy__(self, memo):
        raise TypeError("Uncopyable cannot be copied")
