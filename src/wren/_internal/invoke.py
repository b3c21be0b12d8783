"""Invoke helpers — call sync or async user callables uniformly.

Page builders and data fetchers can be ``def`` or ``async def``. Any code
that calls one must handle both cases; this module keeps that check in
exactly one place.

Usage::

    from wren._internal.invoke import invoke

    data = await invoke(fetcher, ctx)
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it's awaitable.

    Works with both sync and async callables::

        def product(ctx):
            return {"id": ctx.params["id"]}

        async def product(ctx):
            return await api.get_product(ctx.params["id"])
    """
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
