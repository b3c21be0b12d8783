"""Shared type aliases used across wren modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Page builder: receives a PageContext, returns a render tree Node
PageBuilder: TypeAlias = Callable[..., Any]

# Data fetcher: receives a PageContext, returns data (sync or awaitable)
Fetcher: TypeAlias = Callable[..., Any]

# Error handler: receives (request, error?) and returns a Response
ErrorHandler: TypeAlias = Callable[..., Any]
