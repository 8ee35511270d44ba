"""Interfaces the enrichment core needs from a page-rendering engine."""

from contextlib import AbstractAsyncContextManager
from typing import Protocol, Sequence


class PageElement(Protocol):
    async def attribute(self, name: str) -> str | None: ...

    async def text(self) -> str: ...


class PageSession(Protocol):
    async def navigate(self, url: str) -> None: ...

    async def wait_stable(self) -> None: ...

    async def query_elements(self, selector: str) -> Sequence[PageElement]: ...


class PageSource(Protocol):
    def session(self) -> AbstractAsyncContextManager[PageSession]:
        """Open an independent page; concurrent sessions must not interfere."""
        ...
