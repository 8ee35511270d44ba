"""In-memory page source used instead of a real browser in tests."""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from phone_enricher.exceptions.custom import NavigationFailure, PageQueryError
from phone_enricher.services.locator import (
    ANY_ELEMENT_SELECTOR,
    DISPLAY_CLASS_SELECTOR,
    ITEM_ID_SELECTOR,
)


class FakeElement:
    def __init__(self, text: str = "", attributes: dict[str, str] | None = None, detached: bool = False):
        self._text = text
        self._attributes = attributes or {}
        self._detached = detached

    async def attribute(self, name: str) -> str | None:
        return self._attributes.get(name)

    async def text(self) -> str:
        if self._detached:
            raise PageQueryError("*", "element is not attached to the DOM")
        return self._text


@dataclass
class FakePlace:
    elements: dict[str, list[FakeElement]] = field(default_factory=dict)
    fail_navigation: bool = False
    delay: float = 0.0
    broken_selectors: tuple[str, ...] = ()


def place_with_button(phone: str) -> FakePlace:
    """Place page exposing the phone through a data-item-id button."""
    return FakePlace(elements={
        ITEM_ID_SELECTOR: [FakeElement(attributes={"data-item-id": f"phone:tel:{phone}"})],
    })


def place_with_display_text(text: str) -> FakePlace:
    return FakePlace(elements={DISPLAY_CLASS_SELECTOR: [FakeElement(text=text)]})


def place_with_body_text(*texts: str) -> FakePlace:
    return FakePlace(elements={ANY_ELEMENT_SELECTOR: [FakeElement(text=t) for t in texts]})


class FakePage:
    def __init__(self, source: "FakePageSource"):
        self._source = source
        self._place: FakePlace | None = None

    async def navigate(self, url: str) -> None:
        self._source.visited.append(url)
        place = self._source.places.get(url, FakePlace())
        if place.fail_navigation:
            raise NavigationFailure(url, "net::ERR_NAME_NOT_RESOLVED")
        self._place = place

    async def wait_stable(self) -> None:
        delay = self._place.delay if self._place else 0.0
        await asyncio.sleep(delay or self._source.default_delay)

    async def query_elements(self, selector: str) -> list[FakeElement]:
        if self._place is None:
            return []
        if selector in self._place.broken_selectors:
            raise PageQueryError(selector, "execution context was destroyed")
        return list(self._place.elements.get(selector, []))


class FakePageSource:
    """Hands out ``FakePage`` sessions and records how many are open."""

    def __init__(self, places: dict[str, FakePlace] | None = None, default_delay: float = 0.0):
        self.places = places or {}
        self.default_delay = default_delay
        self.visited: list[str] = []
        self.open_sessions = 0
        self.peak_sessions = 0
        self.closed_sessions = 0

    @asynccontextmanager
    async def session(self):
        self.open_sessions += 1
        self.peak_sessions = max(self.peak_sessions, self.open_sessions)
        try:
            yield FakePage(self)
        finally:
            self.open_sessions -= 1
            self.closed_sessions += 1

    async def close(self) -> None:
        pass
