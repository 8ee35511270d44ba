import logging

from phone_enricher.exceptions.custom import PageQueryError
from phone_enricher.mappers.phone import is_phone_number, match_phone, normalize_phone
from phone_enricher.schemas.phone import PhoneCandidate, PhoneLocale, Strategy
from phone_enricher.services.page import PageSession

logger = logging.getLogger(__name__)

ITEM_ID_SELECTOR = "button[data-item-id*='phone']"
ITEM_ID_ATTRIBUTE = "data-item-id"
ITEM_ID_PREFIX = "phone:tel:"
DISPLAY_CLASS_SELECTOR = ".Io6YTe.fontBodyMedium.kR99db.fdkmkc"
ANY_ELEMENT_SELECTOR = "*"


class PhoneLocator:
    """Find a phone number on a rendered Google Maps place page.

    Strategies run in a fixed order and the first hit wins:
    phone buttons (``data-item-id``), labelled buttons (``aria-label``),
    the contact line display class, and finally every element's text.
    The last one is the noisiest since any 10-digit run can match.
    """

    def __init__(self, locale: PhoneLocale | None = None, label_keyword: str = "Teléfono"):
        self._locale = locale or PhoneLocale()
        self._label_keyword = label_keyword

    @property
    def locale(self) -> PhoneLocale:
        return self._locale

    async def locate(self, page: PageSession) -> PhoneCandidate | None:
        strategies = (
            (Strategy.item_id, self._from_item_id),
            (Strategy.aria_label, self._from_aria_label),
            (Strategy.display_class, self._from_display_class),
            (Strategy.page_text, self._from_page_text),
        )
        for strategy, finder in strategies:
            try:
                raw = await finder(page)
            except PageQueryError as exc:
                logger.debug("Strategy %s failed: %s", strategy, exc)
                continue
            if raw:
                logger.debug("Phone %r found via %s", raw, strategy)
                return PhoneCandidate(raw=raw, strategy=strategy)
        return None

    async def find_phone(self, page: PageSession) -> str | None:
        """Locate and normalize in one step."""
        candidate = await self.locate(page)
        if candidate is None:
            return None
        return normalize_phone(candidate.raw, self._locale)

    async def _from_item_id(self, page: PageSession) -> str | None:
        for element in await page.query_elements(ITEM_ID_SELECTOR):
            item_id = await element.attribute(ITEM_ID_ATTRIBUTE)
            if item_id and ITEM_ID_PREFIX in item_id:
                return item_id.replace(ITEM_ID_PREFIX, "", 1).strip()

            phone = match_phone(await element.text(), self._locale)
            if phone:
                return phone
        return None

    async def _from_aria_label(self, page: PageSession) -> str | None:
        selector = f"button[aria-label*='{self._label_keyword}']"
        for element in await page.query_elements(selector):
            label = await element.attribute("aria-label")
            phone = match_phone(label or "", self._locale)
            if phone:
                return phone
        return None

    async def _from_display_class(self, page: PageSession) -> str | None:
        for element in await page.query_elements(DISPLAY_CLASS_SELECTOR):
            text = (await element.text()).strip()
            if is_phone_number(text):
                return text
        return None

    async def _from_page_text(self, page: PageSession) -> str | None:
        for element in await page.query_elements(ANY_ELEMENT_SELECTOR):
            try:
                text = await element.text()
            except PageQueryError:
                # detached while scanning
                continue
            if not text:
                continue
            phone = match_phone(text, self._locale)
            if phone:
                return phone
        return None
