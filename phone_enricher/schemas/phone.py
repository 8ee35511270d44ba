from enum import StrEnum

from pydantic import BaseModel


class PhoneLocale(BaseModel):
    country_code: str = "52"
    national_digits: int = 10


class Strategy(StrEnum):
    item_id = "item_id"
    aria_label = "aria_label"
    display_class = "display_class"
    page_text = "page_text"


class PhoneCandidate(BaseModel):
    raw: str
    strategy: Strategy
