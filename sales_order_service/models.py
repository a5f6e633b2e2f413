"""
models.py — Data Models for Cart, Catalog and Order Submission

Pydantic models for everything that crosses a boundary of the core: catalog items
placed in the cart, the selected customer, product categories and the order
payload sent to the Order Management System (OMS).

Field names follow the OMS wire format (camelCase). Monetary values are
`Decimal`; they are only rounded to two fraction digits when serialized.

Models:
    - PriceTier: Quantity threshold with a discounted unit price.
    - CartLineItem: One line of the cart.
    - SelectedCustomer: The customer the order is placed for.
    - ProductCategory: Catalog category with a URL-safe slug.
    - OrderLine / OrderPayload: Body of `POST /orders`.
    - OrderResult: Terminal outcome of a submission.
    - AuthContext: Bearer credential and user of the calling agent.
"""

import re
import unicodedata
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from .config import DEFAULT_PRICE_LIST, IMAGE_BASE_URL

TWO_PLACES = Decimal("0.01")

OFFERS_CATEGORY_CODE = "0000"


class PriceTier(BaseModel):
    """
    Quantity-based price tier of a catalog item.

    Attributes:
        minQty (int): Minimum quantity for the tier to apply (>= 1).
        price (Decimal): Unit price once the tier applies.
        discountPercent (Decimal): Informational discount relative to the list price.
        expiry (date | None): Last day the tier is valid. None never expires.
    """
    model_config = ConfigDict(populate_by_name=True)

    minQty: int = Field(..., ge=1, validation_alias=AliasChoices("minQty", "qty"))
    price: Decimal = Field(..., ge=0)
    discountPercent: Decimal = Field(Decimal("0"), validation_alias=AliasChoices("discountPercent", "percent"))
    expiry: Optional[date] = None

    @field_validator("expiry", mode="before")
    @classmethod
    def _parse_expiry(cls, value):
        # The catalog sends "" for open-ended tiers and full ISO timestamps otherwise
        if value in (None, ""):
            return None
        if isinstance(value, str):
            return value[:10]
        return value

    def is_active(self, on: date) -> bool:
        return self.expiry is None or self.expiry >= on


class CartLineItem(BaseModel):
    """
    One line of the cart, identified by `itemCode`.

    Quantities below 1 are clamped to 1. Tiers are kept sorted by `minQty`; when
    the catalog sends two tiers with the same threshold only the cheaper one is kept.
    """
    model_config = ConfigDict(populate_by_name=True)

    itemCode: str
    itemName: str
    imageUrl: Optional[str] = None
    basePrice: Decimal = Field(..., ge=0, validation_alias=AliasChoices("basePrice", "originalPrice"))
    taxCode: str = Field(..., validation_alias=AliasChoices("taxCode", "taxType"))
    tiers: List[PriceTier] = Field(default_factory=list)
    quantity: int = 1

    @field_validator("quantity", mode="before")
    @classmethod
    def _clamp_quantity(cls, value):
        return max(1, int(value))

    @field_validator("tiers")
    @classmethod
    def _normalize_tiers(cls, tiers):
        by_qty = {}
        for tier in tiers:
            current = by_qty.get(tier.minQty)
            if current is None or tier.price < current.price:
                by_qty[tier.minQty] = tier
        return [by_qty[qty] for qty in sorted(by_qty)]

    @model_validator(mode="after")
    def _default_image(self):
        if not self.imageUrl:
            self.imageUrl = f"{IMAGE_BASE_URL}/{self.itemCode}.png"
        return self


class SelectedCustomer(BaseModel):
    """
    The customer (SAP business partner) the agent is selling to.

    Attributes:
        cardCode (str): Business partner code, sent as the order's `cardCode`.
        cardName (str): Display name.
        federalTaxID (str | None): Tax identifier (RTN).
        priceListNum (str | None): Price list assigned to the customer.
    """
    cardCode: str
    cardName: str
    federalTaxID: Optional[str] = None
    priceListNum: Optional[str] = None

    @field_validator("priceListNum", mode="before")
    @classmethod
    def _price_list_to_str(cls, value):
        if value is None or value == "":
            return None
        return str(value)

    @property
    def effective_price_list(self) -> str:
        return self.priceListNum or DEFAULT_PRICE_LIST


_SLUG_SYMBOLS = {"&": " and ", "%": " percent ", "$": " dollar "}


def slugify(text: str) -> str:
    """
    Lowercase ASCII slug with hyphen separators.

    >>> slugify("Ferretería & Pinturas")
    'ferreteria-and-pinturas'
    """
    for symbol, word in _SLUG_SYMBOLS.items():
        text = text.replace(symbol, word)
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-z0-9\s_-]", "", text.lower())
    return re.sub(r"[\s_-]+", "-", text).strip("-")


class ProductCategory(BaseModel):
    code: str
    name: str
    slug: str = ""

    @model_validator(mode="after")
    def _derive_slug(self):
        if not self.slug:
            self.slug = slugify(self.name)
        return self

    @property
    def title(self) -> str:
        """Tab label: first letter upper case, rest lower case."""
        return self.name[:1].upper() + self.name[1:].lower()


OFFERS_CATEGORY = ProductCategory(code=OFFERS_CATEGORY_CODE, name="Ofertas", slug="ofertas")


class OrderLine(BaseModel):
    """
    One document line of the order.

    Attributes:
        priceList (Decimal): Undiscounted catalog price.
        priceAfterVAT (Decimal): Tier-resolved unit price actually charged.
    """
    itemCode: str
    quantity: int = Field(..., gt=0)
    priceList: Decimal
    priceAfterVAT: Decimal
    taxCode: str

    @field_serializer("priceList", "priceAfterVAT")
    def _serialize_price(self, value: Decimal):
        return float(value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


class OrderPayload(BaseModel):
    """
    Body of `POST /orders`.

    `docDate` and `docDueDate` are always the same business-timezone date.
    """
    cardCode: str
    docDate: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    docDueDate: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    comments: str = ""
    lines: List[OrderLine] = Field(..., min_length=1)


class OrderResult(BaseModel):
    """Terminal outcome of one submission: `succeeded` with a docEntry or `failed` with a reason."""
    status: Literal["succeeded", "failed"]
    docEntry: Optional[Union[int, str]] = None
    reason: Optional[str] = None
    message: Optional[str] = None
    statusCode: Optional[int] = None
    retryable: bool = False

    @classmethod
    def succeeded(cls, doc_entry):
        return cls(status="succeeded", docEntry=doc_entry, message="Pedido enviado correctamente.")

    @classmethod
    def failed(cls, error):
        return cls(
            status="failed",
            reason=error.reason,
            message=error.message,
            statusCode=getattr(error, "status_code", None),
            retryable=error.retryable,
        )

    @property
    def ok(self) -> bool:
        return self.status == "succeeded"


class AuthContext(BaseModel):
    token: Optional[str] = None
    user: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}
