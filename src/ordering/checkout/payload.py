"""Checkout payload parsing — normalizes loosely shaped client input.

Shipping addresses arrive as free text, a JSON string, a single structured
address, or a list of recipients each owning a subset of the items. All of
them are normalized into a list of ``Recipient`` before any business logic
touches them. Line items are parsed into ``CheckoutItem``.
"""

import json
import re
from dataclasses import asdict, dataclass, field
from enum import Enum

from protean.exceptions import ValidationError

from ordering.shared.money import to_float

_PINCODE_IN_TEXT = re.compile(r"(?<!\d)(\d{6})(?!\d)")
_ADDRESS_LINE_KEYS = ("address", "address_line1", "addressLine1", "line1", "street", "address1")
_ADDRESS_EXTRA_KEYS = ("address_line2", "addressLine2", "line2", "landmark", "city", "state")
_PINCODE_KEYS = ("pincode", "pin", "pinCode", "postal_code", "postalCode", "zip", "zipcode")
_RECIPIENT_LIST_KEYS = ("recipients", "addresses", "multi_address", "multipleAddresses")


class ItemKind(Enum):
    PRODUCT = "product"
    COMBO = "combo"
    OFFER = "offer"


@dataclass(frozen=True)
class Recipient:
    name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    pincode: str | None = None
    item_refs: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["item_refs"] = list(self.item_refs)
        return data


@dataclass(frozen=True)
class CheckoutItem:
    kind: ItemKind
    ref_id: str
    quantity: int
    price: float
    name: str = ""
    shades: dict = field(default_factory=dict)

    @property
    def line_total(self) -> float:
        return self.price * self.quantity

    @property
    def ref(self) -> str:
        return f"{self.kind.value}:{self.ref_id}"

    @classmethod
    def from_payload(cls, data: dict, position: int = 0) -> "CheckoutItem":
        if not isinstance(data, dict):
            raise ValidationError({"items": [f"Item {position + 1} must be an object"]})

        kind, ref_id = None, None
        for candidate, keys in (
            (ItemKind.COMBO, ("combo_id", "comboId")),
            (ItemKind.OFFER, ("offer_id", "offerId")),
            (ItemKind.PRODUCT, ("product_id", "productId", "id")),
        ):
            value = next((data[k] for k in keys if data.get(k) not in (None, "")), None)
            if value is not None:
                kind, ref_id = candidate, str(value)
                break
        if kind is None:
            raise ValidationError({"items": [f"Item {position + 1} must reference a product, combo or offer"]})

        try:
            quantity = int(data.get("quantity", 1))
        except (TypeError, ValueError):
            raise ValidationError({"items": [f"Item {position + 1} has an invalid quantity"]}) from None
        if quantity < 1:
            raise ValidationError({"items": [f"Item {position + 1} quantity must be at least 1"]})

        price = to_float(data.get("price"), default=-1.0, field="items")
        if price < 0:
            raise ValidationError({"items": [f"Item {position + 1} has an invalid price"]})

        shades = data.get("shades") or data.get("selected_shades") or data.get("selectedShades") or {}
        if isinstance(shades, str):
            try:
                shades = json.loads(shades)
            except ValueError:
                shades = {"default": shades}
        if not isinstance(shades, dict):
            shades = {}

        return cls(
            kind=kind,
            ref_id=ref_id,
            quantity=quantity,
            price=price,
            name=str(data.get("name") or ""),
            shades={str(k): v for k, v in shades.items()},
        )


def parse_items(raw) -> list[CheckoutItem]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError({"items": ["At least one item is required"]})
    return [CheckoutItem.from_payload(entry, position) for position, entry in enumerate(raw)]


def extract_pincode(text: str) -> str | None:
    """Return the last six-digit group found in free-form address text."""
    matches = _PINCODE_IN_TEXT.findall(text or "")
    return matches[-1] if matches else None


def _recipient_from_dict(data: dict) -> Recipient:
    line = next((str(data[k]) for k in _ADDRESS_LINE_KEYS if data.get(k)), "")
    extras = [str(data[k]) for k in _ADDRESS_EXTRA_KEYS[:2] if data.get(k)]
    address = ", ".join(part for part in [line, *extras] if part)

    pincode = next((str(data[k]).strip() for k in _PINCODE_KEYS if data.get(k) not in (None, "")), None)
    if pincode is None:
        pincode = extract_pincode(address)

    refs = data.get("items") or data.get("item_refs") or data.get("itemIds") or []
    if not isinstance(refs, list):
        refs = [refs]

    name = data.get("name") or data.get("full_name") or data.get("recipient_name") or ""
    if not name and (data.get("first_name") or data.get("firstName")):
        name = f"{data.get('first_name') or data.get('firstName')} {data.get('last_name') or data.get('lastName') or ''}"

    return Recipient(
        name=str(name).strip(),
        phone=str(data.get("phone") or data.get("mobile") or ""),
        email=str(data.get("email") or ""),
        address=address,
        city=str(data.get("city") or ""),
        state=str(data.get("state") or ""),
        pincode=pincode,
        item_refs=tuple(str(r) for r in refs),
    )


def parse_shipping_address(raw) -> list[Recipient]:
    """Normalize any accepted shipping-address shape into a list of recipients.

    Raises ValidationError when nothing usable is supplied.
    """
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            raise ValidationError({"shipping_address": ["Shipping address is required"]})
        if text[0] in "[{":
            try:
                return parse_shipping_address(json.loads(text))
            except ValueError:
                pass
        return [Recipient(address=text, pincode=extract_pincode(text))]

    if isinstance(raw, dict):
        for key in _RECIPIENT_LIST_KEYS:
            if isinstance(raw.get(key), list):
                return parse_shipping_address(raw[key])
        return [_recipient_from_dict(raw)]

    if isinstance(raw, list):
        recipients = []
        for entry in raw:
            if isinstance(entry, dict):
                recipients.append(_recipient_from_dict(entry))
            elif isinstance(entry, str) and entry.strip():
                recipients.append(Recipient(address=entry.strip(), pincode=extract_pincode(entry)))
        if recipients:
            return recipients

    raise ValidationError({"shipping_address": ["Shipping address is required"]})
