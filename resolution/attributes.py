"""
Turns the addresses / contacts / bank accounts of an ingestion request into
hashed attribute payloads, deduplicated within the request.
"""
from dataclasses import dataclass
from typing import Any, Dict, List

from models.ingestion import AddressInput, BankAccountInput, ContactInput, IngestionData
from resolution.normalizer import hash_value, normalize


@dataclass
class ObservedAttribute:
    attribute_type: str
    value: Dict[str, Any]       # normalised payload, what gets stored
    hash: str
    is_primary: bool = False


def address_payload(address: AddressInput) -> Dict[str, Any]:
    return {
        "line1": address.line1,
        "line2": address.line2,
        "city": address.city,
        "postal_code": address.postal_code,
        "country": address.country,
    }


def contact_payload(contact: ContactInput) -> Dict[str, Any]:
    # is_primary is a presentation flag, not part of the fact's identity
    return {"value": contact.value}


def bank_account_payload(account: BankAccountInput) -> Dict[str, Any]:
    iban = account.iban.replace(" ", "") if account.iban else None
    return {
        "iban": iban,
        "account_number": account.account_number,
        "bank_name": account.bank_name,
        "sort_code": account.sort_code,
        "account_name": account.account_name,
    }


def observed_attributes(data: IngestionData) -> List[ObservedAttribute]:
    """
    One ObservedAttribute per distinct fact in the request, in request order.
    The first address and first bank account are flagged primary; contacts
    keep their own isPrimary flag.
    """
    raw: List[ObservedAttribute] = []
    for i, address in enumerate(data.addresses):
        raw.append(_observe("address", address_payload(address), i == 0))
    for contact in data.contacts:
        raw.append(_observe(contact.type, contact_payload(contact), contact.is_primary))
    for i, account in enumerate(data.bank_accounts):
        raw.append(_observe("bank_account", bank_account_payload(account), i == 0))

    seen: set[tuple[str, str]] = set()
    unique = []
    for attr in raw:
        key = (attr.attribute_type, attr.hash)
        if key in seen:
            continue
        seen.add(key)
        unique.append(attr)
    return unique


def _observe(attribute_type: str, payload: Dict[str, Any], is_primary: bool) -> ObservedAttribute:
    value = normalize(payload)
    return ObservedAttribute(attribute_type, value, hash_value(value), is_primary)
