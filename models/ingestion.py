"""
Ingestion request / result shapes.

Wire format is camelCase (``tenantId``, ``bankAccounts`` ...); field names are
accepted too so Python callers can build requests directly.
"""
import uuid
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DataSourceType = Literal["invoice", "manual"]
ContactType = Literal["email", "phone", "website"]
IngestionAction = Literal["created", "updated", "skipped"]


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _check_uuid(value: str) -> str:
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise ValueError("must be a valid UUID")


OptionalStr = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
UuidStr = Annotated[str, AfterValidator(_check_uuid)]
OptionalUuidStr = Annotated[Optional[UuidStr], BeforeValidator(_blank_to_none)]
Percentage = Annotated[float, Field(ge=0, le=100)]


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SupplierIdentifiers(_WireModel):
    company_number: OptionalStr = None
    vat_number: OptionalStr = None

    @field_validator("company_number", "vat_number")
    @classmethod
    def _upper(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    @property
    def has_any(self) -> bool:
        return bool(self.company_number or self.vat_number)


class AddressInput(_WireModel):
    line1: str = Field(min_length=1)
    line2: OptionalStr = None
    city: str = Field(min_length=1)
    postal_code: OptionalStr = None
    country: str = Field(min_length=2, max_length=2)

    @field_validator("country")
    @classmethod
    def _upper_country(cls, v: str) -> str:
        if not v.isalpha():
            raise ValueError("country must be a 2-letter code")
        return v.upper()


class ContactInput(_WireModel):
    type: ContactType
    value: str = Field(min_length=1)
    is_primary: bool = False


class BankAccountInput(_WireModel):
    iban: OptionalStr = None
    account_number: OptionalStr = None
    bank_name: OptionalStr = None
    sort_code: OptionalStr = None
    account_name: OptionalStr = None

    @model_validator(mode="after")
    def _require_number(self) -> "BankAccountInput":
        if not (self.iban or self.account_number):
            raise ValueError("either iban or accountNumber is required")
        return self


class IngestionData(_WireModel):
    name: str = Field(min_length=1)
    identifiers: SupplierIdentifiers = Field(default_factory=SupplierIdentifiers)
    addresses: List[AddressInput] = Field(default_factory=list)
    contacts: List[ContactInput] = Field(default_factory=list)
    bank_accounts: List[BankAccountInput] = Field(default_factory=list)
    # Per-field extraction confidence, e.g. {"name": 92, "vatNumber": 71}
    confidence: Optional[Dict[str, Percentage]] = None

    @field_validator("identifiers", mode="before")
    @classmethod
    def _none_identifiers(cls, v):
        return {} if v is None else v

    @field_validator("addresses", "contacts", "bank_accounts", mode="before")
    @classmethod
    def _none_list(cls, v):
        return [] if v is None else v

    def first_contact(self, contact_type: str) -> Optional[str]:
        for contact in self.contacts:
            if contact.type == contact_type:
                return contact.value
        return None


class IngestionRequest(_WireModel):
    """One vendor observation to resolve against a tenant's suppliers."""
    tenant_id: UuidStr
    user_id: OptionalUuidStr = None
    source: DataSourceType
    source_id: str = Field(min_length=1)
    data: IngestionData


class IngestionResult(_WireModel):
    """Outcome of one ingestion call. Expected business outcomes land here, not in exceptions."""
    success: bool
    action: IngestionAction
    supplier_id: Optional[str] = None
    global_supplier_id: Optional[str] = None
    error: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
