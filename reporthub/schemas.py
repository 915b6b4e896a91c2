# reporthub/schemas.py
# Role: Pydantic request/response models for the JSON API.
#       Field names are snake_case in Python and camelCase on the wire.

from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer, StringConstraints
from pydantic.alias_generators import to_camel

Role = Literal["SUPER_ADMIN", "ZONE_ADMIN", "GROUP_ADMIN", "CHURCH_USER"]


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Surrounding whitespace is dropped before length checks run
Text = Annotated[str, StringConstraints(strip_whitespace=True)]

# Decimals go out as JSON numbers, not strings
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# -------------------------------------------------------------------
# Zones / groups / churches
# -------------------------------------------------------------------

class ZoneCreate(ApiModel):
    name: Text = Field(min_length=1, max_length=200)
    currency: Text = Field(default="GBP", min_length=1, max_length=10)


class ZoneUpdate(ApiModel):
    name: Optional[Text] = Field(default=None, min_length=1, max_length=200)
    currency: Optional[Text] = Field(default=None, min_length=1, max_length=10)


class ZoneOut(ApiModel):
    id: int
    name: str
    currency: str
    created_at: datetime


class GroupCreate(ApiModel):
    name: Text = Field(min_length=1, max_length=100)
    zone_id: int


class GroupUpdate(ApiModel):
    name: Optional[Text] = Field(default=None, min_length=1, max_length=100)
    zone_id: Optional[int] = None


class GroupOut(ApiModel):
    id: int
    name: str
    zone_id: int
    created_at: datetime


class ChurchCreate(ApiModel):
    name: Text = Field(min_length=1, max_length=200)
    group_id: int


class ChurchUpdate(ApiModel):
    name: Optional[Text] = Field(default=None, min_length=1, max_length=200)
    group_id: Optional[int] = None


class ChurchOut(ApiModel):
    id: int
    name: str
    group_id: int
    created_at: datetime


class ZoneDetail(ZoneOut):
    groups: List[GroupOut] = []


class GroupDetail(GroupOut):
    zone: ZoneOut
    churches: List[ChurchOut] = []


class ChurchGroupOut(GroupOut):
    zone: ZoneOut


class ChurchDetail(ChurchOut):
    group: ChurchGroupOut


# -------------------------------------------------------------------
# Departments / products
# -------------------------------------------------------------------

class DepartmentCreate(ApiModel):
    name: Text = Field(min_length=1, max_length=200)
    description: Optional[str] = None


class DepartmentUpdate(ApiModel):
    name: Optional[Text] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None


class ProductCreate(ApiModel):
    name: Text = Field(min_length=1, max_length=200)
    department_id: int
    unit_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    currency: Text = Field(default="GBP", min_length=1, max_length=10)


class ProductUpdate(ApiModel):
    name: Optional[Text] = Field(default=None, min_length=1, max_length=200)
    department_id: Optional[int] = None
    unit_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    currency: Optional[Text] = Field(default=None, min_length=1, max_length=10)


class ProductOut(ApiModel):
    id: int
    name: str
    department_id: int
    unit_price: Money
    currency: str
    created_at: datetime


class DepartmentOut(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime


class DepartmentDetail(DepartmentOut):
    product_types: List[ProductOut] = []


# -------------------------------------------------------------------
# Users
# -------------------------------------------------------------------

class UserCreate(ApiModel):
    email: EmailStr
    name: Text = Field(min_length=1, max_length=200)
    password: str = Field(min_length=8, max_length=128)
    role: Role = "CHURCH_USER"
    zone_id: Optional[int] = None
    group_id: Optional[int] = None
    church_id: Optional[int] = None
    department_id: Optional[int] = None


class UserUpdate(ApiModel):
    email: Optional[EmailStr] = None
    name: Optional[Text] = Field(default=None, min_length=1, max_length=200)
    password: Optional[str] = Field(default=None, min_length=8, max_length=128)
    role: Optional[Role] = None
    zone_id: Optional[int] = None
    group_id: Optional[int] = None
    church_id: Optional[int] = None
    department_id: Optional[int] = None


class UserOut(ApiModel):
    """Never carries the password hash."""

    id: int
    email: str
    name: str
    role: str
    zone_id: Optional[int] = None
    group_id: Optional[int] = None
    church_id: Optional[int] = None
    department_id: Optional[int] = None
    created_at: datetime


# -------------------------------------------------------------------
# Orders (transactions)
# -------------------------------------------------------------------

class LineItemIn(ApiModel):
    product_type_id: int
    quantity: int = Field(gt=0)


class TransactionCreate(ApiModel):
    church_id: int
    transaction_date: datetime
    notes: Optional[str] = None
    line_items: List[LineItemIn] = Field(min_length=1)


class TransactionUpdate(ApiModel):
    transaction_date: Optional[datetime] = None
    notes: Optional[str] = None
    line_items: Optional[List[LineItemIn]] = Field(default=None, min_length=1)


class LineItemOut(ApiModel):
    id: int
    product_type_id: int
    product_name: Optional[str] = None
    quantity: int
    unit_price: Money
    total_amount: Money


class TransactionOut(ApiModel):
    id: int
    church_id: int
    church_name: Optional[str] = None
    department_id: int
    upload_history_id: Optional[int] = None
    transaction_date: datetime
    transaction_type: str
    currency: str
    notes: Optional[str] = None
    total_amount: Money = Decimal("0")
    line_items: List[LineItemOut] = []


# -------------------------------------------------------------------
# Uploads / admin
# -------------------------------------------------------------------

class UploadRunSummary(ApiModel):
    campaign_categories_created: List[str] = []
    orders_created: int = 0
    order_line_items_created: int = 0


class UploadResult(ApiModel):
    message: str
    status: str
    records_processed: int
    total_rows: int
    errors: List[str] = []
    upload_id: int
    upload_type: str
    summary: UploadRunSummary


class UploadHistoryOut(ApiModel):
    id: int
    file_name: str
    uploaded_by: Optional[int] = None
    uploaded_at: datetime
    status: str
    upload_type: str
    records_processed: int
    error_log: Optional[str] = None
    rolled_back_at: Optional[datetime] = None


class SyncPricesRequest(ApiModel):
    order_period: Optional[str] = None


# -------------------------------------------------------------------
# Financial years
# -------------------------------------------------------------------

class FinancialYearOut(ApiModel):
    id: int
    label: str
    start_date: datetime
    end_date: datetime
    is_current: bool


class FinancialYearListItem(FinancialYearOut):
    transaction_count: int = 0
    payment_count: int = 0
    upload_count: int = 0


class ResetRequest(ApiModel):
    confirmation: str = ""


# -------------------------------------------------------------------
# Reports
# -------------------------------------------------------------------

class PaymentSummaryRow(ApiModel):
    month: int
    month_name: str
    print_income_pounds: float = 0.0
    print_income_espees: float = 0.0
    reachout_world_pay_pounds: float = 0.0
    zone_pound_payment: float = 0.0
    zone_naira_payment: float = 0.0
    zone_espees_payment: float = 0.0
    group_links_pounds: float = 0.0
    group_links_espees: float = 0.0


class PaymentSummaryTotals(ApiModel):
    print_income_pounds: float = 0.0
    print_income_espees: float = 0.0
    reachout_world_pay_pounds: float = 0.0
    zone_pound_payment: float = 0.0
    zone_naira_payment: float = 0.0
    zone_espees_payment: float = 0.0
    group_links_pounds: float = 0.0
    group_links_espees: float = 0.0


class GrandTotal(ApiModel):
    pounds: float
    naira: float
    espees: float


class PaymentSummaryOut(ApiModel):
    title: str
    year: int
    months: List[PaymentSummaryRow]
    totals: PaymentSummaryTotals
    grand_total: GrandTotal


def to_json(schema, obj, **extra) -> dict:
    """ORM object -> camelCase JSON dict; `extra` keys are camelCased too."""
    data = schema.model_validate(obj).model_dump(mode="json", by_alias=True)
    data.update({to_camel(key): value for key, value in extra.items()})
    return data
