"""
Pydantic models for the PDF processor API.

Defines the request/response contracts of the HTTP surface (camelCase on
the wire) and the ``FinancialData`` record produced by the extraction
client.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    PlainSerializer,
    model_validator,
)
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from .services.pdf_processing_service import ProcessingResult
    from .services.registry import ProcessedFile

MIN_PASSWORD_LENGTH = 6


def _decimal_to_number(value: Decimal) -> int | float:
    # Whole amounts stay exact; float only for fractions
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# Decimals travel as JSON numbers, not strings
JsonDecimal = Annotated[
    Decimal,
    PlainSerializer(_decimal_to_number, return_type=int | float, when_used="json"),
]


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Financial Data
# =============================================================================


@dataclass(frozen=True)
class FinancialField:
    """Static description of one field of the financial record."""

    attribute: str
    display_name: str
    group: str

    @property
    def json_name(self) -> str:
        return to_camel(self.attribute)


COMPANY_INFO = "Company Info"
INCOME_STATEMENT = "Income Statement"
ASSETS = "Balance Sheet - Assets"
EQUITY_AND_LIABILITIES = "Balance Sheet - Equity and Liabilities"

COMPANY_ID_FIELD = FinancialField("company_id", "Company ID", COMPANY_INFO)
COMPANY_NAME_FIELD = FinancialField("company_name", "Company Name", COMPANY_INFO)
ALREADY_IN_THOUSANDS_FIELD = FinancialField(
    "already_in_thousands", "Already in Thousands", "Financial Data"
)

AMOUNT_FIELDS: tuple[FinancialField, ...] = (
    FinancialField("gross_profit", "Gross Profit", INCOME_STATEMENT),
    FinancialField("staff_costs", "Staff Costs", INCOME_STATEMENT),
    FinancialField("other_operating_expenses", "Other Operating Expenses", INCOME_STATEMENT),
    FinancialField("depreciation", "Depreciation", INCOME_STATEMENT),
    FinancialField("profit_before_interest", "Profit Before Interest", INCOME_STATEMENT),
    FinancialField("financial_income", "Financial Income", INCOME_STATEMENT),
    FinancialField("financial_expenses", "Financial Expenses", INCOME_STATEMENT),
    FinancialField(
        "profit_before_extraordinary_items",
        "Profit Before Extraordinary Items",
        INCOME_STATEMENT,
    ),
    FinancialField("extraordinary_items", "Extraordinary Items", INCOME_STATEMENT),
    FinancialField("profit_before_tax", "Profit Before Tax", INCOME_STATEMENT),
    FinancialField("tax", "Tax", INCOME_STATEMENT),
    FinancialField("profit_after_tax", "Profit After Tax", INCOME_STATEMENT),
    FinancialField("annual_result", "Annual Result", INCOME_STATEMENT),
    FinancialField("fixed_assets", "Fixed Assets", ASSETS),
    FinancialField("current_assets", "Current Assets", ASSETS),
    FinancialField("total_assets", "Total Assets", ASSETS),
    FinancialField("equity", "Equity", EQUITY_AND_LIABILITIES),
    FinancialField("provisions", "Provisions", EQUITY_AND_LIABILITIES),
    FinancialField("long_term_liabilities", "Long Term Liabilities", EQUITY_AND_LIABILITIES),
    FinancialField("short_term_liabilities", "Short Term Liabilities", EQUITY_AND_LIABILITIES),
    FinancialField("total_liabilities", "Total Liabilities", EQUITY_AND_LIABILITIES),
    FinancialField("equity_and_liabilities", "Equity and Liabilities", EQUITY_AND_LIABILITIES),
)

ALL_FIELDS: tuple[FinancialField, ...] = (
    COMPANY_ID_FIELD,
    COMPANY_NAME_FIELD,
    *AMOUNT_FIELDS,
    ALREADY_IN_THOUSANDS_FIELD,
)

_FIELDS_BY_ATTRIBUTE = {f.attribute: f for f in ALL_FIELDS}


class FinancialData(CamelModel):
    """
    Key figures extracted from one annual report.

    All amounts are optional; the model leaves a field unset when it cannot
    find or parse the value. ``already_in_thousands`` records whether the
    amounts are expressed in thousands.
    """

    company_id: int | None = None
    company_name: str | None = None

    # Income statement
    gross_profit: JsonDecimal | None = None
    staff_costs: JsonDecimal | None = None
    other_operating_expenses: JsonDecimal | None = None
    depreciation: JsonDecimal | None = None
    profit_before_interest: JsonDecimal | None = None
    financial_income: JsonDecimal | None = None
    financial_expenses: JsonDecimal | None = None
    profit_before_extraordinary_items: JsonDecimal | None = None
    extraordinary_items: JsonDecimal | None = None
    profit_before_tax: JsonDecimal | None = None
    tax: JsonDecimal | None = None
    profit_after_tax: JsonDecimal | None = None
    annual_result: JsonDecimal | None = None

    # Balance sheet - assets
    fixed_assets: JsonDecimal | None = None
    current_assets: JsonDecimal | None = None
    total_assets: JsonDecimal | None = None

    # Balance sheet - equity and liabilities
    equity: JsonDecimal | None = None
    provisions: JsonDecimal | None = None
    long_term_liabilities: JsonDecimal | None = None
    short_term_liabilities: JsonDecimal | None = None
    total_liabilities: JsonDecimal | None = None
    equity_and_liabilities: JsonDecimal | None = None

    already_in_thousands: bool = False

    def normalize(self) -> None:
        """
        Scale amounts to thousands.

        Divides every positive amount by 1000 and sets
        ``already_in_thousands``. Does nothing when the flag is already set,
        so calling it twice is the same as calling it once. The company id
        is not an amount and is never scaled.
        """
        if self.already_in_thousands:
            return

        for field in AMOUNT_FIELDS:
            value = getattr(self, field.attribute)
            if value is not None and value > 0:
                setattr(self, field.attribute, value / 1000)

        self.already_in_thousands = True

    @staticmethod
    def display_name(attribute: str) -> str:
        """Human-readable label for a field, or the name itself if unknown."""
        field = _FIELDS_BY_ATTRIBUTE.get(attribute)
        return field.display_name if field else attribute

    @staticmethod
    def group_name(attribute: str) -> str:
        """Statement group of a field, or an empty string if unknown."""
        field = _FIELDS_BY_ATTRIBUTE.get(attribute)
        return field.group if field else ""


# =============================================================================
# Auth Models
# =============================================================================


class RegisterRequest(CamelModel):
    """Request model for registration and admin setup."""

    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    confirm_password: str
    first_name: str | None = Field(default=None, max_length=128)
    last_name: str | None = Field(default=None, max_length=128)
    secret_key: str | None = None

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("The password and confirmation password do not match")
        return self


class LoginRequest(CamelModel):
    """Request model for login."""

    email: EmailStr
    password: str


class LoginUser(CamelModel):
    """The user block of a login response."""

    email: str
    first_name: str | None = None
    last_name: str | None = None
    roles: list[str] = Field(default_factory=list)


class LoginResponse(CamelModel):
    """Response model for a successful login."""

    token: str
    user: LoginUser


class ChangePasswordRequest(CamelModel):
    """Request model for changing the caller's own password."""

    current_password: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    confirm_new_password: str

    @model_validator(mode="after")
    def passwords_match(self) -> "ChangePasswordRequest":
        if self.new_password != self.confirm_new_password:
            raise ValueError("The new password and confirmation password do not match")
        return self


class MessageResponse(BaseModel):
    """Generic status message."""

    message: str


class ErrorDetail(BaseModel):
    """A single identity-style error."""

    code: str
    description: str


# =============================================================================
# User Management Models
# =============================================================================


class UserResponse(CamelModel):
    """A user account as returned by the directory endpoints."""

    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    roles: list[str] = Field(default_factory=list)
    created_at: datetime
    is_active: bool


class UpdateUserRequest(CamelModel):
    """Partial update of a user account. Omitted fields are left unchanged."""

    email: EmailStr | None = None
    first_name: str | None = None
    last_name: str | None = None
    is_active: bool | None = None
    roles: list[str] | None = None


# =============================================================================
# PDF Processing Models
# =============================================================================


class ProcessedFileResponse(CamelModel):
    """A processed file held in the transient registry."""

    id: str
    file_name: str
    file_path: str
    processed_time: datetime
    financial_data: FinancialData | None = None

    @classmethod
    def from_entry(cls, entry: "ProcessedFile") -> "ProcessedFileResponse":
        return cls(
            id=entry.id,
            file_name=entry.file_name,
            file_path=str(entry.file_path),
            processed_time=entry.processed_time,
            financial_data=entry.financial_data,
        )


class ProcessingResultResponse(CamelModel):
    """Outcome for one uploaded file."""

    id: str
    file_name: str
    success: bool
    error: str | None = None
    processed_file: ProcessedFileResponse | None = None

    @classmethod
    def from_result(cls, result: "ProcessingResult") -> "ProcessingResultResponse":
        return cls(
            id=result.id,
            file_name=result.file_name,
            success=result.success,
            error=result.error,
            processed_file=(
                ProcessedFileResponse.from_entry(result.processed_file)
                if result.processed_file is not None
                else None
            ),
        )


class ProcessFilesResponse(BaseModel):
    """Response model for the batch processing endpoint."""

    message: str = Field(..., description="Summary of the batch")
    results: list[ProcessingResultResponse] = Field(
        default_factory=list,
        description="One entry per processed PDF",
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    version: str = Field(default="1.0.0")
    message: str | None = None
