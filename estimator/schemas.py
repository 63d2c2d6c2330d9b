import re
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import settings
from .formula_evaluator import parameter_text

PARAMETER_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Parameter types whose value is free text. Everything else is a measurement.
TEXT_PARAMETER_TYPES = {"text"}

ParameterValue = Union[int, float, str]


# --- Catalog ---

class Parameter(BaseModel):
    id: int
    name: str
    value: ParameterValue = 0
    type: str = "number"

    model_config = ConfigDict(from_attributes=True)

    @field_validator("name")
    @classmethod
    def name_is_identifier(cls, v: str) -> str:
        v = v.strip()
        if not PARAMETER_NAME.match(v):
            raise ValueError(
                f"Parameter name {v!r} must start with a letter or underscore "
                f"and contain only letters, digits and underscores"
            )
        return v

    @field_validator("type")
    @classmethod
    def type_lowercase(cls, v: str) -> str:
        return (v or "number").strip().lower()

    @model_validator(mode="after")
    def numeric_value_for_measurements(self):
        if self.type not in TEXT_PARAMETER_TYPES and parameter_text(self.value) is None:
            raise ValueError(f"Parameter {self.name!r} of type {self.type!r} needs a numeric value, got {self.value!r}")
        return self


class Module(BaseModel):
    id: int
    name: str
    description: str = ""
    is_custom: bool = False

    model_config = ConfigDict(from_attributes=True)

    @field_validator("description", mode="before")
    @classmethod
    def none_description(cls, v):
        return v or ""


class ElementDefinition(BaseModel):
    id: int
    name: str
    description: str = ""
    formula: str = ""
    labor_formula: str = ""
    markup: Optional[float] = Field(default=None, ge=0)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("description", "formula", "labor_formula", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ""


class TemplateElement(BaseModel):
    element: ElementDefinition
    module: Module
    markup: Optional[float] = Field(default=None, ge=0)


class Template(BaseModel):
    id: int
    name: str
    description: str = ""
    image: str = ""
    modules: List[Module] = []
    parameters: List[Parameter] = []
    template_elements: List[TemplateElement] = []

    @field_validator("description", "image", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ""

    @field_validator("parameters")
    @classmethod
    def unique_parameter_names(cls, v: List[Parameter]) -> List[Parameter]:
        seen = set()
        for p in v:
            if p.name in seen:
                raise ValueError(f"Template declares parameter {p.name!r} more than once")
            seen.add(p.name)
        return v


# --- Pricing ---

class PricedElement(BaseModel):
    """One element priced inside one module. (element.id, module.id) is unique per proposal."""
    id: int
    element: ElementDefinition
    module: Module
    formula: str = ""
    labor_formula: str = ""
    material_cost: float = 0.0
    labor_cost: float = 0.0
    markup: float = Field(default_factory=lambda: settings.DEFAULT_MARKUP_PCT, ge=0)

    @field_validator("formula", "labor_formula", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ""

    @property
    def key(self) -> tuple:
        return (self.element.id, self.module.id)


class GlobalMarkup(BaseModel):
    enabled: bool = False
    percentage: float = Field(default_factory=lambda: settings.GLOBAL_MARKUP_DEFAULT_PCT, ge=0)


class ElementLine(BaseModel):
    element_id: int
    element_name: str
    module_id: int
    material_cost: float
    labor_cost: float
    markup: float
    total: float


class ModuleSubtotal(BaseModel):
    module_id: int
    module_name: str
    element_count: int
    subtotal: float


class CostSummary(BaseModel):
    lines: List[ElementLine] = []
    modules: List[ModuleSubtotal] = []
    material_subtotal: float = 0.0
    labor_subtotal: float = 0.0
    grand_total: float = 0.0
    global_markup: GlobalMarkup = Field(default_factory=GlobalMarkup)


# --- Proposal submission ---

class ProposalDetails(BaseModel):
    name: str = ""
    description: str = ""
    client_name: str = ""
    client_email: str = ""
    phone_number: str = ""
    address: str = ""
    image: str = ""


class PayloadParameter(BaseModel):
    id: int
    name: str
    value: ParameterValue
    type: str = "number"


class PayloadElementRef(BaseModel):
    id: int
    name: str
    description: str = ""
    formula: str = ""
    labor_formula: str = ""


class PayloadModuleRef(BaseModel):
    id: int
    name: str
    description: str = ""


class PayloadTemplateElement(BaseModel):
    id: int
    formula: str = ""
    labor_formula: str = ""
    markup: int = Field(default=0, ge=0)
    material_cost: float = 0.0
    labor_cost: float = 0.0
    element: PayloadElementRef
    module: PayloadModuleRef


class ProposalPayload(BaseModel):
    """Wire shape accepted by the submission sink. Client fields keep their camelCase keys."""
    id: Optional[int] = None  # template the proposal started from
    name: str
    title: str = ""
    description: str = ""
    client_name: str = Field(alias="clientName")
    client_email: str = Field(alias="clientEmail")
    client_phone: str = Field(default="", alias="clientPhone")
    client_address: str = Field(default="", alias="clientAddress")
    image: str = ""
    parameters: List[PayloadParameter] = []
    template_elements: List[PayloadTemplateElement] = []

    model_config = ConfigDict(populate_by_name=True)


class ProposalCreated(BaseModel):
    id: int
    grand_total: float
    formatted_total: str


class ProposalRecord(BaseModel):
    id: int
    template_id: Optional[int] = None
    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    client_name: str
    client_email: str
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    image: Optional[str] = None
    grand_total: float
    payload_json: dict
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Engine endpoints ---

class FormulaParameter(BaseModel):
    name: str
    value: Optional[ParameterValue] = None


class EvaluateRequest(BaseModel):
    formula: Optional[str] = None
    parameters: List[FormulaParameter] = []


class EvaluateResponse(BaseModel):
    value: float
    formatted: str


class PricingRequest(BaseModel):
    elements: List[PricedElement] = []
    global_markup: GlobalMarkup = Field(default_factory=GlobalMarkup)


class PricingResponse(CostSummary):
    formatted_grand_total: str
    formatted_module_subtotals: dict[str, str] = {}
