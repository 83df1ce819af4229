"""Per-entity payload schemas.

Each entity exposes ``create`` (core identifying fields required, defaults
applied), ``update`` (every field optional, no defaults so a partial update
only carries what the caller sent) and ``search`` (query-string friendly,
paginated). Users additionally have ``changePassword`` and ``login``.
"""

from typing import Literal, Optional

from pydantic import ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from kpcrm_api.validation.common import (
    Address,
    Currency,
    DateString,
    Email,
    Flag,
    NonNegativeInt,
    NonNegativeNumber,
    Percentage,
    Phone,
    PositiveInt,
    PositiveNumber,
    QueryCurrency,
    QueryDateString,
    QueryFlag,
    QueryText,
    QueryTextList,
    QueryUuid,
    SchemaModel,
    SearchParams,
    Secret,
    Text,
    TextList,
    Url,
    UrlList,
    Uuid,
    required_text,
)

UserRole = Literal["admin", "manager", "sales_rep", "read_only"]
OrganizationType = Literal["restaurant", "distributor", "supplier", "chain", "other"]
Priority = Literal["high", "medium", "low"]
Segment = Literal["enterprise", "mid_market", "small_business"]
ContactRole = Literal["decision_maker", "influencer", "user", "gatekeeper", "other"]
ContactMethod = Literal["email", "phone", "text", "in_person"]
InteractionType = Literal[
    "call", "email", "meeting", "note", "task", "demo", "proposal", "follow_up", "other"
]
InteractionOutcome = Literal["positive", "neutral", "negative", "no_response"]
OpportunityStage = Literal[
    "prospecting", "qualifying", "proposal", "negotiation", "closed_won", "closed_lost"
]
OpportunitySource = Literal[
    "website", "referral", "cold_call", "trade_show", "advertising", "other"
]
DimensionUnit = Literal["in", "cm", "ft", "m"]


# ============================================================================
# User
# ============================================================================


class UserCreate(SchemaModel):
    email: Email
    password: required_text("Password", clean=False)
    full_name: required_text("Full name")
    role: UserRole
    territory: Optional[Text] = None
    phone: Optional[Phone] = None
    organization_id: Optional[Uuid] = None
    is_active: Flag = True

    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value) < 8:
            raise PydanticCustomError("password_length", "Password must be at least 8 characters")
        return value


class UserUpdate(SchemaModel):
    email: Optional[Email] = None
    full_name: Optional[required_text("Full name")] = None
    role: Optional[UserRole] = None
    territory: Optional[Text] = None
    phone: Optional[Phone] = None
    organization_id: Optional[Uuid] = None
    is_active: Optional[Flag] = None


class UserSearch(SearchParams):
    role: Optional[UserRole] = None
    organization_id: Optional[QueryUuid] = None
    is_active: Optional[QueryFlag] = None


class ChangePassword(SchemaModel):
    current_password: required_text("Current password", clean=False)
    new_password: Secret
    confirm_password: Secret

    @field_validator("new_password")
    @classmethod
    def new_password_length(cls, value: str) -> str:
        if len(value) < 8:
            raise PydanticCustomError(
                "password_length", "New password must be at least 8 characters"
            )
        return value

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        # new_password is absent from info.data when it already failed
        new_password = info.data.get("new_password")
        if new_password is not None and value != new_password:
            raise PydanticCustomError("password_mismatch", "Passwords do not match")
        return value


class Login(SchemaModel):
    email: Email
    password: required_text("Password", clean=False)


# ============================================================================
# Organization
# ============================================================================


class OrganizationCreate(SchemaModel):
    name: required_text("Organization name")
    type: OrganizationType
    industry: Optional[Text] = None
    website: Optional[Url] = None
    phone: Optional[Phone] = None
    email: Optional[Email] = None
    address: Address
    parent_organization_id: Optional[Uuid] = None
    assigned_user_id: Optional[Uuid] = None
    priority: Priority = "medium"
    segment: Optional[Segment] = None
    annual_revenue: Optional[Currency] = None
    employee_count: Optional[PositiveInt] = None
    description: Optional[Text] = None
    tags: TextList = []
    is_active: Flag = True


class OrganizationUpdate(SchemaModel):
    name: Optional[required_text("Organization name")] = None
    type: Optional[OrganizationType] = None
    industry: Optional[Text] = None
    website: Optional[Url] = None
    phone: Optional[Phone] = None
    email: Optional[Email] = None
    address: Optional[Address] = None
    parent_organization_id: Optional[Uuid] = None
    assigned_user_id: Optional[Uuid] = None
    priority: Optional[Priority] = None
    segment: Optional[Segment] = None
    annual_revenue: Optional[Currency] = None
    employee_count: Optional[PositiveInt] = None
    description: Optional[Text] = None
    tags: Optional[TextList] = None
    is_active: Optional[Flag] = None


class OrganizationSearch(SearchParams):
    type: Optional[OrganizationType] = None
    priority: Optional[Priority] = None
    segment: Optional[Segment] = None
    assigned_user_id: Optional[QueryUuid] = None
    city: Optional[QueryText] = None
    state: Optional[QueryText] = None
    is_active: Optional[QueryFlag] = None


# ============================================================================
# Contact
# ============================================================================


class SocialProfiles(SchemaModel):
    linkedin: Optional[Url] = None
    twitter: Optional[Url] = None
    facebook: Optional[Url] = None


class ContactCreate(SchemaModel):
    first_name: required_text("First name")
    last_name: required_text("Last name")
    email: Optional[Email] = None
    phone: Optional[Phone] = None
    title: Optional[Text] = None
    department: Optional[Text] = None
    organization_id: Uuid
    is_primary: Flag = False
    role: Optional[ContactRole] = None
    preferred_contact_method: ContactMethod = "email"
    notes: Optional[Text] = None
    social_profiles: Optional[SocialProfiles] = None
    is_active: Flag = True


class ContactUpdate(SchemaModel):
    first_name: Optional[required_text("First name")] = None
    last_name: Optional[required_text("Last name")] = None
    email: Optional[Email] = None
    phone: Optional[Phone] = None
    title: Optional[Text] = None
    department: Optional[Text] = None
    organization_id: Optional[Uuid] = None
    is_primary: Optional[Flag] = None
    role: Optional[ContactRole] = None
    preferred_contact_method: Optional[ContactMethod] = None
    notes: Optional[Text] = None
    social_profiles: Optional[SocialProfiles] = None
    is_active: Optional[Flag] = None


class ContactSearch(SearchParams):
    organization_id: Optional[QueryUuid] = None
    role: Optional[ContactRole] = None
    department: Optional[QueryText] = None
    is_active: Optional[QueryFlag] = None


# ============================================================================
# Interaction
# ============================================================================


class Attachment(SchemaModel):
    name: Text
    url: Text
    type: Text


class InteractionCreate(SchemaModel):
    type: InteractionType
    subject: required_text("Subject")
    description: Optional[Text] = None
    contact_id: Optional[Uuid] = None
    organization_id: Uuid
    opportunity_id: Optional[Uuid] = None
    user_id: Uuid
    scheduled_at: Optional[DateString] = None
    completed_at: Optional[DateString] = None
    follow_up_date: Optional[DateString] = None
    duration: Optional[PositiveInt] = None  # minutes
    outcome: Optional[InteractionOutcome] = None
    next_steps: Optional[Text] = None
    location: Optional[Text] = None
    attendees: TextList = []
    attachments: list[Attachment] = []
    is_completed: Flag = False


class InteractionUpdate(SchemaModel):
    type: Optional[InteractionType] = None
    subject: Optional[required_text("Subject")] = None
    description: Optional[Text] = None
    contact_id: Optional[Uuid] = None
    organization_id: Optional[Uuid] = None
    opportunity_id: Optional[Uuid] = None
    scheduled_at: Optional[DateString] = None
    completed_at: Optional[DateString] = None
    follow_up_date: Optional[DateString] = None
    duration: Optional[PositiveInt] = None
    outcome: Optional[InteractionOutcome] = None
    next_steps: Optional[Text] = None
    location: Optional[Text] = None
    attendees: Optional[TextList] = None
    attachments: Optional[list[Attachment]] = None
    is_completed: Optional[Flag] = None


class InteractionSearch(SearchParams):
    type: Optional[InteractionType] = None
    contact_id: Optional[QueryUuid] = None
    organization_id: Optional[QueryUuid] = None
    opportunity_id: Optional[QueryUuid] = None
    user_id: Optional[QueryUuid] = None
    outcome: Optional[InteractionOutcome] = None
    start_date: Optional[QueryDateString] = None
    end_date: Optional[QueryDateString] = None
    is_completed: Optional[QueryFlag] = None


# ============================================================================
# Opportunity
# ============================================================================


class OpportunityLine(SchemaModel):
    product_id: Uuid
    quantity: PositiveInt
    unit_price: Currency
    discount: Percentage = 0


class OpportunityCreate(SchemaModel):
    name: required_text("Opportunity name")
    description: Optional[Text] = None
    organization_id: Uuid
    contact_id: Optional[Uuid] = None
    user_id: Uuid
    stage: OpportunityStage = "prospecting"
    value: Optional[Currency] = None
    probability: Percentage = 0
    expected_close_date: Optional[DateString] = None
    actual_close_date: Optional[DateString] = None
    source: Optional[OpportunitySource] = None
    competitor_notes: Optional[Text] = None
    loss_reason: Optional[Text] = None
    products: list[OpportunityLine] = []
    tags: TextList = []
    is_active: Flag = True


class OpportunityUpdate(SchemaModel):
    name: Optional[required_text("Opportunity name")] = None
    description: Optional[Text] = None
    contact_id: Optional[Uuid] = None
    stage: Optional[OpportunityStage] = None
    value: Optional[Currency] = None
    probability: Optional[Percentage] = None
    expected_close_date: Optional[DateString] = None
    actual_close_date: Optional[DateString] = None
    source: Optional[OpportunitySource] = None
    competitor_notes: Optional[Text] = None
    loss_reason: Optional[Text] = None
    products: Optional[list[OpportunityLine]] = None
    tags: Optional[TextList] = None
    is_active: Optional[Flag] = None


class OpportunitySearch(SearchParams):
    organization_id: Optional[QueryUuid] = None
    user_id: Optional[QueryUuid] = None
    stage: Optional[OpportunityStage] = None
    source: Optional[OpportunitySource] = None
    min_value: Optional[QueryCurrency] = None
    max_value: Optional[QueryCurrency] = None
    expected_close_start: Optional[QueryDateString] = None
    expected_close_end: Optional[QueryDateString] = None
    is_active: Optional[QueryFlag] = None


# ============================================================================
# Product
# ============================================================================


class Dimensions(SchemaModel):
    length: PositiveNumber
    width: PositiveNumber
    height: PositiveNumber
    unit: DimensionUnit = "in"


class NutritionalInfo(SchemaModel):
    calories: Optional[NonNegativeInt] = None
    protein: Optional[NonNegativeNumber] = None
    carbs: Optional[NonNegativeNumber] = None
    fat: Optional[NonNegativeNumber] = None
    fiber: Optional[NonNegativeNumber] = None
    sodium: Optional[NonNegativeNumber] = None


class ProductCreate(SchemaModel):
    name: required_text("Product name")
    description: Optional[Text] = None
    sku: required_text("SKU")
    category: required_text("Category")
    subcategory: Optional[Text] = None
    brand: Optional[Text] = None
    unit_price: Currency
    cost_price: Optional[Currency] = None
    unit_of_measure: required_text("Unit of measure")
    weight: Optional[PositiveNumber] = None
    dimensions: Optional[Dimensions] = None
    nutritional_info: Optional[NutritionalInfo] = None
    allergens: TextList = []
    certifications: TextList = []
    shelf_life: Optional[PositiveInt] = None  # days
    storage_requirements: Optional[Text] = None
    minimum_order_quantity: PositiveInt = 1
    is_active: Flag = True
    image_urls: UrlList = []
    tags: TextList = []


class ProductUpdate(SchemaModel):
    name: Optional[required_text("Product name")] = None
    description: Optional[Text] = None
    sku: Optional[required_text("SKU")] = None
    category: Optional[required_text("Category")] = None
    subcategory: Optional[Text] = None
    brand: Optional[Text] = None
    unit_price: Optional[Currency] = None
    cost_price: Optional[Currency] = None
    unit_of_measure: Optional[required_text("Unit of measure")] = None
    weight: Optional[PositiveNumber] = None
    dimensions: Optional[Dimensions] = None
    nutritional_info: Optional[NutritionalInfo] = None
    allergens: Optional[TextList] = None
    certifications: Optional[TextList] = None
    shelf_life: Optional[PositiveInt] = None
    storage_requirements: Optional[Text] = None
    minimum_order_quantity: Optional[PositiveInt] = None
    is_active: Optional[Flag] = None
    image_urls: Optional[UrlList] = None
    tags: Optional[TextList] = None


class ProductSearch(SearchParams):
    category: Optional[QueryText] = None
    subcategory: Optional[QueryText] = None
    brand: Optional[QueryText] = None
    min_price: Optional[QueryCurrency] = None
    max_price: Optional[QueryCurrency] = None
    allergens: Optional[QueryTextList] = None
    certifications: Optional[QueryTextList] = None
    is_active: Optional[QueryFlag] = None
