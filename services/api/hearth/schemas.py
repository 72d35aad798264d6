"""Pydantic schemas for the Hearth API.

Request/response models for:
- Themes, projects, tasks, family members
- Lists, list items, shares and pins
- Recipes, meal plans, meal planning preferences
- Push subscriptions
- Conversations and AI tools

Field names are camelCase on the wire and snake_case in Python.
"""

from datetime import datetime, date, timezone
from typing import Annotated, Any, Generic, Optional, Literal, TypeVar, Union
from uuid import UUID

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, HttpUrl
from pydantic.alias_generators import to_camel

T = TypeVar("T")

TaskStatusLiteral = Literal["todo", "in_progress", "done", "archived"]
RecurrenceLiteral = Literal["daily", "weekly", "monthly", "yearly", "custom_days"]
RecipeSourceLiteral = Literal["photo", "link", "manual", "family"]
MealSlotLiteral = Literal["breakfast", "lunch", "dinner", "snacks"]
GenderLiteral = Literal["male", "female", "other", "prefer_not_to_say"]
EntityTypeLiteral = Literal["theme", "project", "task", "family_member"]
ProviderLiteral = Literal["anthropic", "openai", "google"]

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


def _date_only_to_midnight(value: Any) -> Any:
    if isinstance(value, str) and len(value) == 10:
        return f"{value}T00:00:00"
    return value


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# Accepts "YYYY-MM-DD" or full ISO 8601; stored as naive UTC
UtcDatetime = Annotated[datetime, BeforeValidator(_date_only_to_midnight), AfterValidator(to_naive_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DataOut(CamelModel, Generic[T]):
    data: T


class PageMeta(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class PageOut(CamelModel, Generic[T]):
    data: list[T]
    meta: PageMeta


class SuccessOut(CamelModel):
    success: bool = True


def page_meta(page: int, limit: int, total: int) -> PageMeta:
    return PageMeta(page=page, limit=limit, total=total, total_pages=-(-total // limit) if limit else 0)


# --- Themes ---

class ThemeCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, pattern=HEX_COLOR)
    sort_order: Optional[int] = None


class ThemeUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    icon: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, pattern=HEX_COLOR)
    sort_order: Optional[int] = None


class ThemeOut(CamelModel):
    id: str
    household_id: str
    name: str
    icon: Optional[str]
    color: Optional[str]
    sort_order: int = 0
    created_at: datetime
    project_count: int = 0
    task_count: int = 0


# --- Projects ---

class ThemeRefOut(CamelModel):
    id: str
    name: str
    color: Optional[str]


class ProjectCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    theme_id: Optional[str] = None
    due_date: Optional[UtcDatetime] = None


class ProjectUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    theme_id: Optional[str] = None
    due_date: Optional[UtcDatetime] = None
    is_active: Optional[bool] = None


class ProjectOut(CamelModel):
    id: str
    household_id: str
    theme_id: Optional[str]
    name: str
    description: Optional[str]
    is_active: bool
    due_date: Optional[datetime]
    created_at: datetime
    task_count: int = 0
    completed_task_count: int = 0
    theme: Optional[ThemeRefOut] = None


# --- Tasks ---

class TaskCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    theme_id: Optional[str] = None
    project_id: Optional[str] = None
    assigned_to_id: Optional[str] = None
    due_date: Optional[UtcDatetime] = None
    is_recurring: Optional[bool] = None
    recurrence_type: Optional[RecurrenceLiteral] = None
    recurrence_interval: Optional[int] = Field(None, gt=0)
    priority: Optional[int] = Field(None, ge=0, le=2)


class TaskUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    status: Optional[TaskStatusLiteral] = None
    theme_id: Optional[str] = None
    project_id: Optional[str] = None
    assigned_to_id: Optional[str] = None
    due_date: Optional[UtcDatetime] = None
    is_recurring: Optional[bool] = None
    recurrence_type: Optional[RecurrenceLiteral] = None
    recurrence_interval: Optional[int] = Field(None, gt=0)
    priority: Optional[int] = Field(None, ge=0, le=2)


class AssigneeRefOut(CamelModel):
    id: str
    first_name: str
    last_name: Optional[str]


class ProjectRefOut(CamelModel):
    id: str
    name: str


class TaskOut(CamelModel):
    id: str
    household_id: str
    theme_id: Optional[str]
    project_id: Optional[str]
    title: str
    description: Optional[str]
    status: str
    assigned_to_id: Optional[str]
    created_by_id: Optional[str]
    due_date: Optional[datetime]
    is_recurring: bool
    recurrence_type: Optional[str]
    recurrence_interval: Optional[int]
    next_due_date: Optional[datetime]
    last_completed_at: Optional[datetime]
    priority: int
    created_at: datetime
    updated_at: datetime
    assigned_to: Optional[AssigneeRefOut] = None
    theme: Optional[ThemeRefOut] = None
    project: Optional[ProjectRefOut] = None


# --- Task comments ---

class CommentCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=10000)


class CommentAuthorOut(CamelModel):
    id: str
    first_name: str
    last_name: Optional[str] = None


class CommentOut(CamelModel):
    id: str
    task_id: str
    user_id: Optional[str]
    content: str
    is_ai_generated: bool
    conversation_id: Optional[str] = None
    created_at: datetime
    user: Optional[CommentAuthorOut] = None


class CommentCreatedOut(CamelModel):
    data: CommentOut
    ai_triggered: bool = False


# --- Family members ---

class FamilyMemberCreate(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    nickname: Optional[str] = Field(None, max_length=100)
    birthday: Optional[date] = None
    gender: Optional[GenderLiteral] = None
    avatar_url: Optional[HttpUrl] = None
    profile_data: Optional[dict[str, Any]] = None


class FamilyMemberUpdate(CamelModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    nickname: Optional[str] = Field(None, max_length=100)
    birthday: Optional[date] = None
    gender: Optional[GenderLiteral] = None
    avatar_url: Optional[HttpUrl] = None
    profile_data: Optional[dict[str, Any]] = None


class FamilyMemberOut(CamelModel):
    id: str
    household_id: str
    first_name: str
    last_name: Optional[str]
    nickname: Optional[str]
    birthday: Optional[date]
    gender: Optional[str]
    avatar_url: Optional[str]
    profile_data: Optional[dict[str, Any]]
    created_at: datetime
    updated_at: datetime
    assigned_task_count: int = 0


# --- Lists ---

class ListCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)


class ListUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)


class ListSharesUpdate(CamelModel):
    user_ids: list[str]


class ListSharesOut(CamelModel):
    shared_user_ids: list[str]


class ListItemCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=1000)


class ListItemUpdate(CamelModel):
    content: Optional[str] = Field(None, min_length=1, max_length=1000)
    marked_off: Optional[bool] = None


class ReorderPins(CamelModel):
    pin_ids: list[str]


class ListItemOut(CamelModel):
    id: str
    list_id: str
    content: str
    added_at: datetime
    marked_off_at: Optional[datetime]


class ListPreviewItemOut(CamelModel):
    id: str
    list_id: str
    content: str
    added_at: datetime


class ListOut(CamelModel):
    id: str
    household_id: str
    created_by_id: Optional[str]
    name: str
    created_at: datetime
    updated_at: datetime
    shared_user_ids: list[str] = []
    preview_items: Optional[list[ListPreviewItemOut]] = None


class ListWithItemsOut(ListOut):
    items: list[ListItemOut] = []


class PinnedListOut(ListWithItemsOut):
    pin_id: str
    position: int


class PinOut(CamelModel):
    pin_id: str
    list_id: str
    position: int


# --- Recipes ---

class Ingredient(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    quantity: Optional[Union[float, str]] = None
    unit: Optional[str] = Field(None, max_length=50)
    qualifiers: Optional[str] = Field(None, max_length=200)


class RecipeAttachment(CamelModel):
    url: str = Field(..., min_length=1)
    media_type: str = Field(..., min_length=1, max_length=255)
    filename: Optional[str] = Field(None, min_length=1, max_length=500)


class RecipeCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    ingredients_json: Optional[list[Ingredient]] = None
    instructions_json: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    prep_time_minutes: Optional[int] = Field(None, ge=0, le=1440)
    cook_time_minutes: Optional[int] = Field(None, ge=0, le=1440)
    yield_servings: Optional[int] = Field(None, ge=1, le=200)
    source: Optional[RecipeSourceLiteral] = None
    notes: Optional[str] = Field(None, max_length=5000)
    attachments_json: Optional[list[RecipeAttachment]] = Field(None, max_length=20)


class RecipeUpdate(RecipeCreate):
    title: Optional[str] = Field(None, min_length=1, max_length=500)


class RecipeOut(CamelModel):
    id: str
    household_id: str
    title: str
    description: Optional[str]
    ingredients_json: list[dict[str, Any]]
    instructions_json: list[str]
    tags: list[str]
    prep_time_minutes: Optional[int]
    cook_time_minutes: Optional[int]
    yield_servings: Optional[int]
    source: str
    notes: Optional[str]
    attachments_json: list[dict[str, Any]]
    created_at: datetime
    updated_at: datetime


# --- Meal plans ---

class ExternalLink(CamelModel):
    url: HttpUrl
    title: Optional[str] = Field(None, max_length=300)


class MealPlanEntryIn(CamelModel):
    plan_date: date
    meal_slot: MealSlotLiteral
    recipe_ids_json: Optional[list[UUID]] = Field(None, max_length=20)
    external_links_json: Optional[list[ExternalLink]] = Field(None, max_length=20)
    people_covered: Optional[int] = Field(None, ge=1, le=50)
    notes: Optional[str] = Field(None, max_length=5000)


class MealPlanBulkUpsert(CamelModel):
    entries: list[MealPlanEntryIn] = Field(..., min_length=1, max_length=200)


class MealPlanUpdate(CamelModel):
    recipe_ids_json: Optional[list[UUID]] = Field(None, max_length=20)
    external_links_json: Optional[list[ExternalLink]] = Field(None, max_length=20)
    people_covered: Optional[int] = Field(None, ge=1, le=50)
    notes: Optional[str] = Field(None, max_length=5000)


class RecipeRefOut(CamelModel):
    id: str
    title: str


class MealPlanOut(CamelModel):
    id: str
    household_id: str
    plan_date: date
    meal_slot: str
    recipe_id: Optional[str]
    recipe_ids_json: list[str]
    external_links_json: list[dict[str, Any]]
    people_covered: Optional[int]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime
    recipes: list[RecipeRefOut] = []


class BulkUpsertResult(CamelModel):
    created: int
    updated: int
    total: int


# --- Meal planning preferences ---

class MealPlanningPreferenceUpdate(CamelModel):
    notes: Optional[str] = Field(None, max_length=20000)


class MealPlanningPreferenceOut(CamelModel):
    id: str
    household_id: str
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime


# --- Push ---

class PushKeys(CamelModel):
    p256dh: str
    auth: str


class PushSubscriptionIn(CamelModel):
    endpoint: HttpUrl
    keys: PushKeys


class PushUnsubscribeIn(CamelModel):
    endpoint: HttpUrl


class SendResult(CamelModel):
    sent: int
    total: int


# --- Household ---

class HouseholdUserOut(CamelModel):
    id: str
    name: Optional[str]
    email: str


# --- Conversations ---

class ConversationCreate(CamelModel):
    title: Optional[str] = Field(None, max_length=200)
    provider: ProviderLiteral = "google"
    model: Optional[str] = None


class ConversationOut(CamelModel):
    id: str
    household_id: str
    started_by_id: Optional[str]
    title: Optional[str]
    summary: Optional[str]
    provider: str
    model: str
    created_at: datetime
    updated_at: datetime


class ToolCallOut(CamelModel):
    id: str
    tool_call_id: str
    tool_name: str
    tool_input: dict[str, Any]
    sequence: int


class MessageOut(CamelModel):
    id: str
    role: str
    content: Optional[str]
    tool_call_id: Optional[str]
    sequence: int
    created_at: datetime
    tool_calls: list[ToolCallOut] = []


class ConversationLinkIn(CamelModel):
    entity_type: EntityTypeLiteral
    entity_id: str = Field(..., min_length=1, max_length=36)


class ConversationLinkOut(CamelModel):
    id: str
    conversation_id: str
    entity_type: str
    entity_id: str
    created_at: datetime


class ConversationDetailOut(ConversationOut):
    messages: list[MessageOut] = []
    links: list[ConversationLinkOut] = []


class SendMessageIn(CamelModel):
    content: str = Field(..., min_length=1, max_length=10000)


class AssistantTurnOut(CamelModel):
    conversation_id: str
    reply: Optional[str]
    tool_calls: list[dict[str, Any]] = []
    steps: int


# --- AI tools ---

class ToolInfo(CamelModel):
    name: str
    description: str
    input_schema: dict[str, Any]
