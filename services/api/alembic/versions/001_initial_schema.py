"""Initial schema: households, tasks, lists, recipes, meal plans, conversations, push

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id():
    return sa.Column("id", sa.String(36), primary_key=True)


def _household_fk(nullable: bool = False):
    return sa.Column(
        "household_id", sa.String(36),
        sa.ForeignKey("households.id", ondelete="CASCADE"), nullable=nullable,
    )


def _timestamps(updated: bool = True):
    cols = [sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime, server_default=sa.func.now(), nullable=False))
    return cols


def upgrade() -> None:
    op.create_table(
        "households",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        "family_members",
        _id(),
        _household_fk(),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("nickname", sa.String(100), nullable=True),
        sa.Column("birthday", sa.Date, nullable=True),
        sa.Column("gender", sa.String(30), nullable=True),
        sa.Column("avatar_url", sa.Text, nullable=True),
        sa.Column("profile_data", postgresql.JSONB, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_family_members_household_id", "family_members", ["household_id"])

    op.create_table(
        "users",
        _id(),
        _household_fk(nullable=True),
        sa.Column("family_member_id", sa.String(36), sa.ForeignKey("family_members.id", ondelete="SET NULL"), nullable=True),
        sa.Column("email", sa.String(320), unique=True, nullable=False),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("image", sa.Text, nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_users_household_id", "users", ["household_id"])

    # Tasks
    op.create_table(
        "themes",
        _id(),
        _household_fk(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("icon", sa.String(50), nullable=True),
        sa.Column("color", sa.String(20), nullable=True),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(updated=False),
    )
    op.create_index("ix_themes_household_id", "themes", ["household_id"])

    op.create_table(
        "projects",
        _id(),
        _household_fk(),
        sa.Column("theme_id", sa.String(36), sa.ForeignKey("themes.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("due_date", sa.DateTime, nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_projects_household_id", "projects", ["household_id"])

    op.create_table(
        "tasks",
        _id(),
        _household_fk(),
        sa.Column("theme_id", sa.String(36), sa.ForeignKey("themes.id", ondelete="SET NULL"), nullable=True),
        sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="todo"),
        sa.Column("assigned_to_id", sa.String(36), sa.ForeignKey("family_members.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("due_date", sa.DateTime, nullable=True),
        sa.Column("is_recurring", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("recurrence_type", sa.String(20), nullable=True),
        sa.Column("recurrence_interval", sa.Integer, nullable=True),
        sa.Column("next_due_date", sa.DateTime, nullable=True),
        sa.Column("last_completed_at", sa.DateTime, nullable=True),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_tasks_household_id", "tasks", ["household_id"])
    op.create_index("ix_tasks_household_status_due", "tasks", ["household_id", "status", "due_date"])

    # Lists
    op.create_table(
        "lists",
        _id(),
        _household_fk(),
        sa.Column("created_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.String(200), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_lists_household_id", "lists", ["household_id"])

    op.create_table(
        "list_items",
        _id(),
        sa.Column("list_id", sa.String(36), sa.ForeignKey("lists.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.String(1000), nullable=False),
        sa.Column("added_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column("marked_off_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_list_items_list_id", "list_items", ["list_id"])

    op.create_table(
        "list_shares",
        _id(),
        sa.Column("list_id", sa.String(36), sa.ForeignKey("lists.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint("list_id", "user_id", name="list_shares_list_user_unique"),
    )

    op.create_table(
        "list_pins",
        _id(),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("list_id", sa.String(36), sa.ForeignKey("lists.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(updated=False),
        sa.UniqueConstraint("user_id", "list_id", name="list_pins_user_list_unique"),
    )

    # Recipes and meal planning
    op.create_table(
        "recipes",
        _id(),
        _household_fk(),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("ingredients_json", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("instructions_json", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("tags", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("prep_time_minutes", sa.Integer, nullable=True),
        sa.Column("cook_time_minutes", sa.Integer, nullable=True),
        sa.Column("yield_servings", sa.Integer, nullable=True),
        sa.Column("source", sa.String(20), nullable=False, server_default="manual"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("attachments_json", postgresql.JSONB, nullable=False, server_default="[]"),
        *_timestamps(),
    )
    op.create_index("ix_recipes_household_id", "recipes", ["household_id"])

    op.create_table(
        "meal_plans",
        _id(),
        _household_fk(),
        sa.Column("plan_date", sa.Date, nullable=False),
        sa.Column("meal_slot", sa.String(20), nullable=False),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id", ondelete="SET NULL"), nullable=True),
        sa.Column("recipe_ids_json", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("external_links_json", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("people_covered", sa.Integer, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("household_id", "plan_date", "meal_slot", name="meal_plans_household_date_slot_unique"),
    )

    op.create_table(
        "meal_planning_preferences",
        _id(),
        sa.Column("household_id", sa.String(36), sa.ForeignKey("households.id", ondelete="CASCADE"), unique=True, nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps(),
    )

    # Assistant conversations
    op.create_table(
        "conversations",
        _id(),
        _household_fk(),
        sa.Column("started_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("summary", sa.Text, nullable=True),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("model_config", postgresql.JSONB, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_conversations_household_id", "conversations", ["household_id"])

    op.create_table(
        "conversation_messages",
        _id(),
        sa.Column("conversation_id", sa.String(36), sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("content", sa.Text, nullable=True),
        sa.Column("tool_call_id", sa.String(100), nullable=True),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("raw_message", postgresql.JSONB, nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index(
        "ix_conversation_messages_conversation_seq", "conversation_messages", ["conversation_id", "sequence"]
    )

    op.create_table(
        "tool_calls",
        _id(),
        sa.Column("message_id", sa.String(36), sa.ForeignKey("conversation_messages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tool_call_id", sa.String(100), nullable=False),
        sa.Column("tool_name", sa.String(100), nullable=False),
        sa.Column("tool_input", postgresql.JSONB, nullable=False),
        sa.Column("sequence", sa.Integer, nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        "tool_results",
        _id(),
        sa.Column("conversation_id", sa.String(36), sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tool_call_id", sa.String(100), nullable=False),
        sa.Column("message_id", sa.String(36), sa.ForeignKey("conversation_messages.id", ondelete="SET NULL"), nullable=True),
        sa.Column("result", postgresql.JSONB, nullable=False),
        sa.Column("is_error", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(updated=False),
    )

    op.create_table(
        "conversation_links",
        _id(),
        sa.Column("conversation_id", sa.String(36), sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        "push_subscriptions",
        _id(),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("endpoint", sa.Text, unique=True, nullable=False),
        sa.Column("p256dh", sa.Text, nullable=False),
        sa.Column("auth", sa.Text, nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_push_subscriptions_user_id", "push_subscriptions", ["user_id"])


def downgrade() -> None:
    for table in (
        "push_subscriptions",
        "conversation_links",
        "tool_results",
        "tool_calls",
        "conversation_messages",
        "conversations",
        "meal_planning_preferences",
        "meal_plans",
        "recipes",
        "list_pins",
        "list_shares",
        "list_items",
        "lists",
        "tasks",
        "projects",
        "themes",
        "users",
        "family_members",
        "households",
    ):
        op.drop_table(table)
