# pyright: reportAttributeAccessIssue=false, reportUndefinedVariable=false
"""create_battle_tables

Revision ID: 4f1c2a7b9e03
Revises:
Create Date: 2026-10-19 09:00:12.418305

"""

from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel.sql.sqltypes

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4f1c2a7b9e03"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

battle_mode = sa.Enum("FRIENDLY", "COMPETITIVE", "ULTIMATE", name="battlemode")
battle_status = sa.Enum(
    "PENDING", "IN_PROGRESS", "COMPLETED", "ABANDONED", "EXPIRED", name="battlestatus"
)
account_type = sa.Enum("STANDARD", "PARENT", "CHILD", name="accounttype")
friendship_status = sa.Enum("PENDING", "APPROVED", "REJECTED", name="friendshipstatus")
notification_type = sa.Enum(
    "BATTLE_CHALLENGE",
    "BATTLE_ACCEPTED",
    "BATTLE_DECLINED",
    "BATTLE_CANCELLED",
    name="notificationtype",
)
event_type = sa.Enum(
    "BATTLE_WON",
    "BATTLE_LOST",
    "BATTLE_DRAW",
    "BATTLE_FORFEITED",
    "BATTLE_CARD_WON",
    "BATTLE_CARD_LOST",
    name="eventtype",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _phase_card_columns(prefix: str) -> list[sa.Column]:
    return [
        sa.Column(f"{prefix}_card_id", sa.Integer(), nullable=False),
        *(
            sa.Column(f"{prefix}_{when}_{stat}", sa.Integer(), nullable=False)
            for when in ("start", "end")
            for stat in ("speed", "attack", "defense")
        ),
        sa.ForeignKeyConstraint([f"{prefix}_card_id"], ["user_cards.id"]),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "players",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column("email", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("account_type", account_type, nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("is_system", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_players_id"), "players", ["id"])
    op.create_index(op.f("ix_players_username"), "players", ["username"], unique=True)
    op.create_index(op.f("ix_players_is_system"), "players", ["is_system"])

    op.create_table(
        "card_types",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column("is_battle_card", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index(op.f("ix_card_types_id"), "card_types", ["id"])

    op.create_table(
        "cards",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("card_type_id", sa.Integer(), nullable=False),
        sa.Column("speed", sa.Integer(), nullable=False),
        sa.Column("attack", sa.Integer(), nullable=False),
        sa.Column("defense", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["card_type_id"], ["card_types.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_cards_id"), "cards", ["id"])
    op.create_index(op.f("ix_cards_name"), "cards", ["name"])
    op.create_index(op.f("ix_cards_card_type_id"), "cards", ["card_type_id"])

    op.create_table(
        "user_cards",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("card_id", sa.Integer(), nullable=False),
        sa.Column("is_in_marketplace", sa.Boolean(), nullable=False),
        sa.Column("is_in_trade", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["card_id"], ["cards.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_user_cards_id"), "user_cards", ["id"])
    op.create_index(op.f("ix_user_cards_owner_id"), "user_cards", ["owner_id"])
    op.create_index(op.f("ix_user_cards_card_id"), "user_cards", ["card_id"])

    op.create_table(
        "battle_decks",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_battle_decks_id"), "battle_decks", ["id"])
    op.create_index(op.f("ix_battle_decks_owner_id"), "battle_decks", ["owner_id"])

    op.create_table(
        "battle_deck_cards",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("deck_id", sa.Integer(), nullable=False),
        sa.Column("user_card_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["deck_id"], ["battle_decks.id"]),
        sa.ForeignKeyConstraint(["user_card_id"], ["user_cards.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("deck_id", "position", name="uq_deck_position"),
    )
    op.create_index(op.f("ix_battle_deck_cards_id"), "battle_deck_cards", ["id"])
    op.create_index(op.f("ix_battle_deck_cards_deck_id"), "battle_deck_cards", ["deck_id"])
    op.create_index(
        op.f("ix_battle_deck_cards_user_card_id"), "battle_deck_cards", ["user_card_id"]
    )

    op.create_table(
        "friendships",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("requester_id", sa.Integer(), nullable=False),
        sa.Column("recipient_id", sa.Integer(), nullable=False),
        sa.Column("status", friendship_status, nullable=False),
        sa.ForeignKeyConstraint(["requester_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["recipient_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_friendships_id"), "friendships", ["id"])
    op.create_index(op.f("ix_friendships_requester_id"), "friendships", ["requester_id"])
    op.create_index(op.f("ix_friendships_recipient_id"), "friendships", ["recipient_id"])

    op.create_table(
        "parent_controls",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("child_id", sa.Integer(), nullable=False),
        sa.Column("allow_competitive", sa.Boolean(), nullable=False),
        sa.Column("allow_ultimate", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["child_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_parent_controls_id"), "parent_controls", ["id"])
    op.create_index(op.f("ix_parent_controls_child_id"), "parent_controls", ["child_id"], unique=True)

    op.create_table(
        "battles",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player1_id", sa.Integer(), nullable=False),
        sa.Column("player2_id", sa.Integer(), nullable=False),
        sa.Column("player1_deck_id", sa.Integer(), nullable=False),
        sa.Column("player2_deck_id", sa.Integer(), nullable=True),
        sa.Column("mode", battle_mode, nullable=False),
        sa.Column("is_ai_battle", sa.Boolean(), nullable=False),
        sa.Column("status", battle_status, nullable=False),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["player1_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["player2_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["player1_deck_id"], ["battle_decks.id"]),
        sa.ForeignKeyConstraint(["player2_deck_id"], ["battle_decks.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_battles_id"), "battles", ["id"])
    op.create_index(op.f("ix_battles_player1_id"), "battles", ["player1_id"])
    op.create_index(op.f("ix_battles_player2_id"), "battles", ["player2_id"])
    op.create_index(op.f("ix_battles_status"), "battles", ["status"])
    op.create_index(op.f("ix_battles_winner_id"), "battles", ["winner_id"])

    op.create_table(
        "battle_sessions",
        *_timestamps(),
        sa.Column("battle_id", sa.Integer(), nullable=False),
        sa.Column("state", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["battle_id"], ["battles.id"]),
        sa.PrimaryKeyConstraint("battle_id"),
    )

    op.create_table(
        "battle_phase_logs",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("battle_id", sa.Integer(), nullable=False),
        sa.Column("mode", battle_mode, nullable=False),
        sa.Column("phase_number", sa.Integer(), nullable=False),
        *_phase_card_columns("winner"),
        *_phase_card_columns("loser"),
        sa.ForeignKeyConstraint(["battle_id"], ["battles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_battle_phase_logs_id"), "battle_phase_logs", ["id"])
    op.create_index(op.f("ix_battle_phase_logs_battle_id"), "battle_phase_logs", ["battle_id"])

    op.create_table(
        "battle_stats",
        *_timestamps(),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("total_battles", sa.Integer(), nullable=False),
        sa.Column("wins", sa.Integer(), nullable=False),
        sa.Column("losses", sa.Integer(), nullable=False),
        sa.Column("win_rate", sa.Float(), nullable=False),
        sa.Column("friendly_battles", sa.Integer(), nullable=False),
        sa.Column("competitive_battles", sa.Integer(), nullable=False),
        sa.Column("ultimate_battles", sa.Integer(), nullable=False),
        sa.Column("last_battle_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("player_id"),
    )

    op.create_table(
        "notifications",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("notification_type", notification_type, nullable=False),
        sa.Column("title", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("message", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("related_player_id", sa.Integer(), nullable=True),
        sa.Column("battle_id", sa.Integer(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["related_player_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["battle_id"], ["battles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_notifications_id"), "notifications", ["id"])
    op.create_index(op.f("ix_notifications_player_id"), "notifications", ["player_id"])

    op.create_table(
        "event_logs",
        *_timestamps(),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("event_type", event_type, nullable=False),
        sa.Column("context", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_event_logs_id"), "event_logs", ["id"])
    op.create_index(op.f("ix_event_logs_player_id"), "event_logs", ["player_id"])


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        "event_logs",
        "notifications",
        "battle_stats",
        "battle_phase_logs",
        "battle_sessions",
        "battles",
        "parent_controls",
        "friendships",
        "battle_deck_cards",
        "battle_decks",
        "user_cards",
        "cards",
        "card_types",
        "players",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in (
        event_type,
        notification_type,
        friendship_status,
        account_type,
        battle_status,
        battle_mode,
    ):
        enum.drop(bind, checkfirst=True)
