from __future__ import annotations

import sqlite3
from typing import Protocol

from earned_time.db_converters import _row_to_reward_definition, _row_to_reward_redemption
from earned_time.db_models import RewardDefinition, RewardRedemption


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class RewardMixin:
    def upsert_reward_definition(self: DbProtocol, reward: RewardDefinition) -> RewardDefinition:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO reward_definitions(id, name, description, coin_cost, archived)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    description=excluded.description,
                    coin_cost=excluded.coin_cost,
                    archived=excluded.archived
                """,
                (reward.id, reward.name, reward.description, reward.coin_cost, 1 if reward.archived else 0),
            )
            row = conn.execute("SELECT * FROM reward_definitions WHERE id = ?", (reward.id,)).fetchone()
        assert row is not None
        return _row_to_reward_definition(row)

    def get_reward_definition(self: DbProtocol, reward_id: str) -> RewardDefinition | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM reward_definitions WHERE id = ?", (reward_id,)).fetchone()
        return _row_to_reward_definition(row) if row else None

    def list_reward_definitions(self: DbProtocol, include_archived: bool = False) -> list[RewardDefinition]:
        with self._connect() as conn:
            if include_archived:
                rows = conn.execute("SELECT * FROM reward_definitions ORDER BY coin_cost ASC, id ASC").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM reward_definitions WHERE archived = 0 ORDER BY coin_cost ASC, id ASC"
                ).fetchall()
        return [_row_to_reward_definition(r) for r in rows]

    def set_reward_archived(self: DbProtocol, reward_id: str, archived: bool = True) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE reward_definitions SET archived = ? WHERE id = ?",
                (1 if archived else 0, reward_id),
            )
        return cur.rowcount > 0

    def add_reward_redemption(self: DbProtocol, redemption: RewardRedemption) -> RewardRedemption:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO reward_redemptions(id, reward_definition_id, redemption_date_time, coins_spent)
                VALUES (?, ?, ?, ?)
                """,
                (
                    redemption.id,
                    redemption.reward_definition_id,
                    redemption.redemption_date_time.isoformat(),
                    redemption.coins_spent,
                ),
            )
        return redemption

    def list_reward_redemptions(self: DbProtocol) -> list[RewardRedemption]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM reward_redemptions ORDER BY redemption_date_time ASC, rowid ASC"
            ).fetchall()
        return [_row_to_reward_redemption(r) for r in rows]
