from typing import Any, Mapping, Sequence

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.markup_repo import MarkupRepo
from app.domain.entities.markup import B2BAccount, CallerMarkup, MarkupRule, MarkupType
from app.infrastructure.db.tables import (
    b2b_accounts,
    from_db_datetime,
    markup_rules,
    user_markups,
    utcnow,
)


class MarkupRepoSQL(MarkupRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_active_rule(
        self,
        b2b_account_id: int | None,
        product_id: int | None,
    ) -> MarkupRule | None:
        account_clause = (
            markup_rules.c.b2b_account_id.is_(None)
            if b2b_account_id is None
            else markup_rules.c.b2b_account_id == b2b_account_id
        )
        product_clause = (
            markup_rules.c.product_id.is_(None)
            if product_id is None
            else markup_rules.c.product_id == product_id
        )
        stmt = (
            select(markup_rules)
            .where(markup_rules.c.is_active.is_(True), account_clause, product_clause)
            .order_by(markup_rules.c.id.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).mappings().first()
        return self._rule(row) if row else None

    async def get_b2b_account(self, account_id: int) -> B2BAccount | None:
        stmt = select(b2b_accounts).where(
            b2b_accounts.c.id == account_id,
            b2b_accounts.c.is_active.is_(True),
        )
        row = (await self._session.execute(stmt)).mappings().first()
        if not row:
            return None
        return B2BAccount(
            id=row["id"],
            name=row["name"],
            default_markup=row["default_markup"],
            is_active=bool(row["is_active"]),
        )

    async def get_caller_markup(self, user_id: str) -> CallerMarkup | None:
        stmt = select(user_markups).where(user_markups.c.user_id == user_id)
        row = (await self._session.execute(stmt)).mappings().first()
        if not row:
            return None
        return CallerMarkup(
            user_id=row["user_id"],
            markup_type=MarkupType(row["markup_type"]),
            value=row["value"],
        )

    async def create_rule(self, rule: MarkupRule) -> MarkupRule:
        now = utcnow()
        result = await self._session.execute(
            insert(markup_rules).values(
                b2b_account_id=rule.b2b_account_id,
                product_id=rule.product_id,
                percentage=rule.percentage,
                is_active=rule.is_active,
                created_at=now,
            )
        )
        rule.id = result.inserted_primary_key[0]
        rule.created_at = from_db_datetime(now)
        return rule

    async def get_rule(self, rule_id: int) -> MarkupRule | None:
        stmt = select(markup_rules).where(markup_rules.c.id == rule_id)
        row = (await self._session.execute(stmt)).mappings().first()
        return self._rule(row) if row else None

    async def update_rule(self, rule: MarkupRule) -> MarkupRule | None:
        result = await self._session.execute(
            update(markup_rules)
            .where(markup_rules.c.id == rule.id)
            .values(
                b2b_account_id=rule.b2b_account_id,
                product_id=rule.product_id,
                percentage=rule.percentage,
                is_active=rule.is_active,
            )
        )
        if result.rowcount == 0:
            return None
        return await self.get_rule(rule.id)

    async def list_rules(self, b2b_account_id: int | None = None) -> Sequence[MarkupRule]:
        stmt = select(markup_rules).order_by(markup_rules.c.id)
        if b2b_account_id is not None:
            stmt = stmt.where(markup_rules.c.b2b_account_id == b2b_account_id)
        rows = (await self._session.execute(stmt)).mappings().all()
        return [self._rule(row) for row in rows]

    async def save_b2b_account(self, account: B2BAccount) -> B2BAccount:
        values = {
            "name": account.name,
            "default_markup": account.default_markup,
            "is_active": account.is_active,
        }
        result = await self._session.execute(
            update(b2b_accounts).where(b2b_accounts.c.id == account.id).values(**values)
        )
        if result.rowcount == 0:
            await self._session.execute(insert(b2b_accounts).values(id=account.id, **values))
        return account

    async def save_caller_markup(self, markup: CallerMarkup) -> CallerMarkup:
        values = {"markup_type": markup.markup_type.value, "value": markup.value}
        result = await self._session.execute(
            update(user_markups).where(user_markups.c.user_id == markup.user_id).values(**values)
        )
        if result.rowcount == 0:
            await self._session.execute(
                insert(user_markups).values(user_id=markup.user_id, **values)
            )
        return markup

    @staticmethod
    def _rule(row: Mapping[str, Any]) -> MarkupRule:
        return MarkupRule(
            id=row["id"],
            b2b_account_id=row["b2b_account_id"],
            product_id=row["product_id"],
            percentage=row["percentage"],
            is_active=bool(row["is_active"]),
            created_at=from_db_datetime(row["created_at"]),
        )
