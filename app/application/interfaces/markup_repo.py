from typing import Sequence

from app.domain.entities.markup import B2BAccount, CallerMarkup, MarkupRule


class MarkupRepo:
    async def find_active_rule(
        self,
        b2b_account_id: int | None,
        product_id: int | None,
    ) -> MarkupRule | None:
        """
        Exact-scope lookup: a None argument matches rules where that column is
        NULL. When several active rules share the scope, the newest wins.
        """
        raise NotImplementedError

    async def get_b2b_account(self, account_id: int) -> B2BAccount | None:
        raise NotImplementedError

    async def get_caller_markup(self, user_id: str) -> CallerMarkup | None:
        raise NotImplementedError

    async def get_rule(self, rule_id: int) -> MarkupRule | None:
        raise NotImplementedError

    async def create_rule(self, rule: MarkupRule) -> MarkupRule:
        raise NotImplementedError

    async def update_rule(self, rule: MarkupRule) -> MarkupRule | None:
        """Overwrites percentage, scope and is_active. None when the rule does not exist."""
        raise NotImplementedError

    async def list_rules(self, b2b_account_id: int | None = None) -> Sequence[MarkupRule]:
        raise NotImplementedError

    async def save_b2b_account(self, account: B2BAccount) -> B2BAccount:
        raise NotImplementedError

    async def save_caller_markup(self, markup: CallerMarkup) -> CallerMarkup:
        raise NotImplementedError
