from dataclasses import replace
from datetime import datetime, timezone
from typing import Sequence

from app.application.interfaces.markup_repo import MarkupRepo
from app.domain.entities.markup import B2BAccount, CallerMarkup, MarkupRule


class InMemoryMarkupRepo(MarkupRepo):
    def __init__(self) -> None:
        self.rules: dict[int, MarkupRule] = {}
        self.accounts: dict[int, B2BAccount] = {}
        self.caller_markups: dict[str, CallerMarkup] = {}
        self._next_id = 1

    async def find_active_rule(
        self,
        b2b_account_id: int | None,
        product_id: int | None,
    ) -> MarkupRule | None:
        matches = [
            rule
            for rule in self.rules.values()
            if rule.is_active
            and rule.b2b_account_id == b2b_account_id
            and rule.product_id == product_id
        ]
        return max(matches, key=lambda rule: rule.id) if matches else None

    async def get_b2b_account(self, account_id: int) -> B2BAccount | None:
        account = self.accounts.get(account_id)
        if account and account.is_active:
            return account
        return None

    async def get_caller_markup(self, user_id: str) -> CallerMarkup | None:
        return self.caller_markups.get(user_id)

    async def create_rule(self, rule: MarkupRule) -> MarkupRule:
        rule.id = self._next_id
        rule.created_at = rule.created_at or datetime.now(timezone.utc)
        self.rules[rule.id] = rule
        self._next_id += 1
        return rule

    async def get_rule(self, rule_id: int) -> MarkupRule | None:
        rule = self.rules.get(rule_id)
        return replace(rule) if rule else None

    async def update_rule(self, rule: MarkupRule) -> MarkupRule | None:
        if rule.id not in self.rules:
            return None
        self.rules[rule.id] = replace(rule, created_at=self.rules[rule.id].created_at)
        return replace(self.rules[rule.id])

    async def list_rules(self, b2b_account_id: int | None = None) -> Sequence[MarkupRule]:
        rules = sorted(self.rules.values(), key=lambda rule: rule.id)
        if b2b_account_id is None:
            return rules
        return [rule for rule in rules if rule.b2b_account_id == b2b_account_id]

    async def save_b2b_account(self, account: B2BAccount) -> B2BAccount:
        self.accounts[account.id] = account
        return account

    async def save_caller_markup(self, markup: CallerMarkup) -> CallerMarkup:
        self.caller_markups[markup.user_id] = markup
        return markup
