import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add project root to sys.path
project_root = Path(__file__).resolve().parent.parent
sys.path.append(str(project_root))

from app.config import get_settings  # noqa: E402
from app.domain.entities.markup import B2BAccount, CallerMarkup, MarkupRule, MarkupType  # noqa: E402
from app.infrastructure.db.engine import (  # noqa: E402
    build_engine,
    build_sessionmaker,
    create_schema,
)
from app.infrastructure.db.repositories.markup_repo_sql import MarkupRepoSQL  # noqa: E402
from app.infrastructure.db.transaction_manager import SQLAlchemyTransactionManager  # noqa: E402


async def seed():
    engine = build_engine(get_settings())
    await create_schema(engine)
    print("Created missing tables.")

    async with build_sessionmaker(engine)() as session:
        repo = MarkupRepoSQL(session)
        async with SQLAlchemyTransactionManager(session).start():
            await repo.save_b2b_account(
                B2BAccount(id=1, name="Desert Travel Agency", default_markup=Decimal("5"))
            )
            await repo.save_b2b_account(B2BAccount(id=2, name="City Breaks B2B"))
            await repo.create_rule(MarkupRule(percentage=Decimal("10"), b2b_account_id=1))
            await repo.create_rule(MarkupRule(percentage=Decimal("20"), product_id=101))
            await repo.create_rule(
                MarkupRule(percentage=Decimal("12.5"), b2b_account_id=1, product_id=101)
            )
            await repo.save_caller_markup(
                CallerMarkup(user_id="user-1", markup_type=MarkupType.FIXED, value=Decimal("15"))
            )

    await engine.dispose()
    print("Seeded B2B accounts, markup rules and a personal markup.")

if __name__ == "__main__":
    asyncio.run(seed())
