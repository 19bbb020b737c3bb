import asyncio
import sys
from pathlib import Path

# Add project root to sys.path
project_root = Path(__file__).resolve().parent.parent
sys.path.append(str(project_root))

from app.config import get_settings  # noqa: E402
from app.infrastructure.db.engine import build_engine, create_schema, drop_schema  # noqa: E402
from app.infrastructure.db.tables import metadata  # noqa: E402


async def reset():
    engine = build_engine(get_settings())
    await drop_schema(engine)
    for table in reversed(metadata.sorted_tables):
        print(f"Dropped {table.name}")

    await create_schema(engine)
    print("Recreated all tables.")
    await engine.dispose()

if __name__ == "__main__":
    asyncio.run(reset())
