import asyncio

from app.core.logging import setup_logging
from app.db.session import SessionAsync, init_db
from app.seed.defaults import seed_all


async def main():
    await init_db()
    async with SessionAsync() as db:
        await seed_all(db)


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
