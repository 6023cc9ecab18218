import asyncio

from dotenv import load_dotenv

load_dotenv()

from farmlink.core.db import get_client, get_db  # noqa: E402
from farmlink.core.indexes import ensure_indexes  # noqa: E402


async def main():
    await ensure_indexes(get_db())
    print("Indexes ensured")
    get_client().close()

if __name__ == "__main__":
    asyncio.run(main())
