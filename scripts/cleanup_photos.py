"""Drop photo references whose files are gone from the upload directory."""
import asyncio
import logging

from dotenv import load_dotenv

load_dotenv()

from farmlink.core.db import get_client, get_db  # noqa: E402
from farmlink.repos.mongo import MongoRepo  # noqa: E402
from farmlink.services.storage import PhotoStorage, prune_missing_photos  # noqa: E402


async def main():
    logging.basicConfig(level=logging.INFO)
    repo = MongoRepo(get_db())
    storage = PhotoStorage()

    fixed = 0
    for order in await repo.list_orders():
        fields = prune_missing_photos(order, storage)
        if fields:
            await repo.update_order(order["_id"], fields)
            fixed += 1
    print(f"Cleaned photo references on {fixed} orders")
    get_client().close()

if __name__ == "__main__":
    asyncio.run(main())
