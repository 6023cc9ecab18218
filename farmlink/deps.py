from functools import lru_cache

from farmlink.core.config import settings


@lru_cache(maxsize=1)
def _repo_singleton():
    if settings.use_mongo:
        from farmlink.core.db import get_db
        from farmlink.repos.mongo import MongoRepo
        return MongoRepo(get_db())
    from farmlink.repos.inmemory import InMemoryRepo
    return InMemoryRepo()


def get_repo():
    return _repo_singleton()
