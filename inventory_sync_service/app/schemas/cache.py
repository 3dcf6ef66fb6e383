from typing import Dict

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CacheStatsResponse(CamelModel):
    total_entries: int
    size_by_scope: Dict[str, int]
    average_age: float
    max_entries: int
    hits: int
    misses: int
    hit_rate: float
    evictions: int


class CacheClearResponse(CamelModel):
    removed: int
