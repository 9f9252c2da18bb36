from datetime import datetime
from typing import List, Optional

from pydantic import Field

from meilipoll.dto.base import BaseInfo


class IndexInfo(BaseInfo):
    uid: str = Field(..., description="Unique name of the index")
    primary_key: Optional[str] = Field(default=None, description="Document attribute used as id")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IndexesResults(BaseInfo):
    results: List[IndexInfo] = Field(default_factory=list)
    total: Optional[int] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
