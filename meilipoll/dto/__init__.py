from meilipoll.dto.index import IndexesResults, IndexInfo
from meilipoll.dto.task import (
    EnqueuedTask,
    Task,
    TaskError,
    TasksResults,
    TaskStatus,
    TaskType,
)
from meilipoll.dto.wait import DEFAULT_WAIT_INTERVAL, DEFAULT_WAIT_TIMEOUT, WaitOptions
