from .db import (
    Base,
    KvEntry,
    KvStore,
    ListResult,
    create_all,
    get_engine,
    get_session_maker,
    dispose_engine,
)  # noqa: F401
