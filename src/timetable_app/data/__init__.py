from .database import Database
from .state_store import STATE_KEYS, StateStore

__all__ = ["Database", "StateStore", "STATE_KEYS"]
