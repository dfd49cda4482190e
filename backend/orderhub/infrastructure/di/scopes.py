"""Service scopes for the DI container."""
from enum import Enum


class Scope(Enum):
    SINGLETON = "singleton"
    TRANSIENT = "transient"
