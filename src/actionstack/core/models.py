"""
Store configuration models for Actionstack
"""

from enum import Enum
from typing import Any, Callable, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Strategy(str, Enum):
    """Admission policy for root dispatches"""
    EXCLUSIVE = "exclusive"     # one root dispatch chain at a time
    CONCURRENT = "concurrent"   # root dispatch chains may overlap


def identity_reducer(state: Any, action: Any) -> Any:
    """Reducer that leaves the state untouched"""
    return state


class MainModule(BaseModel):
    """Configuration of the root store"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    reducer: Callable[..., Any] = Field(default=identity_reducer)
    middleware: List[Callable[..., Any]] = Field(default_factory=list)
    dependencies: Dict[str, Any] = Field(default_factory=dict)
    strategy: Strategy = Strategy.EXCLUSIVE
    initial_state: Any = None


class FeatureModule(BaseModel):
    """A feature slice attached to the store after construction"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    slice: str
    reducer: Callable[..., Any] = Field(default=identity_reducer)
    dependencies: Dict[str, Any] = Field(default_factory=dict)
    initial_state: Any = None

    @field_validator("slice")
    @classmethod
    def slice_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("slice must be a non-empty string")
        return value
