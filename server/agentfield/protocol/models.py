from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


AgentStatus = Literal["active", "resting", "moving"]


class Position(BaseModel):
    x: float
    y: float


class AgentCharacteristics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    energy: int = Field(ge=0, le=100)
    speed: int = Field(ge=0, le=100)
    influence: int = Field(ge=0, le=100)
    age: int = Field(ge=0)
    status: AgentStatus
    last_updated: str = Field(alias="lastUpdated")


class AgentRecord(BaseModel):
    id: str = Field(min_length=1)
    position: Position
    state: str = "active"
    connections: list[str] = Field(default_factory=list)
    characteristics: AgentCharacteristics


class StateMessage(BaseModel):
    agents: list[AgentRecord]
    timestamp: int = Field(ge=0)
