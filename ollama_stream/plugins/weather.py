"""Weather tool plugin - simulated current conditions for a city."""
from __future__ import annotations

import asyncio
import random
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..domain.models.tool import ToolDefinition, define_tool
from ..infrastructure.tools.schemas import ModelSchema

CONDITIONS = ("sunny", "cloudy", "rainy", "windy")
LATENCY_S = 0.5


class WeatherArgs(BaseModel):
    location: str = Field(..., description='The city name, e.g. "San Francisco"')
    unit: Optional[Literal["celsius", "fahrenheit"]] = Field(None, description="Temperature unit")


class WeatherReport(BaseModel):
    location: str
    temperature: int
    unit: str
    condition: str


async def get_weather(args: WeatherArgs) -> WeatherReport:
    """Get current weather for a location (simulated)."""
    await asyncio.sleep(LATENCY_S)
    return WeatherReport(
        location=args.location,
        temperature=random.randint(10, 39),
        unit=args.unit or "celsius",
        condition=random.choice(CONDITIONS),
    )


TOOL: ToolDefinition = define_tool(
    name="get_weather",
    description="Get the current weather for a location",
    parameters=ModelSchema(WeatherArgs),
    execute=get_weather,
)
