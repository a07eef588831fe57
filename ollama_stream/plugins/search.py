"""Search tool plugin - simulated results for a query."""
from __future__ import annotations

import asyncio
from typing import Any, Dict

from pydantic import BaseModel, Field

from ..domain.models.tool import ToolDefinition, define_tool
from ..infrastructure.tools.schemas import ModelSchema

LATENCY_S = 0.3


class SearchArgs(BaseModel):
    query: str = Field(..., description="The search query")


async def search(args: SearchArgs) -> Dict[str, Any]:
    await asyncio.sleep(LATENCY_S)
    return {
        "query": args.query,
        "results": [
            {"title": f'Result 1 for "{args.query}"', "snippet": "This is a simulated search result."},
            {"title": f'Result 2 for "{args.query}"', "snippet": "Another simulated result."},
        ],
    }


TOOL: ToolDefinition = define_tool(
    name="search",
    description="Search for information on a topic",
    parameters=ModelSchema(SearchArgs),
    execute=search,
)
