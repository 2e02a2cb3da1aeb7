"""
Pydantic schemas for the external feeds (tools, latest tools, CVEs, forum posts).
"""

from typing import List, Optional

from pydantic import Field

from labsite.schemas.common import CamelModel


class Tool(CamelModel):
    id: str
    name: str
    description: str = ""
    link: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    last_updated: Optional[str] = None
    stars: Optional[int] = None
    language: Optional[str] = None


class ToolsMeta(CamelModel):
    total: int
    last_updated: str
    source: str
    error: Optional[str] = None


class ToolsResponse(CamelModel):
    tools: List[Tool]
    meta: ToolsMeta


class CVEItem(CamelModel):
    id: str
    title: str
    description: str
    severity: str
    score: float
    published_date: str
    last_modified: str
    references: List[str] = Field(default_factory=list)
    affected_products: List[str] = Field(default_factory=list)


class ForumPost(CamelModel):
    title: str
    link: str
    upvotes: int = 0
    comments: int = 0
    source: str


class LatestTool(CamelModel):
    id: str
    name: str
    description: str = ""
    link: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    source: str
    published_at: Optional[str] = None
    stars: Optional[int] = None
    language: Optional[str] = None


class LatestToolsMeta(CamelModel):
    total: int
    category: str
    last_updated: str
    sources: List[str] = Field(default_factory=list)


class LatestToolsResponse(CamelModel):
    tools: List[LatestTool]
    meta: LatestToolsMeta
