from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class AskRequest(BaseModel):
    question: Optional[str] = Field(default=None, max_length=4000)
    max_context: Optional[int] = Field(default=None, alias="maxContext", ge=0, le=100)

    model_config = ConfigDict(populate_by_name=True)


class SearchRequest(BaseModel):
    query: Optional[str] = Field(default=None, max_length=1000)
    max_results: Optional[int] = Field(default=None, alias="maxResults", ge=0, le=100)

    model_config = ConfigDict(populate_by_name=True)


class ReferenceOut(BaseModel):
    article: str
    title: str


class AskResponse(BaseModel):
    question: str
    answer: str
    references: List[ReferenceOut] = Field(default_factory=list)
    mode: str
    correlation_id: Optional[str] = None


class SearchResult(BaseModel):
    article: str
    title: str
    content: str
    score: float
    highlight: Optional[str] = None


class SearchResponseOut(BaseModel):
    query: str
    results: List[SearchResult] = Field(default_factory=list)
    total: int


class ArticleOut(BaseModel):
    article: str
    title: str
    content: str
    category: str
    keywords: List[str] = Field(default_factory=list)
    indexed_at: Optional[datetime] = None


class StatsResponse(BaseModel):
    rules: int
    definitions: int


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
