# File: api/models/paper_models.py
from pydantic import BaseModel, Field
from typing import List, Literal, Optional, Union


class PaperTextRequest(BaseModel):
    title: str = Field(min_length=1)
    abstract: str = Field(min_length=1)


class ExplainRequest(PaperTextRequest):
    level: Literal["eli5", "student", "expert"] = "student"
    readme: Optional[str] = None


class ReviewRequest(PaperTextRequest):
    readme: Optional[str] = None


class CompareRequest(BaseModel):
    ids: Union[List[str], str]


class RepoMetaRequest(BaseModel):
    inputs: List[str] = Field(min_length=1, max_length=25)
    readme: bool = False
    ref: Optional[str] = None
