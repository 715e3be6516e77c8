from pydantic import BaseModel, Field
from typing import List

class QuestionCheck(BaseModel):
    category: str = Field(description="Input message category. only 'Question' or 'NonQuestion'")
    is_question: bool = Field(description="Is the input message a question?")

class SearchQuery(BaseModel):
    queries: List[str] = Field(description="List of search queries. maximum 3 queries. minimum 1 query.")
