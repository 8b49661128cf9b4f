"""
Survey and question Pydantic schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from models.survey import QuestionType, SurveyStatus


class QuestionCreate(BaseModel):
    """Schema for adding a question to a survey."""

    text: str = Field(..., min_length=3, max_length=500)
    question_type: QuestionType = QuestionType.TEXT
    is_required: bool = True
    max_responses: Optional[int] = Field(None, ge=1)
    allow_multiple_answers: bool = False


class Question(BaseModel):
    """Schema for question responses."""

    id: str
    survey_id: str
    text: str
    question_type: QuestionType
    order_index: int
    is_required: bool = True
    max_responses: Optional[int] = None
    allow_multiple_answers: bool = False

    model_config = {"from_attributes": True}


class QuestionUpdate(BaseModel):
    """Partial update of a question; omitted fields keep their value."""

    text: Optional[str] = Field(None, min_length=3, max_length=500)
    question_type: Optional[QuestionType] = None
    is_required: Optional[bool] = None
    max_responses: Optional[int] = Field(None, ge=1)
    allow_multiple_answers: Optional[bool] = None


class ReorderQuestions(BaseModel):
    """New question order, as the full list of question IDs."""

    question_ids: list[str] = Field(..., min_length=1)


class SurveyCreate(BaseModel):
    """Schema for creating a survey. Surveys always start in DRAFT."""

    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    allow_multiple_responses: bool = False


class SurveyUpdate(BaseModel):
    """Schema for editing a survey that is not live yet. Omitted fields stay unchanged."""

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    allow_multiple_responses: Optional[bool] = None


class ScheduleSurvey(BaseModel):
    """Request body for scheduling a survey."""

    start_date: datetime


class Survey(BaseModel):
    """Survey summary."""

    id: str
    title: str
    description: Optional[str] = None
    status: SurveyStatus
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    allow_multiple_responses: bool = False
    created_by_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    is_open: bool = Field(False, description="Whether the survey accepts responses right now")

    model_config = {"from_attributes": True}


class SurveyDetail(Survey):
    """Survey with its ordered questions."""

    questions: list[Question] = []


class SurveyListResponse(BaseModel):
    """Paginated list of surveys."""

    surveys: list[Survey]
    total: int
    page: int
    per_page: int
    total_pages: int


class SurveyStatistics(BaseModel):
    """Aggregate counts for a survey, computed at request time."""

    survey_id: str
    question_count: int
    total_responses: int
    total_upvotes: int


class SurveyStatusCounts(BaseModel):
    """Number of surveys per lifecycle status."""

    total: int
    draft: int
    scheduled: int
    active: int
    closed: int
