from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

JobType = Literal["full_time", "part_time", "contract", "internship", "freelance", "temporary"]
ExperienceLevel = Literal["entry", "mid", "senior", "lead", "executive"]
JobSortMode = Literal["recent", "match"]


class JobSummaryOut(BaseModel):
    id: int
    title: str
    location: str | None = None
    job_type: JobType
    experience_level: ExperienceLevel | None = None
    remote: bool = False
    salary_min: int | None = None
    salary_max: int | None = None
    salary_currency: str | None = None
    category_id: int | None = None
    company_id: int
    company_name: str
    company_logo: str | None = None
    posted_at: datetime
    expires_at: datetime | None = None
    application_count: int = 0
    has_applied: bool = False
    match_percentage: float | None = None
    matching_skill_count: int | None = None
    total_skill_count: int | None = None


class CompanyJobOut(JobSummaryOut):
    is_active: bool
    is_open: bool


class JobDetailOut(CompanyJobOut):
    description: str
    requirements: str | None = None
    responsibilities: str | None = None
    required_skills: list[str] = Field(default_factory=list)
    nice_to_have_skills: list[str] = Field(default_factory=list)
    updated_at: datetime


class JobCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    location: str = Field(min_length=1)
    job_type: JobType
    experience_level: ExperienceLevel | None = None
    requirements: str | None = None
    responsibilities: str | None = None
    category_id: int | None = Field(default=None, ge=1)
    salary_min: int | None = Field(default=None, ge=0)
    salary_max: int | None = Field(default=None, ge=0)
    salary_currency: str | None = Field(default=None, min_length=3, max_length=3)
    remote: bool | None = None
    skills: list[str] = Field(default_factory=list)
    nice_to_have_skills: list[str] = Field(default_factory=list)


class JobUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    location: str | None = Field(default=None, min_length=1)
    job_type: JobType | None = None
    experience_level: ExperienceLevel | None = None
    requirements: str | None = None
    responsibilities: str | None = None
    category_id: int | None = Field(default=None, ge=1)
    salary_min: int | None = Field(default=None, ge=0)
    salary_max: int | None = Field(default=None, ge=0)
    salary_currency: str | None = Field(default=None, min_length=3, max_length=3)
    remote: bool | None = None
    skills: list[str] | None = None
    nice_to_have_skills: list[str] | None = None


class JobReactivateRequest(BaseModel):
    days_active: int = Field(default=30, ge=1)
