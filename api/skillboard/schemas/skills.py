from pydantic import BaseModel, Field


class SkillOut(BaseModel):
    id: int
    name: str


class CategoryOut(BaseModel):
    id: int
    name: str
    description: str | None = None


class SkillSetRequest(BaseModel):
    skills: list[str] = Field(default_factory=list, max_length=200)


class SkillSetOut(BaseModel):
    skills: list[str] = Field(default_factory=list)