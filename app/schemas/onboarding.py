from pydantic import BaseModel, Field

from app.schemas.common import RequestModel


class OnboardingModuleRead(BaseModel):
    id: int
    title: str
    description: str
    icon: str
    estimated_time: str
    tags: list[str] = Field(default_factory=list)
    completed: bool


class OnboardingModulesRead(BaseModel):
    modules: list[OnboardingModuleRead]
    progress: int
    total_modules: int
    completed_modules: int


class OnboardingProgressRequest(RequestModel):
    user_id: str
    module_id: int


class OnboardingProgressRead(BaseModel):
    progress: int
    message: str
    points_earned: int = 0
    badges_earned: list[str] = Field(default_factory=list)
