from pydantic import BaseModel

from app.schemas.job import JobResponse


class ClientResponse(BaseModel):
    id: str
    name: str
    gmail: str
    starting_point: str
    job_count: int = 0
    created_at: str
    updated_at: str


class ClientDetailResponse(BaseModel):
    client: ClientResponse
    jobs: list[JobResponse]
    engagement_letter: str | None = None


class ServiceCreate(BaseModel):
    name: str
    description: str
    status: str = "active"


class ServiceUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    status: str | None = None


class ServiceResponse(BaseModel):
    id: str
    name: str
    description: str
    status: str
    usage_count: int
    created_at: str
    updated_at: str
