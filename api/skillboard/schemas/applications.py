from pydantic import BaseModel


class ApplicationCreatedOut(BaseModel):
    application_id: int
    job_id: int
