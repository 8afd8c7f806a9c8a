from pydantic import BaseModel


class ReapResultOut(BaseModel):
    deactivated: int
