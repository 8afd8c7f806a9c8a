from dataclasses import dataclass
from enum import Enum


class PrincipalType(str, Enum):
    HUMAN = "human"
    MACHINE = "machine"


@dataclass(slots=True)
class Principal:
    principal_type: PrincipalType
    subject: str
    scopes: set[str]
    role: str | None = None
    candidate_id: int | None = None
    company_id: int | None = None

    def require_scopes(self, required: set[str]) -> None:
        missing = required - self.scopes
        if missing:
            raise PermissionError(f"missing required scopes: {sorted(missing)}")

    def require_candidate(self) -> int:
        if self.role != "job_seeker" or self.candidate_id is None:
            raise PermissionError("job seeker profile required")
        return self.candidate_id

    def require_company(self) -> int:
        if self.role not in {"company", "admin"} or self.company_id is None:
            raise PermissionError("company profile required")
        return self.company_id

