from pydantic import BaseModel, Field

from app.core.enums import DeckValidationOutcome


class DeckValidationResult(BaseModel):
    outcome: DeckValidationOutcome
    message: str | None = None
    issues: list[str] = Field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.outcome is DeckValidationOutcome.VALID
