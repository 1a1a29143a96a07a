from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """Entity is absent or the caller may not see it.

    Non-participants get the same message as a missing entity so battle ids
    cannot be probed.
    """

    def __init__(self, detail: str = "Battle not found") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ForbiddenError(HTTPException):
    def __init__(self, detail: str) -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ValidationFailedError(HTTPException):
    def __init__(self, detail: str, issues: list[str] | None = None) -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
        self.issues = issues or []


class BattleBusyError(HTTPException):
    def __init__(self, battle_id: int) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Battle {battle_id} is busy, try again",
        )
