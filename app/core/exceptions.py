from fastapi import HTTPException, status


class RecordValidationError(HTTPException):
    """Malformed product identifier or payload. Nothing was written."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class RecordConflictError(HTTPException):
    """Duplicate record id or a lifecycle guard that refused the transition."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class RecordNotFoundError(HTTPException):
    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Digital Product Passport '{record_id}' not found."
        )


class RecordAuthorizationError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class RecordSerializationError(HTTPException):
    """A stored record could not be decoded, or a record could not be encoded."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
