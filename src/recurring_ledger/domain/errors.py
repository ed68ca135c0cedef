INVALID_ARGUMENT = "INVALID_ARGUMENT"
INTERNAL = "INTERNAL"

_HTTP_STATUS = {
    INVALID_ARGUMENT: 400,
    INTERNAL: 500,
}


class CallableError(Exception):
    """Error surfaced to a caller of a callable operation."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self.code, 500)

    def to_payload(self) -> dict[str, dict[str, str]]:
        return {"error": {"status": self.code, "message": self.message}}
