"""Error taxonomy for the authentication gateway.

Each error carries the HTTP status and the short message shown to the
client. Detail meant for operators goes to the log, never into the message.
"""

from fastapi.responses import JSONResponse


class GatewayError(Exception):
    status_code = 500
    public_message = "Internal error"

    def __init__(self, detail: str = "", public_message: str = None):
        super().__init__(detail or self.public_message)
        self.detail = detail
        if public_message is not None:
            self.public_message = public_message

    def to_response(self) -> JSONResponse:
        return JSONResponse({"error": self.public_message}, status_code=self.status_code)


class ConfigMissing(GatewayError):
    status_code = 500
    public_message = "Authentication is not configured"


class BadRequest(GatewayError):
    status_code = 400
    public_message = "Bad request"


class InvalidState(GatewayError):
    status_code = 400
    public_message = "Invalid OAuth state"


class ExchangeFailed(GatewayError):
    status_code = 400
    public_message = "Token exchange failed"


class InvalidCredentials(GatewayError):
    status_code = 401
    public_message = "Invalid email or password."


class AuthFailed(GatewayError):
    status_code = 401
    public_message = "Unable to sign in."


class InvalidToken(GatewayError):
    status_code = 401
    public_message = "Invalid or expired session"


class UnknownHost(GatewayError):
    status_code = 404
    public_message = "Unknown host"
