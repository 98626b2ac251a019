from pydantic import BaseModel, ConfigDict, Field


class Challenge(BaseModel):
    """A signed puzzle handed to the client. The solution number is never included."""

    model_config = ConfigDict(frozen=True)

    algorithm: str
    challenge: str
    max_number: int = Field(..., serialization_alias="maxnumber")
    salt: str
    signature: str
    expires: str | None = None


class VerifyRequest(BaseModel):
    payload: str = Field(..., min_length=1, description="Base64-encoded ALTCHA payload")


class VerifyResponse(BaseModel):
    verified: bool
    error: str | None = None


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
