from typing import Any, Optional


class PipelineError(Exception):
    """Base class for every failure a submission can surface to the user."""

    kind = "error"
    message = "Something went wrong."

    def __init__(self, message: Optional[str] = None, *, details: Optional[str] = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict:
        payload = {"error": self.message, "kind": self.kind}
        if self.details:
            payload["details"] = self.details
        return payload


class InputInvalid(PipelineError):
    kind = "input_invalid"
    message = "Enter a valid Steam ID or profile URL."


class MissingApiKey(PipelineError):
    kind = "config_missing"
    message = "Steam API key is not configured."


class UpstreamRequestFailed(PipelineError):
    kind = "request_failed"
    message = "Could not reach the upstream service."


class UpstreamRejected(PipelineError):
    kind = "rejected"
    message = "Upstream service rejected the request."

    def __init__(self, status: int, data: Any = None, message: Optional[str] = None,
                 *, details: Optional[str] = None):
        super().__init__(message or f"Upstream service responded with status {status}.", details=details)
        self.status = status
        self.data = data

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["status"] = self.status
        if self.data is not None:
            payload["data"] = self.data
        return payload


class UpstreamMalformed(PipelineError):
    kind = "malformed"
    message = "Upstream service returned an unexpected response."


class NoGamesFound(UpstreamMalformed):
    # Steam answers 200 with an empty "response" object for private or unknown profiles.
    kind = "no_games"
    message = "No games found for this profile."


class ProfileNotFound(NoGamesFound):
    kind = "profile_not_found"
    message = "No Steam profile matches that custom URL."


class EnrichmentFailed(PipelineError):
    kind = "enrichment_failed"
    message = "Recommendations are unavailable right now."


class InvalidConfiguration(PipelineError):
    kind = "config_invalid"
    message = "Server configuration is invalid."
