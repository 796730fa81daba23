"""
Error taxonomy for the credential coordination engine.

Every error carries a human-readable reason; the HTTP layer maps each family
to a status code.
"""


class CredentialError(Exception):
    """Base class for every error raised by the engine"""

    status_code = 500

    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason


class AuthorizationError(CredentialError):
    """Caller role or issuer accreditation does not allow the action"""

    status_code = 403


class ValidationError(CredentialError):
    """Malformed fingerprint or missing required field"""

    status_code = 400


class StateError(CredentialError):
    """The request conflicts with the current state of the system or record"""

    status_code = 409


class SystemPausedError(StateError):
    def __init__(self, reason="System is paused: issuance and revocation are disabled"):
        super().__init__(reason)


class AlreadyRevokedError(StateError):
    def __init__(self, fingerprint):
        super().__init__(f"Credential {fingerprint} is already revoked")
        self.fingerprint = fingerprint


class DuplicateCredentialError(StateError):
    def __init__(self, fingerprint):
        super().__init__(f"Credential {fingerprint} already exists")
        self.fingerprint = fingerprint


class CredentialNotFoundError(CredentialError):
    status_code = 404

    def __init__(self, fingerprint):
        super().__init__(f"Credential {fingerprint} not found")
        self.fingerprint = fingerprint


class AvailabilityError(CredentialError):
    """A remote tier could not be reached and no fallback was left"""

    status_code = 503


class LedgerUnavailableError(AvailabilityError):
    pass


class ContentUploadError(AvailabilityError):
    pass


class ContentUnavailableError(AvailabilityError):
    """Every gateway in the fallback chain failed for a content identifier"""

    def __init__(self, content_id, attempts=None):
        self.content_id = content_id
        self.attempts = list(attempts or [])
        detail = "; ".join(f"{url}: {error}" for url, error in self.attempts)
        reason = f"IPFS content retrieval failed for {content_id} - no available gateways"
        if detail:
            reason = f"{reason} ({detail})"
        super().__init__(reason)


class LedgerWriteError(CredentialError):
    """A ledger transaction reverted or could not be submitted"""

    status_code = 502
