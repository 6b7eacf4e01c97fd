from typing import Optional

from schemas import CredentialData


class CredentialVerifier:
    """Authenticity lookup for issued credentials, backed by an external store."""

    def lookup(self, credential_id: str) -> Optional[CredentialData]:
        raise NotImplementedError
