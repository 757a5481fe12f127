import json

from sqlalchemy import Column, String, Text, DateTime, func

from ..db.database import Base

# Brand namespaces, each mapping "<profile id>:<host>" to a secret blob
SAMSUNG_TOKENS = "samsung_tokens"
SAMSUNG_CERTS = "samsung_certs"
LG_CLIENT_KEYS = "lg_client_keys"
SONY_PSK = "sony_psk"
SONY_REMOTE_CODES = "sony_remote_codes"
VIZIO_AUTH_TOKENS = "vizio_auth_tokens"
PAIRING_SESSIONS = "pairing_sessions"

ALL_NAMESPACES = (
    SAMSUNG_TOKENS,
    SAMSUNG_CERTS,
    LG_CLIENT_KEYS,
    SONY_PSK,
    SONY_REMOTE_CODES,
    VIZIO_AUTH_TOKENS,
    PAIRING_SESSIONS,
)


class CredentialNamespace(Base):
    """One row per credential namespace, payload is a JSON object"""
    __tablename__ = "credential_namespaces"

    namespace = Column(String(64), primary_key=True)
    payload = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def get_records(self) -> dict:
        """Return the decoded records, empty when the payload is unreadable"""
        if not self.payload:
            return {}
        try:
            records = json.loads(self.payload)
        except (json.JSONDecodeError, TypeError):
            return {}
        return records if isinstance(records, dict) else {}

    def set_records(self, records: dict):
        self.payload = json.dumps(records, sort_keys=True)
