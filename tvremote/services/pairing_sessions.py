"""
Pairing session manager

Holds the pairing request a TV answered with, together with the command
that triggered it, until the user supplies the PIN or pre-shared key.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..commands.models import PairingRequest
from ..models.credentials import PAIRING_SESSIONS
from ..models.tv import RemoteCommand, TVProfile
from .credential_store import CredentialStore

logger = logging.getLogger(__name__)


class PairingSession(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pairing: PairingRequest
    command: Optional[RemoteCommand] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def brand(self) -> str:
        return self.pairing.brand


class PairingSessionManager:
    """
    Pending pairings keyed like every other credential

    Sessions live in the pairing_sessions namespace so a restart between
    "show PIN" and "enter PIN" does not lose the challenge.
    """

    def __init__(self, store: CredentialStore):
        self.store = store

    def begin(
        self,
        profile: TVProfile,
        pairing: PairingRequest,
        command: Optional[RemoteCommand] = None
    ) -> PairingSession:
        session = PairingSession(pairing=pairing, command=command)
        self.store.set(
            PAIRING_SESSIONS,
            profile,
            session.model_dump(mode="json", by_alias=True)
        )
        logger.info(f"Pairing session started for {profile.credential_key} ({session.brand})")
        return session

    def get(self, profile: TVProfile) -> Optional[PairingSession]:
        record = self.store.get(PAIRING_SESSIONS, profile)
        if not record:
            return None
        try:
            return PairingSession.model_validate(record)
        except ValidationError as e:
            logger.warning(f"Dropping unreadable pairing session for {profile.credential_key}: {e}")
            self.store.delete(PAIRING_SESSIONS, profile)
            return None

    def finish(self, profile: TVProfile):
        self.store.delete(PAIRING_SESSIONS, profile)
