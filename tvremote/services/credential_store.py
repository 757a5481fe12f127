import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..models.credentials import ALL_NAMESPACES, CredentialNamespace
from ..models.tv import TVProfile

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Per-brand credential cache keyed by "<profile id>:<host>"

    Reads are served from memory. Every change is mirrored to the
    credential_namespaces table when a session factory is given.
    Last write wins.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory
        self._cache: Dict[str, Dict[str, Any]] = {name: {} for name in ALL_NAMESPACES}
        if session_factory is not None:
            self._load()

    def _load(self):
        db: Session = self._session_factory()
        try:
            for row in db.query(CredentialNamespace).all():
                self._cache[row.namespace] = row.get_records()
            logger.debug(f"Loaded {len(self._cache)} credential namespaces")
        except SQLAlchemyError as e:
            logger.warning(f"Could not load credentials, starting empty: {e}")
        finally:
            db.close()

    def _persist(self, namespace: str):
        if self._session_factory is None:
            return

        db: Session = self._session_factory()
        try:
            row = db.query(CredentialNamespace).filter(
                CredentialNamespace.namespace == namespace
            ).first()
            if row is None:
                row = CredentialNamespace(namespace=namespace)
                db.add(row)
            row.set_records(self._cache[namespace])
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Error persisting credentials for {namespace}: {e}")
        finally:
            db.close()

    def get(self, namespace: str, profile: TVProfile) -> Any:
        return self._cache.setdefault(namespace, {}).get(profile.credential_key)

    def set(self, namespace: str, profile: TVProfile, value: Any):
        records = self._cache.setdefault(namespace, {})
        if records.get(profile.credential_key) == value:
            return
        records[profile.credential_key] = value
        self._persist(namespace)

    def delete(self, namespace: str, profile: TVProfile):
        records = self._cache.setdefault(namespace, {})
        if records.pop(profile.credential_key, None) is not None:
            logger.info(f"Cleared {namespace} credential for {profile.credential_key}")
            self._persist(namespace)

    def records(self, namespace: str) -> Dict[str, Any]:
        """Snapshot of every record in a namespace"""
        return dict(self._cache.get(namespace, {}))
