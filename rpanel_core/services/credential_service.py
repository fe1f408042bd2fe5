"""
Credential store: account identities with bcrypt-hashed secrets.

Secrets are hashed on the way in and never leave this module in any form;
CredentialRead has no secret field.
"""

from typing import Optional

import bcrypt
from sqlalchemy import exists, func
from sqlalchemy.orm import Session

from ..config import AppConfig, get_config
from ..constants import PermissionLevel
from ..context.operation_context import operation
from ..db.db_credential_models import Credential
from ..exceptions import AccountConflictError, AuthenticationError, not_found
from ..schemas.credential_schema import CredentialCreate, CredentialRead
from .base_service import SessionManagedService


class CredentialService(SessionManagedService):
    """
    Service for creating, verifying and removing credentials.

    Transactions are managed by the caller; every mutating method flushes so
    constraint violations surface here as AccountConflictError.
    """

    def __init__(self, session: Optional[Session] = None, config: Optional[AppConfig] = None):
        super().__init__(session=session)
        self.config = config or get_config()

    # ==================== HASHING ====================

    def hash_secret(self, secret: str) -> str:
        """One-way hash a secret with the configured bcrypt cost."""
        salt = bcrypt.gensalt(rounds=self.config.security.bcrypt_rounds)
        return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify_secret(secret: str, secret_hash: str) -> bool:
        """Check a secret against a stored hash; malformed hashes never match."""
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), secret_hash.encode("utf-8"))
        except ValueError:
            return False

    # ==================== CRUD ====================

    @operation()
    def create_credential(self, credential_data: CredentialCreate) -> CredentialRead:
        """
        Create a credential.

        Args:
            credential_data: Identifier, plain secret and permission level

        Returns:
            The stored credential without its secret

        Raises:
            AccountConflictError: If the identifier is already taken
        """
        if self.identifier_exists(credential_data.identifier):
            raise AccountConflictError("identifier", credential_data.identifier)

        credential = Credential(
            identifier=credential_data.identifier,
            secret_hash=self.hash_secret(credential_data.secret),
            permission_level=PermissionLevel(credential_data.permission_level).value,
        )
        self.session.add(credential)
        self._flush(
            "create_credential",
            unique_fields=("identifier",),
            identifier=credential_data.identifier,
        )

        self.logger.info(
            "Created credential",
            extra={"credential_id": credential.id, "identifier": credential.identifier},
        )
        return CredentialRead.model_validate(credential)

    def identifier_exists(self, identifier: str) -> bool:
        return self.session.query(exists().where(Credential.identifier == identifier)).scalar()

    def count_credentials(self) -> int:
        return self.session.query(func.count(Credential.id)).scalar() or 0

    def _get_model(self, credential_id: str) -> Credential:
        credential = self.session.get(Credential, credential_id)
        if credential is None:
            raise not_found("Credential", credential_id=credential_id)
        return credential

    def get_credential(self, credential_id: str) -> CredentialRead:
        """Get a credential by primary key."""
        return CredentialRead.model_validate(self._get_model(credential_id))

    def get_by_identifier(self, identifier: str) -> CredentialRead:
        """Get a credential by its login identifier."""
        credential = (
            self.session.query(Credential).filter(Credential.identifier == identifier).first()
        )
        if credential is None:
            raise not_found("Credential", identifier=identifier)
        return CredentialRead.model_validate(credential)

    @operation()
    def delete_credential(self, credential_id: str) -> bool:
        """
        Delete a credential.

        Returns:
            True if a row was removed, False if it was already gone
        """
        credential = self.session.get(Credential, credential_id)
        if credential is None:
            self.logger.info(
                "Credential already absent", extra={"credential_id": credential_id}
            )
            return False
        self.session.delete(credential)
        self._flush("delete_credential")
        return True

    @operation()
    def change_secret(self, credential_id: str, new_secret: str) -> CredentialRead:
        """Replace the secret of an existing credential."""
        credential = self._get_model(credential_id)
        credential.secret_hash = self.hash_secret(new_secret)
        self._flush("change_secret")
        self.logger.info("Changed credential secret", extra={"credential_id": credential_id})
        return CredentialRead.model_validate(credential)

    # ==================== AUTHENTICATION ====================

    def authenticate(self, identifier: str, secret: str) -> CredentialRead:
        """
        Verify an identifier/secret pair.

        Raises:
            AuthenticationError: Unknown identifier or wrong secret
        """
        credential = (
            self.session.query(Credential).filter(Credential.identifier == identifier).first()
        )
        if credential is None or not self.verify_secret(secret, credential.secret_hash):
            raise AuthenticationError(identifier=identifier)
        return CredentialRead.model_validate(credential)

    @operation()
    def ensure_default_admin(self) -> Optional[CredentialRead]:
        """
        Seed the configured admin credential when the store has none at all.

        Returns:
            The created credential, or None if credentials already existed
        """
        if self.count_credentials() > 0:
            return None

        admin = self.create_credential(
            CredentialCreate(
                identifier=self.config.security.admin_identifier,
                secret=self.config.security.admin_secret,
                permission_level=PermissionLevel.ADMIN,
            )
        )
        self.logger.warning(
            "Seeded default admin credential; change its secret",
            extra={"identifier": admin.identifier},
        )
        return admin
