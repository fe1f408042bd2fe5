"""
Account number allocation.

Numbers come from a named counter row that is incremented with a single
``UPDATE ... SET value = value + 1``; the row lock taken by that statement
serializes concurrent allocators, so two callers can never read the same
value. The row is seeded lazily from the profiles already stored, which
makes the first number on an empty store ``C1``.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import AppConfig, get_config
from ..constants import ProfileDefaults
from ..db.db_account_models import AccountSequence, HostingProfile
from ..exceptions import ErrorCode, PersistenceError, ServiceError
from ..utils.logger import get_logger


class SequenceAllocator:
    """Hands out unique, human-readable account numbers."""

    def __init__(
        self,
        session: Session,
        config: Optional[AppConfig] = None,
        sequence_name: str = ProfileDefaults.SEQUENCE_NAME,
    ):
        self.session = session
        self.config = config or get_config()
        self.sequence_name = sequence_name
        self.prefix = self.config.provisioning.account_number_prefix
        self.logger = get_logger()

    def next(self) -> str:
        """
        Allocate the next account number.

        Each call commits its own increment. Numbers already present on a
        profile are skipped.

        Raises:
            PersistenceError: If the counter cannot be read or written
            ServiceError: If no free number was found within the attempt limit
        """
        attempts = self.config.provisioning.max_allocation_attempts
        for _ in range(attempts):
            candidate = f"{self.prefix}{self._increment()}"
            if not self._number_taken(candidate):
                self.logger.debug("Allocated account number", extra={"account_number": candidate})
                return candidate
            self.logger.warning(
                "Account number already in use, skipping",
                extra={"account_number": candidate},
            )

        raise ServiceError(
            "Could not allocate a free account number",
            error_code=ErrorCode.LIMIT_EXCEEDED,
            operation="allocate_account_number",
            attempts=attempts,
        )

    def _increment(self) -> int:
        try:
            for _ in range(2):
                result = self.session.execute(
                    update(AccountSequence)
                    .where(AccountSequence.name == self.sequence_name)
                    .values(value=AccountSequence.value + 1)
                )
                if result.rowcount:
                    value = self.session.execute(
                        select(AccountSequence.value).where(
                            AccountSequence.name == self.sequence_name
                        )
                    ).scalar_one()
                    self.session.commit()
                    return value
                self.session.rollback()
                self._seed()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(
                "Account number counter unavailable", cause=e, sequence=self.sequence_name
            ) from e

        raise PersistenceError(
            "Account number counter row missing after seeding", sequence=self.sequence_name
        )

    def _seed(self) -> None:
        """Create the counter row, starting after the highest number already stored."""
        numbers = self.session.execute(select(HostingProfile.account_number)).scalars().all()
        start = len(numbers)
        for number in numbers:
            suffix = number[len(self.prefix):] if number.startswith(self.prefix) else ""
            if suffix.isdigit():
                start = max(start, int(suffix))

        try:
            self.session.add(AccountSequence(name=self.sequence_name, value=start))
            self.session.commit()
            self.logger.info(
                "Seeded account number counter",
                extra={"sequence": self.sequence_name, "start": start},
            )
        except IntegrityError:
            # Another allocator seeded it first
            self.session.rollback()

    def _number_taken(self, account_number: str) -> bool:
        return (
            self.session.query(HostingProfile.id)
            .filter(HostingProfile.account_number == account_number)
            .first()
            is not None
        )
