"""
Referential Integrity Guard

The schema layer declares foreign keys (FieldRule.references) but does
not cascade. This guard enforces the delete side: a record cannot be
removed while another collection still points at it. For accounts that
means no account disappears from under its transactions.

The check and the delete run under the database write lock, so no
transaction can be inserted between "no references" and "removed".
"""

from moneystore.database.errors import AccountInUseError, NotFoundError
from moneystore.database.facade import Database
from moneystore.models.records import CollectionName
from moneystore.services.storage import Document


class ReferentialIntegrityGuard:
    """Blocks deletes of records that are still referenced."""

    def __init__(self, database: Database):
        self._database = database

    def referencing_fields(self, target: CollectionName) -> list[tuple[CollectionName, str]]:
        """Every (collection, field) declared as a reference into target."""
        return [
            (schema.name, field_name)
            for schema in self._database.schemas.values()
            for field_name, referenced in schema.references.items()
            if referenced == CollectionName(target)
        ]

    async def reference_count(self, target: CollectionName, key: str) -> int:
        total = 0
        for collection_name, field_name in self.referencing_fields(target):
            total += await self._database.collection(collection_name).count({field_name: key})
        return total

    async def can_delete_account(self, account_id: str) -> bool:
        """True iff no transaction references the account."""
        return await self.reference_count(CollectionName.ACCOUNTS, account_id) == 0

    async def delete_account(self, account_id: str) -> Document:
        """
        Delete an account that nothing references.

        Raises:
            NotFoundError: If the account does not exist
            AccountInUseError: If transactions still reference it
        """
        accounts = self._database.accounts
        async with self._database.write_lock:
            if not await accounts.exists(account_id):
                raise NotFoundError(CollectionName.ACCOUNTS.value, account_id)

            count = await self.reference_count(CollectionName.ACCOUNTS, account_id)
            if count:
                await self._database.audit_logger.log_delete_blocked(account_id, count)
                raise AccountInUseError(account_id, count)

            return await accounts._remove(account_id)
