"""
Group Manager

Groups and their member profiles.

CRITICAL: A group never drops below one profile. Removing a profile
deletes that profile's transactions and budgets; removing a group deletes
everything recorded in it.
"""

from typing import Optional, Union
from uuid import UUID

from pydantic import ValidationError

from src.audit import AuditLogger
from src.config import get_settings
from src.errors import InvalidInputError, NotFoundError
from src.models.finance import Group, GroupType, Profile
from src.services.storage import (
    AssetStorageInterface,
    BudgetStorageInterface,
    GroupStorageInterface,
    TransactionStorageInterface,
)


class GroupManager:
    """Creates, edits and removes groups and profiles."""

    def __init__(
        self,
        group_storage: GroupStorageInterface,
        transaction_storage: TransactionStorageInterface,
        budget_storage: BudgetStorageInterface,
        asset_storage: AssetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._groups = group_storage
        self._transactions = transaction_storage
        self._budgets = budget_storage
        self._assets = asset_storage
        self._audit = audit_logger or AuditLogger()
        self._default_color = get_settings().app.default_profile_color

    def _make_profile(self, profile: Union[Profile, str]) -> Profile:
        if isinstance(profile, Profile):
            return profile
        try:
            return Profile(name=profile, color=self._default_color)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid profile: {e}")

    async def get_group(self, group_id: UUID) -> Group:
        group = await self._groups.get_group(group_id)
        if group is None:
            raise NotFoundError(f"Group not found: {group_id}")
        return group

    async def list_groups(self) -> list[Group]:
        return await self._groups.list_groups()

    async def create_group(
        self,
        name: str,
        profiles: list[Union[Profile, str]],
        group_type: GroupType = GroupType.PERSONAL,
    ) -> Group:
        """
        Create a group with its initial members.

        Args:
            name: Group name
            profiles: Profiles, or just names for new profiles
            group_type: Category tag

        Raises:
            InvalidInputError: No profiles, or invalid names
        """
        if not profiles:
            raise InvalidInputError("A group needs at least one profile")

        members = [self._make_profile(p) for p in profiles]
        try:
            group = Group(name=name, group_type=group_type, profiles=members)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid group: {e}")

        await self._groups.save_group(group)
        await self._audit.log_group_created(
            group_id=group.id,
            name=group.name,
            profile_count=len(group.profiles),
        )
        return group

    async def rename_group(self, group_id: UUID, name: str) -> Group:
        group = await self.get_group(group_id)
        try:
            renamed = Group.model_validate({**group.model_dump(), "name": name})
        except ValidationError as e:
            raise InvalidInputError(f"Invalid group name: {e}")

        await self._groups.save_group(renamed)
        await self._audit.log_group_updated(group_id=group.id, name=renamed.name)
        return renamed

    async def add_profile(
        self,
        group_id: UUID,
        name: str,
        color: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Profile:
        """Add a new member to a group."""
        group = await self.get_group(group_id)
        try:
            profile = Profile(
                name=name,
                color=color or self._default_color,
                avatar=avatar,
            )
        except ValidationError as e:
            raise InvalidInputError(f"Invalid profile: {e}")

        group.profiles.append(profile)
        await self._groups.save_group(group)
        await self._audit.log_profile_added(
            group_id=group.id,
            profile_id=profile.id,
            name=profile.name,
        )
        return profile

    async def delete_profile(self, group_id: UUID, profile_id: UUID) -> Group:
        """
        Remove a member along with their transactions and budgets.

        Only the member's own side of a recorded settlement is removed. The
        counterpart's settlement_paid or settlement_received stays and keeps
        adjusting that member's balance.

        Raises:
            NotFoundError: Unknown group or profile
            InvalidInputError: The profile is the group's last one
        """
        group = await self.get_group(group_id)
        if not group.has_profile(profile_id):
            raise NotFoundError(f"Profile {profile_id} is not in group {group_id}")
        if len(group.profiles) == 1:
            raise InvalidInputError("Cannot delete the last profile of a group")

        removed_transactions = await self._transactions.delete_transactions_for_profile(profile_id)
        removed_budgets = await self._budgets.delete_budgets_for_profile(profile_id)

        group.profiles = [p for p in group.profiles if p.id != profile_id]
        await self._groups.save_group(group)

        await self._audit.log_profile_deleted(
            group_id=group.id,
            profile_id=profile_id,
            removed_transactions=removed_transactions,
            removed_budgets=removed_budgets,
        )
        return group

    async def delete_group(self, group_id: UUID) -> None:
        """Remove a group and everything recorded in it."""
        await self.get_group(group_id)

        removed_transactions = await self._transactions.delete_transactions_for_group(group_id)
        await self._budgets.delete_budgets_for_group(group_id)
        await self._assets.delete_assets_for_group(group_id)
        await self._groups.delete_group(group_id)

        await self._audit.log_group_deleted(
            group_id=group_id,
            removed_transactions=removed_transactions,
        )
