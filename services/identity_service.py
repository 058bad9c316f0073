"""
Identity Service - Core business logic for identity reconciliation
Matches an (email, phone) observation against stored contacts, merges
groups that the observation connects, records new information and builds
the consolidated response with the primary contact's details first.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from database import DatabaseManager, db_manager
from models.contact import Contact, LinkPrecedence
from schemas.identify import IdentifyRequest, IdentifyResponse, ContactResponse
from services.contact_store import ContactStore
from services.exceptions import IdentityValidationError, InvariantViolation, StoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityProjection:
    """Consolidated view of one identity group"""
    primary_contact_id: int
    emails: List[str] = field(default_factory=list)
    phone_numbers: List[str] = field(default_factory=list)
    secondary_contact_ids: List[int] = field(default_factory=list)


def _distinct_values(primary_value: Optional[str], values: List[Optional[str]]) -> List[str]:
    ordered = [primary_value] if primary_value else []
    for value in values:
        if value and value not in ordered:
            ordered.append(value)
    return ordered


def build_projection(group: List[Contact]) -> IdentityProjection:
    """
    Project a resolved group. The group must already satisfy the linkage
    invariants: its earliest contact is the single primary.
    """
    ordered = sorted(group, key=lambda c: c.sort_key)
    primary = ordered[0]

    return IdentityProjection(
        primary_contact_id=primary.id,
        emails=_distinct_values(primary.email, [c.email for c in ordered]),
        phone_numbers=_distinct_values(primary.phone_number, [c.phone_number for c in ordered]),
        secondary_contact_ids=[c.id for c in ordered if c.id != primary.id],
    )


class IdentityService:
    """
    Core service for identity reconciliation logic

    One reconcile call runs inside a single transaction, under the service
    lock and, on PostgreSQL, under a database advisory lock, so concurrent
    calls with overlapping identities cannot both seed a primary or race on
    a merge, even from different processes.
    """

    def __init__(self, database: Optional[DatabaseManager] = None):
        self.db_manager = database or db_manager
        self._lock = asyncio.Lock()

    async def identify_contact(self, request: IdentifyRequest) -> IdentifyResponse:
        """Reconcile a validated /identify request into its API response"""
        projection = await self.reconcile(request.email, request.phoneNumber)

        return IdentifyResponse(
            contact=ContactResponse(
                primaryContactId=projection.primary_contact_id,
                emails=projection.emails,
                phoneNumbers=projection.phone_numbers,
                secondaryContactIds=projection.secondary_contact_ids,
            )
        )

    async def reconcile(
        self,
        email: Optional[str] = None,
        phone: Optional[str] = None
    ) -> IdentityProjection:
        """
        Main orchestration method for identity reconciliation

        Algorithm:
        1. Find contacts matching email or phone; none -> new primary
        2. Close over linked_id to collect every related contact
        3. Keep the oldest primary, demote the others, flatten links
        4. Store the observation if it adds an email or phone, then project
        """
        email = email or None
        phone = phone or None
        if not email and not phone:
            raise IdentityValidationError("Either email or phoneNumber must be provided")

        async with self._lock:
            try:
                async with self.db_manager.get_session() as session:
                    return await self._reconcile(ContactStore(session), email, phone)
            except SQLAlchemyError as e:
                raise StoreError(f"Identity store failure: {e}") from e
            except OSError as e:
                raise StoreError(f"Identity store unreachable: {e}") from e

    async def _reconcile(
        self,
        store: ContactStore,
        email: Optional[str],
        phone: Optional[str]
    ) -> IdentityProjection:
        await store.lock_for_reconcile()
        matches = await store.find_by_email_or_phone(email, phone)

        if not matches:
            contact = await store.insert(email, phone, LinkPrecedence.PRIMARY)
            logger.info(f"No existing contact for email={email}, phone={phone}; created primary {contact.id}")
            return build_projection([contact])

        group = await self._close_group(store, matches)
        group = await self._resolve_merge(store, group)
        group = await self._insert_if_new(store, group, matches, email, phone)
        return build_projection(group)

    async def _close_group(self, store: ContactStore, matches: List[Contact]) -> List[Contact]:
        """
        Expand matched contacts to every contact reachable through linked_id,
        iterating until no new id turns up so chains of any depth are found
        """
        group: Dict[int, Contact] = {c.id: c for c in matches}
        frontier: Set[int] = set()
        for contact in matches:
            frontier.add(contact.id)
            if contact.linked_id is not None:
                frontier.add(contact.linked_id)

        while True:
            for contact in await store.find_by_ids_or_linked_ids(frontier):
                group.setdefault(contact.id, contact)

            discovered = set(group)
            discovered.update(c.linked_id for c in group.values() if c.linked_id is not None)
            if discovered <= frontier:
                break
            frontier |= discovered

        return sorted(group.values(), key=lambda c: c.sort_key)

    async def _resolve_merge(self, store: ContactStore, group: List[Contact]) -> List[Contact]:
        """
        Make the earliest contact the only primary and point every other
        contact directly at it. Writes nothing when the group is consistent.
        """
        canonical = group[0]
        if not canonical.is_primary():
            primaries = [c.id for c in group if c.is_primary()]
            logger.warning(
                f"Group {[c.id for c in group]} has primaries {primaries} "
                f"but its earliest contact {canonical.id} is secondary"
            )
            raise InvariantViolation(
                f"Earliest contact {canonical.id} of group is not primary (primaries: {primaries})"
            )

        demoted = [c.id for c in group[1:] if c.is_primary()]
        reparented = [
            c.id for c in group[1:]
            if c.is_secondary() and c.linked_id != canonical.id
        ]
        if not demoted and not reparented:
            return group

        logger.info(
            f"Merging into primary {canonical.id}: demoting {demoted}, re-linking {reparented}"
        )
        await store.update_demote(demoted + reparented, canonical.id)

        refreshed = await store.find_by_ids([c.id for c in group])
        if len(refreshed) != len(group):
            raise InvariantViolation(
                f"Group changed while merging: expected {len(group)} contacts, read {len(refreshed)}"
            )
        return refreshed

    async def _insert_if_new(
        self,
        store: ContactStore,
        group: List[Contact],
        matches: List[Contact],
        email: Optional[str],
        phone: Optional[str]
    ) -> List[Contact]:
        """Record the observation as a secondary if it carries an unseen email or phone"""
        known_emails = {c.email for c in group if c.email}
        known_phones = {c.phone_number for c in group if c.phone_number}

        has_new_info = bool(
            (email and email not in known_emails) or (phone and phone not in known_phones)
        )
        is_duplicate = any(c.email == email and c.phone_number == phone for c in matches)

        if not has_new_info or is_duplicate:
            logger.info(f"No new information for group of primary {group[0].id}")
            return group

        primary = group[0]
        secondary = await store.insert(
            email, phone, LinkPrecedence.SECONDARY,
            linked_id=primary.id,
            not_before=primary.created_at
        )
        logger.info(f"Created secondary contact {secondary.id} linked to primary {primary.id}")
        return group + [secondary]


# Global service instance
identity_service = IdentityService()
