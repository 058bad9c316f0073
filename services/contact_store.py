"""
Contact store - the persistence operations identity reconciliation needs
All methods run inside the caller's session, so a whole reconcile call
shares one transaction.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import func, or_, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utc_now
from models.contact import Contact, LinkPrecedence


# Shared by every process that reconciles against the same database
RECONCILE_LOCK_KEY = 0x1D3A7C01


class ContactStore:
    """Query and mutation helpers for the contacts table"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock_for_reconcile(self) -> None:
        """
        Serialize reconcile transactions across processes. On PostgreSQL this
        takes a transaction-scoped advisory lock, released on commit or
        rollback; other databases rely on the caller's in-process lock.
        """
        if self.session.bind.dialect.name != "postgresql":
            return

        await self.session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": RECONCILE_LOCK_KEY}
        )

    def _active(self):
        return select(Contact).where(Contact.deleted_at.is_(None))

    async def _fetch(self, query) -> List[Contact]:
        result = await self.session.execute(query.order_by(Contact.created_at, Contact.id))
        return list(result.scalars().all())

    async def find_by_email_or_phone(
        self,
        email: Optional[str],
        phone: Optional[str]
    ) -> List[Contact]:
        """
        Contacts whose email equals ``email`` or whose phone equals ``phone``.
        A missing criterion is skipped, it never matches null columns.
        """
        conditions = []
        if email:
            conditions.append(Contact.email == email)
        if phone:
            conditions.append(Contact.phone_number == phone)

        if not conditions:
            return []

        return await self._fetch(self._active().where(or_(*conditions)))

    async def find_by_ids_or_linked_ids(self, ids: Iterable[int]) -> List[Contact]:
        """Contacts whose id or linked_id is in ``ids``"""
        ids = list(ids)
        if not ids:
            return []

        return await self._fetch(
            self._active().where(or_(Contact.id.in_(ids), Contact.linked_id.in_(ids)))
        )

    async def find_by_ids(self, ids: Iterable[int]) -> List[Contact]:
        """Re-read contacts, overwriting any stale state held by the session"""
        ids = list(ids)
        if not ids:
            return []

        query = self._active().where(Contact.id.in_(ids)).execution_options(populate_existing=True)
        return await self._fetch(query)

    async def insert(
        self,
        email: Optional[str],
        phone: Optional[str],
        precedence: LinkPrecedence,
        linked_id: Optional[int] = None,
        not_before: Optional[datetime] = None
    ) -> Contact:
        """
        Persist a new contact; the database assigns the id.

        ``created_at`` is never earlier than ``not_before`` so a secondary
        cannot predate its primary when clocks disagree or step back.
        """
        now = utc_now()
        if not_before is not None:
            if not_before.tzinfo is None:
                # SQLite hands timestamps back without a zone; they are stored as UTC
                not_before = not_before.replace(tzinfo=timezone.utc)
            now = max(now, not_before)

        contact = Contact(
            email=email,
            phone_number=phone,
            linked_id=linked_id,
            link_precedence=precedence.value,
            created_at=now,
            updated_at=now
        )

        self.session.add(contact)
        await self.session.flush()
        # Reload so timestamps carry the database's representation
        await self.session.refresh(contact)
        return contact

    async def update_demote(self, ids: Iterable[int], new_linked_id: int) -> None:
        """Make every contact in ``ids`` a secondary of ``new_linked_id``"""
        ids = list(ids)
        if not ids:
            return

        await self.session.execute(
            update(Contact)
            .where(Contact.id.in_(ids))
            .values(
                link_precedence=LinkPrecedence.SECONDARY.value,
                linked_id=new_linked_id,
                updated_at=utc_now()
            )
            .execution_options(synchronize_session=False)
        )

    async def count(self) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Contact).where(Contact.deleted_at.is_(None))
        )
        return result.scalar_one()

    async def recent(self, limit: int = 10) -> List[Contact]:
        """Most recently created contacts, newest first"""
        result = await self.session.execute(
            self._active().order_by(Contact.created_at.desc(), Contact.id.desc()).limit(limit)
        )
        return list(result.scalars().all())
