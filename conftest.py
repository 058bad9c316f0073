"""
Shared pytest fixtures for the Identity Reconciliation tests

Every test gets its own in-memory SQLite database (aiosqlite) and its own
IdentityService, so the reconcile lock never crosses event loops.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("DEBUG", "True")

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import select

from database import DatabaseManager
from models import Contact, LinkPrecedence
from services.identity_service import IdentityService

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
async def db():
    manager = DatabaseManager("sqlite+aiosqlite://")
    await manager.create_tables()
    try:
        yield manager
    finally:
        await manager.dispose()


@pytest.fixture
def service(db):
    return IdentityService(db)


@pytest.fixture
def seed_contact(db):
    """
    Insert a contact directly, bypassing reconciliation.
    ``minutes`` offsets created_at from a fixed base time.
    """
    async def _seed(email=None, phone=None, linked_id=None, minutes=0, deleted=False):
        precedence = LinkPrecedence.SECONDARY if linked_id else LinkPrecedence.PRIMARY
        created_at = BASE_TIME + timedelta(minutes=minutes)
        contact = Contact(
            email=email,
            phone_number=phone,
            linked_id=linked_id,
            link_precedence=precedence.value,
            created_at=created_at,
            updated_at=created_at,
            deleted_at=created_at if deleted else None,
        )
        async with db.get_session() as session:
            session.add(contact)
            await session.flush()
            contact_id = contact.id
        return contact_id

    return _seed


@pytest.fixture
def all_contacts(db):
    """All stored contacts keyed by id, read in a fresh session"""
    async def _all():
        async with db.get_session() as session:
            result = await session.execute(select(Contact).order_by(Contact.id))
            return {contact.id: contact for contact in result.scalars().all()}

    return _all


@pytest.fixture
async def client(service):
    from main import app, get_identity_service

    app.dependency_overrides[get_identity_service] = lambda: service
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
            yield http_client
    finally:
        app.dependency_overrides.clear()
