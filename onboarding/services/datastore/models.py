"""SQLAlchemy models for database integration."""

import uuid
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy
from pytz import UTC
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, \
    String, Text, JSON
from sqlalchemy.orm import relationship

db: SQLAlchemy = SQLAlchemy()


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(tz=UTC)


class DBOrganization(db.Model):
    """Persistence for :class:`domain.Organization`."""

    __tablename__ = 'organization'

    id = Column(String(36), primary_key=True, default=_uuid)
    created = Column(DateTime(timezone=True), default=_now)
    user_id = Column(String(36), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    org_metadata = Column('metadata', JSON, nullable=True)
    """Free-form metadata; ``metadata`` is reserved on declarative models."""

    applications = relationship('DBApplicationOrganization',
                                back_populates='organization')


class DBApplication(db.Model):
    """Persistence for :class:`domain.Application`."""

    __tablename__ = 'application'

    id = Column(String(36), primary_key=True, default=_uuid)
    created = Column(DateTime(timezone=True), default=_now)
    user_id = Column(String(36), nullable=True)
    name = Column(String(255), nullable=False)
    config = Column(JSON, nullable=True)
    hidden = Column(Boolean, default=False, nullable=False)

    organizations = relationship('DBApplicationOrganization',
                                 back_populates='application')


class DBApplicationOrganization(db.Model):
    """Association of an organization with an application."""

    __tablename__ = 'application_organization'

    application_id = Column(ForeignKey('application.id'), primary_key=True)
    organization_id = Column(ForeignKey('organization.id'), primary_key=True)
    permissions = Column(Integer, default=0)

    application = relationship('DBApplication',
                               back_populates='organizations')
    organization = relationship('DBOrganization',
                                back_populates='applications')


class DBToken(db.Model):
    """A token previously vended for an application or organization."""

    __tablename__ = 'token'

    id = Column(String(36), primary_key=True, default=_uuid)
    created = Column(DateTime(timezone=True), default=_now)
    expires = Column(DateTime(timezone=True), nullable=True)
    application_id = Column(String(36), nullable=True, index=True)
    organization_id = Column(String(36), nullable=True, index=True)
    scope = Column(String(255), nullable=True)
    token = Column(Text, nullable=False)


class DBOutboxEvent(db.Model):
    """An event awaiting publication by the relay."""

    __tablename__ = 'outbox_event'

    id = Column(Integer, primary_key=True, autoincrement=True)
    """Monotonic; also serves as the ``event_id`` of the published event."""

    subject = Column(String(255), nullable=False)
    payload = Column(JSON, nullable=False)
    created = Column(DateTime(timezone=True), default=_now)
    published = Column(DateTime(timezone=True), nullable=True, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
