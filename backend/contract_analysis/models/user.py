"""
User and organization models.

Sessions and sign-in live outside this service; a user reaches the API with a
bearer token and acts on behalf of the organizations they belong to.
"""
import enum
from typing import Optional

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from contract_analysis.database import Base, generate_uuid, utcnow


class OrgRole(str, enum.Enum):
    """Role of a user inside an organization."""
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class User(Base):
    """User model for storing user account information."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    memberships = relationship(
        "OrgMembership",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<User {self.email}>"

    @property
    def default_org(self) -> Optional["Organization"]:
        """The org the user owns, else the first org they belong to."""
        for membership in self.memberships:
            if membership.role == OrgRole.OWNER.value:
                return membership.org
        if self.memberships:
            return self.memberships[0].org
        return None

    @property
    def org_ids(self) -> list:
        return [m.org_id for m in self.memberships]


class Organization(Base):
    """Tenant owning documents and a subscription."""

    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    memberships = relationship("OrgMembership", back_populates="org", cascade="all, delete-orphan")
    documents = relationship("Document", back_populates="org")
    subscription = relationship("Subscription", back_populates="org", uselist=False)

    def __repr__(self):
        return f"<Organization {self.slug}>"


class OrgMembership(Base):
    """Membership of a user in an organization."""

    __tablename__ = "org_memberships"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), default=OrgRole.MEMBER.value, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    user = relationship("User", back_populates="memberships")
    org = relationship("Organization", back_populates="memberships", lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "org_id", name="uq_membership_user_org"),
    )

    def __repr__(self):
        return f"<OrgMembership {self.user_id} in {self.org_id} ({self.role})>"
