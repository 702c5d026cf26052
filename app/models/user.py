"""
User directory mirror.

The identity provider owns authentication. This table mirrors just enough
of each identity (role, display name, status) to answer two questions the
engagement workflow asks: "does this identity hold the tester role?" and
"what name should the report print for it?".
"""

from datetime import datetime, timezone

from app.models import db


USER_ROLES = {"admin", "tester", "customer"}

USER_STATUSES = {"active", "suspended"}


class User(db.Model):
    """Identity mirror keyed by the provider's opaque user id."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    external_id = db.Column(
        db.String(100), nullable=False, unique=True, index=True,
        comment="Opaque identity from the auth provider (JWT sub)",
    )
    email = db.Column(db.String(255), nullable=True)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    role = db.Column(
        db.String(20), nullable=True, index=True,
        comment="admin | tester | customer (NULL until assigned)",
    )
    role_assigned = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(20), nullable=False, default="active")

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def display_name(self):
        name = " ".join(p for p in (self.first_name, self.last_name) if p).strip()
        return name or self.email or self.external_id

    def to_dict(self):
        return {
            "id": self.id,
            "external_id": self.external_id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "display_name": self.display_name,
            "role": self.role,
            "role_assigned": self.role_assigned,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<User {self.external_id} role={self.role}>"
