from stockroom import db
from datetime import datetime
from sqlalchemy.orm import declared_attr


class OwnedBase(db.Model):
    """Abstract base class for records that belong to exactly one user"""

    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @declared_attr
    def owner_id(cls):
        return db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    @declared_attr
    def owner(cls):
        return db.relationship('User', foreign_keys=[cls.owner_id])

    @classmethod
    def owned_by(cls, owner_id):
        """Query scoped to rows the given identity owns"""
        return cls.query.filter(cls.owner_id == owner_id)
