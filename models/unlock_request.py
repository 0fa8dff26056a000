from datetime import datetime
from models.db import db

UNLOCK_REQUEST_STATUSES = ("pending", "approved", "rejected", "needs_more_info")


class UnlockRequest(db.Model):
    __tablename__ = "unlock_requests"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'needs_more_info')",
            name="ck_unlock_requests_status",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)

    # one active request per security record
    security_id = db.Column(
        db.Integer,
        db.ForeignKey("user_security.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    email = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(120), nullable=True)
    reason = db.Column(db.String(1000), nullable=False)
    submitted_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    status = db.Column(db.String(20), default="pending", nullable=False)

    admin_notes = db.Column(db.String(500), nullable=True)
    reviewed_by = db.Column(db.String(64), nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)

    security = db.relationship("UserSecurity", back_populates="unlock_request")
