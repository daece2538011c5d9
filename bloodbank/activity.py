from bloodbank.models import ActivityLog


def record(session, activity_type, description, **details):
    """Add an audit entry to the session's current transaction."""
    entry = ActivityLog(activity_type, description, details or None)
    session.add(entry)
    return entry


def recent(session, limit=50):
    return (session.query(ActivityLog)
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(limit)
            .all())
