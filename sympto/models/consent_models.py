from sympto.extensions import db
from sympto.utils.time_util import utcnow, isoformat

CONSENT_TYPES = ('essential', 'analytics', 'communications', 'research')
OPTIONAL_CONSENT_TYPES = ('analytics', 'communications', 'research')
CONSENT_VERSION = '1.0'
MAX_HISTORY_ENTRIES = 50


class Consent(db.Model):
    """GDPR consent preferences, one row per user."""
    __tablename__ = 'consents'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)
    essential = db.Column(db.Boolean, default=True, nullable=False)
    analytics = db.Column(db.Boolean, default=True, nullable=False)
    communications = db.Column(db.Boolean, default=False, nullable=False)
    research = db.Column(db.Boolean, default=False, nullable=False)
    consent_history = db.Column(db.JSON, default=list)
    consent_version = db.Column(db.String(20), default=CONSENT_VERSION, nullable=False)
    last_updated = db.Column(db.DateTime, default=utcnow)
    created_at = db.Column(db.DateTime, default=utcnow)

    user = db.relationship('User', back_populates='consent')

    def record_consent_change(self, consent_type, granted, ip_address=None, user_agent=None):
        """Appends a history entry, keeping only the most recent entries."""
        entry = {
            'consentType': consent_type,
            'granted': bool(granted),
            'timestamp': isoformat(utcnow()),
            'ipAddress': ip_address,
            'userAgent': user_agent,
        }
        # JSON columns only track reassignment, so build a new list
        history = list(self.consent_history or [])
        history.append(entry)
        self.consent_history = history[-MAX_HISTORY_ENTRIES:]
        self.last_updated = utcnow()

    def current_consent(self):
        consent = {consent_type: getattr(self, consent_type) for consent_type in CONSENT_TYPES}
        consent['lastUpdated'] = isoformat(self.last_updated)
        consent['consentVersion'] = self.consent_version
        return consent

    def public_history(self):
        """History newest first, without IP address or user agent."""
        entries = [
            {'consentType': e.get('consentType'), 'granted': e.get('granted'), 'timestamp': e.get('timestamp')}
            for e in (self.consent_history or [])
        ]
        return list(reversed(entries))
