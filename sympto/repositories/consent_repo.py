"""
sympto.repositories.consent_repo - GDPR consent records.
"""

import logging

from sqlalchemy.exc import IntegrityError

from sympto.extensions import db
from sympto.models.consent_models import Consent, CONSENT_VERSION, OPTIONAL_CONSENT_TYPES

logger = logging.getLogger(__name__)


class ConsentRepository:

    def find_for_user(self, user_id):
        return Consent.query.filter_by(user_id=user_id).first()

    def find_or_create_for_user(self, user_id):
        consent = self.find_for_user(user_id)
        if consent is not None:
            return consent

        consent = Consent(
            user_id=user_id,
            essential=True,
            analytics=True,
            communications=False,
            research=False,
            consent_history=[],
            consent_version=CONSENT_VERSION,
        )
        db.session.add(consent)
        try:
            db.session.commit()
        except IntegrityError:
            # Another request created the row first
            db.session.rollback()
            consent = self.find_for_user(user_id)
        return consent

    def update_consent(self, user_id, preferences, ip_address=None, user_agent=None):
        """
        Applies the given optional preferences and records a history entry
        for each one that actually changed. Essential consent is immutable.
        """
        consent = self.find_or_create_for_user(user_id)
        changed = []
        for consent_type in OPTIONAL_CONSENT_TYPES:
            if consent_type not in preferences:
                continue
            granted = bool(preferences[consent_type])
            if getattr(consent, consent_type) == granted:
                continue
            consent.record_consent_change(consent_type, granted, ip_address, user_agent)
            setattr(consent, consent_type, granted)
            changed.append(consent_type)

        if changed:
            db.session.commit()
            logger.info("Consent updated for user %s: %s", user_id, ', '.join(changed))
        return consent

    def withdraw_all(self, user_id, ip_address=None, user_agent=None):
        return self.update_consent(
            user_id,
            {consent_type: False for consent_type in OPTIONAL_CONSENT_TYPES},
            ip_address,
            user_agent,
        )

    def get_history(self, user_id):
        consent = self.find_for_user(user_id)
        if consent is None:
            return []
        return consent.public_history()


consent_repository = ConsentRepository()
