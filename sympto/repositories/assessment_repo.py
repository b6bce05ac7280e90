"""
sympto.repositories.assessment_repo - persistence for assessments.

Lab values are encrypted on write and decrypted back to numbers on read.
Status transitions that depend only on the record itself are applied on
every write.
"""

import logging

from sympto.extensions import db
from sympto.models.assessment_models import Assessment, LAB_FIELDS
from sympto.repositories.field_codec import install_committed, pending_plaintext
from sympto.utils.encryption_util import encryptor
from sympto.utils.time_util import utcnow

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    'createdAt': Assessment.created_at,
    'completedAt': Assessment.completed_at,
    'status': Assessment.status,
}


class AssessmentRepository:
    """SQLAlchemy assessment repository with field-level encryption."""

    def decode(self, assessment):
        if assessment is None:
            return None
        labs = encryptor.decrypt_health_data({f: getattr(assessment, f) for f in LAB_FIELDS})
        return install_committed(assessment, labs)

    def encode(self, assessment):
        self.apply_status_rules(assessment)
        for field, value in encryptor.encrypt_health_data(pending_plaintext(assessment, LAB_FIELDS)).items():
            setattr(assessment, field, value)
        return assessment

    @staticmethod
    def apply_status_rules(assessment):
        if assessment.status in (None, 'draft') and assessment.is_complete():
            assessment.status = 'completed'
        if assessment.status in ('completed', 'analyzed') and assessment.completed_at is None:
            assessment.completed_at = utcnow()

    def get(self, assessment_id):
        return self.decode(db.session.get(Assessment, assessment_id))

    def list_for_user(self, user_id, page=1, limit=10, sort_by='createdAt', sort_order='desc'):
        column = SORT_COLUMNS.get(sort_by, Assessment.created_at)
        order = column.asc() if sort_order == 'asc' else column.desc()

        query = Assessment.query.filter_by(user_id=user_id)
        total = query.count()
        items = (
            query.order_by(order, Assessment.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return [self.decode(a) for a in items], total

    def list_all_for_user(self, user_id):
        items = Assessment.query.filter_by(user_id=user_id).order_by(Assessment.created_at.desc()).all()
        return [self.decode(a) for a in items]

    def add(self, assessment):
        self.encode(assessment)
        db.session.add(assessment)
        db.session.commit()
        logger.info("Created assessment %s for user %s (status=%s)",
                    assessment.id, assessment.user_id, assessment.status)
        return self.decode(assessment)

    def save(self, assessment):
        self.encode(assessment)
        db.session.commit()
        return self.decode(assessment)

    def record_analysis(self, assessment, analysis, model_outputs=None, model_text_outputs=None):
        """Attaches an analysis result and marks the assessment analyzed."""
        assessment.ai_analysis = analysis
        assessment.model_outputs = model_outputs
        assessment.model_text_outputs = model_text_outputs
        assessment.analyzed_at = utcnow()
        assessment.status = 'analyzed'
        return self.save(assessment)

    def delete(self, assessment):
        db.session.delete(assessment)
        db.session.commit()

    def delete_all_for_user(self, user_id):
        count = Assessment.query.filter_by(user_id=user_id).delete(synchronize_session='fetch')
        db.session.commit()
        logger.info("Deleted %s assessments for user %s", count, user_id)
        return count


assessment_repository = AssessmentRepository()
