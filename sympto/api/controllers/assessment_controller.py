import math

from flask import current_app, request
from flask_jwt_extended import get_current_user

from sympto.api.schemas import AssessmentListQuerySchema, AssessmentSchema, load_json
from sympto.models.assessment_models import Assessment
from sympto.repositories import assessment_repository
from sympto.services.ai_service import get_ai_service
from sympto.utils.errors import (
    AuthorizationError, NotFoundError, RateLimitError, UpstreamUnavailableError, ValidationError,
)
from sympto.utils.responses import success_response
from sympto.utils.time_util import utcnow


def _get_owned_assessment(assessment_id):
    """Loads an assessment, distinguishing missing (404) from not yours (403)."""
    assessment = assessment_repository.get(assessment_id)
    if assessment is None:
        raise NotFoundError('Assessment not found', code='ASSESSMENT_NOT_FOUND')
    if assessment.user_id != get_current_user().id:
        raise AuthorizationError('Access denied to this assessment', code='ACCESS_DENIED')
    return assessment


def _attach_analysis(assessment, result):
    return assessment_repository.record_analysis(
        assessment,
        result.data,
        model_outputs=result.model_outputs,
        model_text_outputs=result.model_text_outputs,
    )


def create_assessment():
    """
    Stores a new assessment. A complete assessment is analyzed before the
    response is sent; when the AI service fails the rule-based estimate is
    stored instead so creation itself never fails on the AI step.
    """
    data = load_json(AssessmentSchema())
    user = get_current_user()

    assessment = assessment_repository.add(Assessment(user_id=user.id, status='draft', **data))

    if assessment.status == 'completed':
        result = get_ai_service().analyze_assessment(assessment, allow_fallback=True)
        if result.success:
            assessment = _attach_analysis(assessment, result)
            if result.fallback:
                current_app.logger.warning(f"Assessment {assessment.id} analyzed with fallback rules")

    return success_response({'assessment': assessment.to_dict()}, message='Assessment created successfully', status=201)


def list_assessments():
    query = load_json(AssessmentListQuerySchema(), data=request.args.to_dict())
    user = get_current_user()

    items, total = assessment_repository.list_for_user(
        user.id,
        page=query['page'],
        limit=query['limit'],
        sort_by=query['sort_by'],
        sort_order=query['sort_order'],
    )
    pages = math.ceil(total / query['limit']) if total else 0
    return success_response({
        'assessments': [a.to_dict() for a in items],
        'pagination': {
            'page': query['page'],
            'limit': query['limit'],
            'total': total,
            'pages': pages,
            'hasNext': query['page'] < pages,
            'hasPrev': query['page'] > 1,
        },
    })


def get_assessment(assessment_id):
    assessment = _get_owned_assessment(assessment_id)
    data = assessment.to_dict()
    data['symptomSummary'] = assessment.symptom_summary()
    data['lifestyleSummary'] = assessment.lifestyle_summary()
    data['labResults'] = assessment.lab_results_summary()
    data['ageInDays'] = assessment.age_in_days
    return success_response({'assessment': data})


def delete_assessment(assessment_id):
    assessment = _get_owned_assessment(assessment_id)
    assessment_repository.delete(assessment)
    return success_response(message='Assessment deleted successfully')


def delete_all_assessments():
    count = assessment_repository.delete_all_for_user(get_current_user().id)
    return success_response({'deletedCount': count}, message=f'{count} assessments deleted successfully')


def analyze_assessment(assessment_id):
    """Re-runs AI analysis. Unlike creation, an AI failure is reported as 503."""
    assessment = _get_owned_assessment(assessment_id)

    if not assessment.is_complete():
        raise ValidationError('Assessment must be complete before analysis', code='ASSESSMENT_INCOMPLETE')

    # Soft cooldown only; concurrent requests can both pass this check
    cooldown = current_app.config['ANALYSIS_COOLDOWN_SECONDS']
    if assessment.analyzed_at is not None:
        elapsed = (utcnow() - assessment.analyzed_at).total_seconds()
        if elapsed < cooldown:
            raise RateLimitError(
                'Analysis was run recently. Please wait before requesting another analysis.',
                code='ANALYSIS_TOO_FREQUENT',
                details={'retryAfter': int(cooldown - elapsed)},
            )

    result = get_ai_service().analyze_assessment(assessment, allow_fallback=False)
    if not result.success:
        raise UpstreamUnavailableError(
            'AI analysis service is currently unavailable. Please try again later.',
            code=result.error_code,
            details={'reason': result.error_message},
        )

    assessment = _attach_analysis(assessment, result)
    return success_response({
        'assessment': {
            'id': assessment.id,
            'status': assessment.status,
            'aiAnalysis': assessment.ai_analysis,
            'modelOutputs': assessment.model_outputs,
            'modelTextOutputs': assessment.model_text_outputs,
            'analyzedAt': assessment.to_dict(include_inputs=False)['analyzedAt'],
        },
    }, message='Assessment analyzed successfully')


def ai_service_status():
    return success_response({'aiService': get_ai_service().health_check()})
