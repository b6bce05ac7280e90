from sympto.repositories.user_repo import user_repository, UserRepository
from sympto.repositories.assessment_repo import assessment_repository, AssessmentRepository
from sympto.repositories.consent_repo import consent_repository, ConsentRepository

__all__ = [
    'user_repository', 'UserRepository',
    'assessment_repository', 'AssessmentRepository',
    'consent_repository', 'ConsentRepository',
]
