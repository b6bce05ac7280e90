from sympto.models.user_models import User
from sympto.models.assessment_models import Assessment
from sympto.models.consent_models import Consent
from sympto.models.system_models import RevokedToken

__all__ = ['User', 'Assessment', 'Consent', 'RevokedToken']
