from flask import current_app

from sympto.services.ai_service import get_ai_service
from sympto.utils.responses import success_response


def warm_up():
    """Public health probe. Always 200; the body says whether the model is reachable."""
    status = get_ai_service().health_check()
    if not status['available']:
        current_app.logger.info(f"AI service not available: {status.get('error') or status.get('status')}")
    return success_response({'aiService': status})
