"""
sympto.services.ai_service - client for the external nutrition prediction model.

The upstream service is slow to wake up and inconsistent in the shape of
its responses. Requests are retried with linear backoff on transient
failures and responses are normalized before fields are extracted.
"""

from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import requests
from flask import current_app

from sympto.models.assessment_models import (
    LAB_FIELDS, LIFESTYLE_FIELDS, MODEL_OUTPUT_KEYS, SYMPTOM_FIELDS,
)
from sympto.services.fallback_analysis import build_fallback_analysis
from sympto.utils.encryption_util import encryptor
from sympto.utils.time_util import utcnow, isoformat

logger = logging.getLogger(__name__)

USER_AGENT = 'Sympto-Health-Platform/1.0'
PREDICT_SUFFIX = '/predict'
DEFAULT_MODEL_VERSION = 'nutritionfastapi'

# (response section, Title_Case key, camelCase key used for storage)
TEXT_OUTPUT_SOURCES = (
    ('prediction2', 'Medication_Brand_Names', 'medicationBrandNames'),
    ('prediction2', 'Medication_Text', 'medicationText'),
    ('prediction3', 'Diet_Additions', 'dietAdditions'),
    ('prediction3', 'Nutrient_Requirements', 'nutrientRequirements'),
    ('prediction3', 'Vegetarian_Food_Mapping', 'vegetarianFoodMapping'),
    ('prediction3', 'Mandatory_Diet_Changes', 'mandatoryDietChanges'),
)


class AIServiceError(Exception):
    """Failure talking to the prediction service."""

    def __init__(self, code, message, retryable=False):
        super().__init__(message)
        self.code = code
        self.message = message
        self.retryable = retryable


@dataclass
class AIServiceConfig:
    base_url: str
    api_key: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0
    health_timeout: float = 5.0
    default_confidence: float = 0.8

    @classmethod
    def from_mapping(cls, config):
        return cls(
            base_url=config.get('AI_MODEL_URL') or 'http://localhost:8000',
            api_key=config.get('AI_API_KEY'),
            timeout=float(config.get('AI_TIMEOUT', 30)),
            max_retries=max(1, int(config.get('AI_MAX_RETRIES', 3))),
            retry_delay=float(config.get('AI_RETRY_DELAY', 1)),
            default_confidence=float(config.get('AI_DEFAULT_CONFIDENCE', 0.8)),
        )


@dataclass
class AnalysisResult:
    success: bool
    data: Optional[dict] = None
    model_outputs: Optional[dict] = None
    model_text_outputs: Optional[dict] = None
    fallback: bool = False
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    error_timestamp: str = field(default_factory=lambda: isoformat(utcnow()))


class AIService:
    """
    Calls ``<base_url>/predict`` with an assessment's inputs and turns the
    answer into an analysis record.

    ``session`` and ``sleep`` can be replaced for tests.
    """

    def __init__(self, config: AIServiceConfig, session=None, sleep: Callable[[float], Any] = time.sleep):
        self.config = config
        self._session = session or requests.Session()
        self._sleep = sleep

    @property
    def base_url(self):
        base = self.config.base_url.rstrip('/')
        if base.endswith(PREDICT_SUFFIX):
            base = base[:-len(PREDICT_SUFFIX)]
        return base

    @property
    def predict_url(self):
        return self.base_url + PREDICT_SUFFIX

    def _headers(self):
        headers = {
            'Content-Type': 'application/json',
            'User-Agent': USER_AGENT,
        }
        if self.config.api_key:
            headers['Authorization'] = f'Bearer {self.config.api_key}'
        return headers

    # --- request building ---

    @staticmethod
    def decrypted_labs(assessment):
        return encryptor.decrypt_health_data({f: getattr(assessment, f) for f in LAB_FIELDS})

    def format_assessment_for_ai(self, assessment):
        """Flat numeric payload. Lab values are decrypted here regardless of caller state."""
        payload = {}
        for name in SYMPTOM_FIELDS + LIFESTYLE_FIELDS:
            value = getattr(assessment, name)
            payload[name] = int(value) if value is not None else None
        for name, value in self.decrypted_labs(assessment).items():
            if not isinstance(value, float):
                raise AIServiceError('AI_SERVICE_ERROR', f'Lab value {name} is not numeric')
            payload[name] = value
        return payload

    # --- transport ---

    def _post_once(self, payload):
        try:
            response = self._session.post(
                self.predict_url,
                json=payload,
                headers=self._headers(),
                timeout=self.config.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise AIServiceError('AI_SERVICE_TIMEOUT', f'AI service request timeout: {e}', retryable=True)
        except requests.exceptions.ConnectionError as e:
            raise AIServiceError('AI_SERVICE_UNAVAILABLE', f'AI service unavailable: {e}', retryable=True)
        except requests.exceptions.RequestException as e:
            raise AIServiceError('AI_SERVICE_ERROR', f'AI service request failed: {e}')

        status = response.status_code
        if status >= 500:
            raise AIServiceError('AI_SERVICE_UNAVAILABLE', f'AI service unavailable (HTTP {status})', retryable=True)
        if status in (401, 403):
            raise AIServiceError('AI_SERVICE_UNAUTHORIZED', 'AI service rejected the API key')
        if status >= 400:
            raise AIServiceError('AI_SERVICE_ERROR', f'AI service returned HTTP {status}')

        try:
            body = response.json()
        except ValueError:
            raise AIServiceError('AI_RESPONSE_INVALID', 'Invalid response format from AI service')
        return self.normalize_response(body)

    def make_request(self, payload):
        """POSTs the payload, retrying transient failures with linear backoff."""
        attempts = max(1, self.config.max_retries)
        for attempt in range(1, attempts + 1):
            try:
                return self._post_once(payload)
            except AIServiceError as e:
                if not e.retryable or attempt == attempts:
                    raise
                delay = self.config.retry_delay * attempt
                logger.warning("AI request attempt %s/%s failed (%s); retrying in %ss",
                               attempt, attempts, e.code, delay)
                self._sleep(delay)

    @staticmethod
    def normalize_response(body):
        """Unwraps ``prediction`` envelopes, JSON strings and one-element lists."""
        payload = body
        if isinstance(payload, dict) and payload.get('prediction') is not None:
            payload = payload['prediction']
        for _ in range(2):
            if isinstance(payload, str):
                try:
                    payload = json.loads(payload)
                except ValueError:
                    raise AIServiceError('AI_RESPONSE_INVALID', 'Invalid response format from AI service')
            if isinstance(payload, list) and len(payload) == 1:
                payload = payload[0]
        if not isinstance(payload, dict):
            raise AIServiceError('AI_RESPONSE_INVALID', 'Invalid response format from AI service')
        return payload

    # --- extraction ---

    @staticmethod
    def extract_model_outputs(response):
        candidate = response
        for key in ('prediction1', 'outputs', 'modelOutputs'):
            if isinstance(response.get(key), dict):
                candidate = response[key]
                break

        outputs = {}
        for key in MODEL_OUTPUT_KEYS:
            raw = candidate.get(key)
            if raw is None or raw == '':
                continue
            try:
                number = float(raw)
            except (TypeError, ValueError, OverflowError):
                continue
            if not math.isfinite(number):
                continue
            outputs[key] = int(number) if number.is_integer() else number
        return outputs or None

    @staticmethod
    def extract_model_text_outputs(response):
        outputs = {}
        found = False
        for source, snake_key, stored_key in TEXT_OUTPUT_SOURCES:
            section = response.get(source)
            if not isinstance(section, dict):
                outputs[stored_key] = None
                continue
            value = section.get(snake_key)
            if value is None:
                value = section.get(stored_key)
            if value is not None and not isinstance(value, str):
                value = json.dumps(value)
            outputs[stored_key] = value
            found = found or value not in (None, '')
        return outputs if found else None

    def build_analysis(self, response, model_outputs, model_text_outputs):
        """Narrative analysis from the response, or a summary of the structured outputs."""
        metadata = response.get('metadata') if isinstance(response.get('metadata'), dict) else {}
        model_version = metadata.get('modelVersion') or DEFAULT_MODEL_VERSION
        confidence = response.get('confidence')
        has_confidence = isinstance(confidence, (int, float)) and not isinstance(confidence, bool)

        if (isinstance(response.get('insights'), str)
                and isinstance(response.get('recommendations'), list)
                and isinstance(response.get('riskFactors'), list)
                and has_confidence):
            return {
                'insights': response['insights'],
                'recommendations': response['recommendations'],
                'riskFactors': response['riskFactors'],
                'confidence': confidence,
                'processedAt': isoformat(utcnow()),
                'modelVersion': model_version,
            }

        if not model_outputs and not model_text_outputs:
            return None

        model_outputs = model_outputs or {}
        text = model_text_outputs or {}
        flagged = sorted(k for k, v in model_outputs.items() if k != 'severity' and v)
        if flagged:
            insights = 'Model indicates: ' + ', '.join(k.replace('_', ' ') for k in flagged) + '.'
        else:
            insights = 'No deficiencies indicated by the model.'
        recommendations = [v for v in (text.get('dietAdditions'), text.get('mandatoryDietChanges')) if v]
        return {
            'insights': insights,
            'recommendations': recommendations,
            'riskFactors': flagged,
            'confidence': confidence if has_confidence else self.config.default_confidence,
            'processedAt': isoformat(utcnow()),
            'modelVersion': model_version,
        }

    # --- public API ---

    def analyze_assessment(self, assessment, allow_fallback=True) -> AnalysisResult:
        """
        Runs the assessment through the prediction service.

        With ``allow_fallback`` any failure produces the rule-based estimate
        instead of an error result.
        """
        try:
            payload = self.format_assessment_for_ai(assessment)
            response = self.make_request(payload)
            try:
                model_outputs = self.extract_model_outputs(response)
                model_text_outputs = self.extract_model_text_outputs(response)
                analysis = self.build_analysis(response, model_outputs, model_text_outputs)
            except (TypeError, ValueError, OverflowError) as e:
                raise AIServiceError('AI_RESPONSE_INVALID', f'Could not read AI service response: {e}')
            if analysis is None:
                raise AIServiceError('AI_RESPONSE_INVALID', 'AI service returned an empty or unsupported response')
        except AIServiceError as e:
            logger.error("AI analysis failed for assessment %s: %s", getattr(assessment, 'id', None), e.message)
            if allow_fallback:
                return self.fallback_analysis(assessment, e.code)
            return AnalysisResult(success=False, error_code=e.code, error_message=e.message)

        return AnalysisResult(
            success=True,
            data=analysis,
            model_outputs=model_outputs,
            model_text_outputs=model_text_outputs,
        )

    def fallback_analysis(self, assessment, reason):
        symptoms = {f: getattr(assessment, f) for f in SYMPTOM_FIELDS}
        result = build_fallback_analysis(self.decrypted_labs(assessment), symptoms, reason)
        logger.warning("Using rule-based fallback analysis for assessment %s (%s)",
                       getattr(assessment, 'id', None), reason)
        return AnalysisResult(
            success=True,
            data=result['data'],
            model_outputs=result['model_outputs'],
            model_text_outputs=result['model_text_outputs'],
            fallback=True,
        )

    def health_check(self):
        """GET ``<base_url>/health``. Never raises."""
        try:
            response = self._session.get(
                self.base_url + '/health',
                headers={k: v for k, v in self._headers().items() if k != 'Content-Type'},
                timeout=self.config.health_timeout,
            )
            return {
                'available': response.ok,
                'status': response.status_code,
                'timestamp': isoformat(utcnow()),
            }
        except requests.exceptions.RequestException as e:
            return {
                'available': False,
                'error': str(e),
                'timestamp': isoformat(utcnow()),
            }


def init_ai_service(app, session=None, sleep=time.sleep):
    service = AIService(AIServiceConfig.from_mapping(app.config), session=session, sleep=sleep)
    app.extensions['ai_service'] = service
    return service


def get_ai_service() -> AIService:
    return current_app.extensions['ai_service']
