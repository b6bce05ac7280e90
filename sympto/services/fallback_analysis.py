"""
Rule-based estimate used when the prediction service cannot be reached or
returns nothing usable. Thresholds are the usual adult reference cutoffs.
"""

from sympto.models.assessment_models import MODEL_OUTPUT_KEYS
from sympto.utils.time_util import utcnow, isoformat

FALLBACK_MODEL_VERSION = 'fallback-rules-v1'
FALLBACK_CONFIDENCE = 0.35
MAX_MODEL_VERSION_LENGTH = 100

# (output key, lab field, cutoff, label)
DEFICIENCY_RULES = (
    ('iron_def', 'ferritin', 30, 'Iron deficiency'),
    ('b12_def', 'vitamin_b12', 200, 'Vitamin B12 deficiency'),
    ('vitd_def', 'vitamin_d', 20, 'Vitamin D deficiency'),
    ('calcium_def', 'calcium', 8.5, 'Calcium deficiency'),
)

DIET_ADVICE = {
    'iron_def': 'Add iron-rich foods such as lentils, spinach, beans and lean red meat; pair them with vitamin C sources.',
    'b12_def': 'Include vitamin B12 sources such as eggs, dairy, fish or fortified cereals.',
    'vitd_def': 'Get 15-20 minutes of sunlight daily and include fortified milk, eggs or oily fish.',
    'calcium_def': 'Increase calcium intake with dairy, tofu, almonds and leafy greens.',
}

NUTRIENT_REQUIREMENTS = {
    'iron_def': 'Iron: 18 mg/day',
    'b12_def': 'Vitamin B12: 2.4 mcg/day',
    'vitd_def': 'Vitamin D: 600-800 IU/day',
    'calcium_def': 'Calcium: 1000 mg/day',
}

VEGETARIAN_SOURCES = {
    'iron_def': 'Lentils, chickpeas, spinach, tofu',
    'b12_def': 'Dairy, eggs, fortified plant milks',
    'vitd_def': 'Fortified milk, mushrooms exposed to sunlight',
    'calcium_def': 'Milk, yogurt, paneer, ragi, sesame seeds',
}


def _as_float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _mean_symptom_score(symptoms):
    scores = [s for s in (_as_float(v) for v in symptoms.values()) if s is not None]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def fallback_model_version(reason):
    version = f"{FALLBACK_MODEL_VERSION} ({reason or 'unknown'})"
    return version[:MAX_MODEL_VERSION_LENGTH]


def build_fallback_analysis(labs, symptoms, reason=None):
    """
    Computes deficiency flags, severity and templated advice from decrypted
    lab values and symptom scores.

    Returns a dict with ``data`` (the narrative analysis), ``model_outputs``
    and ``model_text_outputs``.
    """
    flags = {}
    findings = []
    for key, field, cutoff, label in DEFICIENCY_RULES:
        value = _as_float(labs.get(field))
        flagged = value is not None and value < cutoff
        flags[key] = 1 if flagged else 0
        if flagged:
            findings.append((key, label, field, value, cutoff))

    mean_symptom = _mean_symptom_score(symptoms)
    severity = min(3, len(findings) + (1 if mean_symptom >= 1.5 else 0))

    model_outputs = {key: 0 for key in MODEL_OUTPUT_KEYS}
    model_outputs.update(flags)
    model_outputs['severity'] = severity

    if findings:
        insights = 'Possible ' + ', '.join(label.lower() for _, label, _, _, _ in findings) + \
            ' based on your lab values.'
        recommendations = [DIET_ADVICE[key] for key, *_ in findings]
        risk_factors = [f"{label}: {field} {value:g} below {cutoff:g}" for _, label, field, value, cutoff in findings]
    else:
        insights = 'No deficiencies detected from the lab values provided.'
        recommendations = ['Maintain a balanced diet with a variety of fruits, vegetables and whole grains.']
        risk_factors = []

    if mean_symptom >= 1.5:
        recommendations.append('Your symptom scores are elevated. Consider discussing them with a healthcare provider.')
        risk_factors.append(f'Elevated average symptom score ({mean_symptom:.1f})')

    flagged_keys = [key for key, *_ in findings]
    model_text_outputs = {
        'medicationBrandNames': None,
        'medicationText': 'Consult a healthcare provider before starting any supplements.',
        'dietAdditions': ' '.join(DIET_ADVICE[k] for k in flagged_keys) or None,
        'nutrientRequirements': '; '.join(NUTRIENT_REQUIREMENTS[k] for k in flagged_keys) or None,
        'vegetarianFoodMapping': '; '.join(VEGETARIAN_SOURCES[k] for k in flagged_keys) or None,
        'mandatoryDietChanges': 'Limit junk food and follow the diet additions above.' if flagged_keys else None,
    }

    data = {
        'insights': insights,
        'recommendations': recommendations,
        'riskFactors': risk_factors,
        'confidence': FALLBACK_CONFIDENCE,
        'processedAt': isoformat(utcnow()),
        'modelVersion': fallback_model_version(reason),
    }
    return {
        'data': data,
        'model_outputs': model_outputs,
        'model_text_outputs': model_text_outputs,
    }
