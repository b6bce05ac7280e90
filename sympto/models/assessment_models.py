from sympto.extensions import db
from sympto.utils.time_util import utcnow, isoformat

SYMPTOM_FIELDS = ('fatigue', 'hair_loss', 'acidity', 'dizziness', 'muscle_pain', 'numbness')
LIFESTYLE_FIELDS = (
    'vegetarian', 'smoking', 'alcohol',
    'iron_food_freq', 'dairy_freq', 'junk_food_freq',
    'sunlight_min',
)
LAB_FIELDS = ('hemoglobin', 'ferritin', 'vitamin_b12', 'vitamin_d', 'calcium')
REQUIRED_FIELDS = SYMPTOM_FIELDS + LIFESTYLE_FIELDS + LAB_FIELDS

STATUSES = ('draft', 'completed', 'analyzed', 'archived')

# Structured outputs kept from the prediction service
MODEL_OUTPUT_KEYS = (
    'iron_def', 'b12_def', 'vitd_def', 'calcium_def', 'severity',
    'magnesium_def', 'potassium_def', 'protein_def', 'zinc_def', 'folate_def',
    'omega3_def', 'electrolyte_imbalance', 'general_malnutrition', 'vitamin_b6_def',
    'copper_def', 'selenium_def', 'iodine_def', 'vitamin_a_def', 'choline_def',
    'gut_malabsorption', 'chronic_inflammation', 'chronic_dehydration',
    'protein_quality_def',
)
MODEL_TEXT_OUTPUT_KEYS = (
    'medicationBrandNames', 'medicationText', 'dietAdditions',
    'nutrientRequirements', 'vegetarianFoodMapping', 'mandatoryDietChanges',
)

_SYMPTOM_LABELS = {0: 'none', 1: 'mild', 2: 'moderate', 3: 'severe'}


class Assessment(db.Model):
    """A single self-reported health snapshot."""
    __tablename__ = 'assessments'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    # Symptoms, 0-3
    fatigue = db.Column(db.Integer)
    hair_loss = db.Column(db.Integer)
    acidity = db.Column(db.Integer)
    dizziness = db.Column(db.Integer)
    muscle_pain = db.Column(db.Integer)
    numbness = db.Column(db.Integer)

    # Lifestyle
    vegetarian = db.Column(db.Integer)
    smoking = db.Column(db.Integer)
    alcohol = db.Column(db.Integer)
    iron_food_freq = db.Column(db.Integer)
    dairy_freq = db.Column(db.Integer)
    junk_food_freq = db.Column(db.Integer)
    sunlight_min = db.Column(db.Integer)

    # Lab values, encrypted at rest
    hemoglobin = db.Column(db.Text)
    ferritin = db.Column(db.Text)
    vitamin_b12 = db.Column(db.Text)
    vitamin_d = db.Column(db.Text)
    calcium = db.Column(db.Text)

    ai_analysis = db.Column(db.JSON)
    model_outputs = db.Column(db.JSON)
    model_text_outputs = db.Column(db.JSON)
    analyzed_at = db.Column(db.DateTime)

    status = db.Column(db.String(20), nullable=False, default='draft', index=True)
    completed_at = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    user = db.relationship('User', back_populates='assessments')

    def is_complete(self) -> bool:
        return all(getattr(self, field) is not None for field in REQUIRED_FIELDS)

    def symptom_summary(self):
        scores = [getattr(self, f) for f in SYMPTOM_FIELDS if getattr(self, f) is not None]
        return {
            'scores': {f: getattr(self, f) for f in SYMPTOM_FIELDS},
            'labels': {f: _SYMPTOM_LABELS.get(getattr(self, f)) for f in SYMPTOM_FIELDS},
            'total': sum(scores),
            'average': round(sum(scores) / len(scores), 2) if scores else None,
            'severeCount': sum(1 for s in scores if s >= 2),
        }

    def lifestyle_summary(self):
        return {
            'vegetarian': bool(self.vegetarian) if self.vegetarian is not None else None,
            'smoking': bool(self.smoking) if self.smoking is not None else None,
            'alcohol': bool(self.alcohol) if self.alcohol is not None else None,
            'ironFoodFrequency': self.iron_food_freq,
            'dairyFrequency': self.dairy_freq,
            'junkFoodFrequency': self.junk_food_freq,
            'sunlightMinutes': self.sunlight_min,
        }

    def lab_results_summary(self):
        return {field: getattr(self, field) for field in LAB_FIELDS}

    @property
    def age_in_days(self):
        if not self.created_at:
            return 0
        return (utcnow() - self.created_at).days

    def to_dict(self, include_inputs=True):
        """Serializes the assessment. Lab values must already be decrypted."""
        data = {
            'id': self.id,
            'userId': self.user_id,
            'status': self.status,
            'aiAnalysis': self.ai_analysis,
            'modelOutputs': self.model_outputs,
            'modelTextOutputs': self.model_text_outputs,
            'analyzedAt': isoformat(self.analyzed_at),
            'completedAt': isoformat(self.completed_at),
            'notes': self.notes,
            'isComplete': self.is_complete(),
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }
        if include_inputs:
            data.update({field: getattr(self, field) for field in REQUIRED_FIELDS})
        return data
