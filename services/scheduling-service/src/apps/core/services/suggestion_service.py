# services/scheduling-service/src/apps/core/services/suggestion_service.py
"""
Reschedule Suggestion Generators

Two interchangeable strategies with the same ``generate(context)``
method: an LLM-backed generator behind a bounded HTTP call, and a
deterministic rule-based generator used when the former fails.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from shared.common.clients import BaseAPIClient, CircuitBreaker

from .availability_service import AvailabilityService

logger = logging.getLogger(__name__)

HIGH = 'high'
MEDIUM = 'medium'
LOW = 'low'
CONFIDENCE_LEVELS = (HIGH, MEDIUM, LOW)

GENERATOR_AI = 'ai'
GENERATOR_RULE_BASED = 'rule_based'

FALLBACK_DAYS = 3

SYSTEM_PROMPT = 'You are a flight school scheduling assistant. Always respond with valid JSON only.'

# Shared across generator instances so repeated failures open it
_ai_circuit_breaker = CircuitBreaker(failure_threshold=3, timeout=120)


@dataclass
class SuggestionContext:
    """Everything a generator needs to propose replacement slots."""

    booking_id: str
    student_id: str
    student_name: str
    training_level: str
    training_stage: str
    original_start: datetime
    original_end: datetime
    departure_airport: str
    instructor_id: Optional[str] = None
    instructor_name: Optional[str] = None
    aircraft_id: Optional[str] = None
    aircraft_tail_number: Optional[str] = None
    last_flight_date: Optional[str] = None
    preferred_instructor_id: Optional[str] = None
    student_availability: List[Dict[str, Any]] = field(default_factory=list)
    instructor_availability: List[Dict[str, Any]] = field(default_factory=list)
    instructors: List[Dict[str, Any]] = field(default_factory=list)
    aircraft: List[Dict[str, Any]] = field(default_factory=list)
    route: List[str] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)

    @property
    def duration(self) -> timedelta:
        return self.original_end - self.original_start

    @classmethod
    def from_booking(cls, booking, reasons: List[str] = None) -> 'SuggestionContext':
        from apps.core.models import Aircraft, Instructor

        student = booking.student
        instructors = Instructor.objects.filter(is_active=True)
        aircraft = Aircraft.objects.filter(status=Aircraft.Status.AVAILABLE)
        if booking.school_id:
            instructors = instructors.filter(school_id=booking.school_id)
            aircraft = aircraft.filter(school_id=booking.school_id)

        # The original instructor and aircraft come first
        instructor_options = sorted(
            instructors, key=lambda i: (i.id != booking.instructor_id, i.name)
        )
        aircraft_options = sorted(
            aircraft, key=lambda a: (a.id != booking.aircraft_id, a.tail_number)
        )

        return cls(
            booking_id=str(booking.id),
            student_id=str(student.id),
            student_name=student.name,
            training_level=student.training_level,
            training_stage=student.training_stage,
            original_start=booking.scheduled_start,
            original_end=booking.scheduled_end,
            departure_airport=booking.departure_airport,
            instructor_id=str(booking.instructor_id) if booking.instructor_id else None,
            instructor_name=booking.instructor.name if booking.instructor else None,
            aircraft_id=str(booking.aircraft_id),
            aircraft_tail_number=booking.aircraft.tail_number,
            last_flight_date=(
                student.last_flight_date.isoformat() if student.last_flight_date else None
            ),
            preferred_instructor_id=(
                str(student.preferred_instructor_id) if student.preferred_instructor_id else None
            ),
            student_availability=list(student.availability or []),
            instructor_availability=list(booking.instructor.availability or []) if booking.instructor else [],
            instructors=[
                {'id': str(i.id), 'name': i.name, 'availability': i.availability}
                for i in instructor_options
            ],
            aircraft=[
                {'id': str(a.id), 'tail_number': a.tail_number, 'type': a.aircraft_type}
                for a in aircraft_options
            ],
            route=booking.route_codes,
            reasons=list(reasons or []),
        )


@dataclass
class SuggestionResult:
    suggestions: List[Dict[str, Any]]
    generator: str
    priority_factors: Dict[str, Any] = field(default_factory=dict)


def _slot_is_free(availability: AvailabilityService, context: SuggestionContext, start, instructor_id, aircraft_id) -> bool:
    result = availability.check_availability(
        context.student_id,
        aircraft_id,
        start,
        start + context.duration,
        instructor_id=instructor_id,
        exclude_booking_id=context.booking_id,
    )
    return result.is_available


class AISuggestionGenerator:
    """
    Asks an OpenAI-compatible chat-completions endpoint for ranked
    reschedule options.

    Raises ``SuggestionGenerationError`` when not configured, on timeout
    or upstream error, and when the response holds no usable option.
    """

    def __init__(self, client: BaseAPIClient = None, availability_service: AvailabilityService = None):
        config = getattr(settings, 'AI_SUGGESTIONS', {})
        self.enabled = config.get('ENABLED', False)
        self.api_key = config.get('API_KEY', '')
        self.model = config.get('MODEL', 'gpt-4o-mini')
        self.max_suggestions = config.get('MAX_SUGGESTIONS', 3)
        self.client = client or BaseAPIClient(
            name='ai-suggestions',
            base_url=config.get('API_URL', ''),
            timeout=config.get('TIMEOUT', 20),
            headers={'Authorization': f"Bearer {self.api_key}"},
            circuit_breaker=_ai_circuit_breaker,
        )
        self.availability_service = availability_service or AvailabilityService()

    @property
    def is_configured(self) -> bool:
        return bool(self.enabled and self.api_key)

    def generate(self, context: SuggestionContext) -> SuggestionResult:
        from . import SuggestionGenerationError

        if not self.is_configured:
            raise SuggestionGenerationError('AI suggestions are not configured')

        payload = {
            'model': self.model,
            'messages': [
                {'role': 'system', 'content': SYSTEM_PROMPT},
                {'role': 'user', 'content': self.build_prompt(context)},
            ],
            'response_format': {'type': 'json_object'},
            'temperature': 0.7,
        }

        try:
            response = self.client.post('', data=payload)
            content = response['choices'][0]['message']['content']
            data = json.loads(content)
        except Exception as e:
            raise SuggestionGenerationError(f"AI suggestion request failed: {e}") from e

        if not isinstance(data, dict):
            raise SuggestionGenerationError('AI response is not a JSON object')

        suggestions = self._validate(context, data.get('suggestions') or [])
        if not suggestions:
            raise SuggestionGenerationError('AI response contained no usable suggestions')

        return SuggestionResult(
            suggestions=suggestions,
            generator=GENERATOR_AI,
            priority_factors=data.get('priorityFactors') or data.get('priority_factors') or {},
        )

    def build_prompt(self, context: SuggestionContext) -> str:
        route_info = ''
        if len(context.route) > 1:
            route_info = f"\n\nROUTE:\n- {' -> '.join(context.route)}"

        return f"""A flight lesson has been cancelled due to weather.

CANCELLED FLIGHT:
- Student: {context.student_name} ({context.training_level})
- Instructor: {context.instructor_name or 'TBD'}
- Aircraft: {context.aircraft_tail_number}
- Original Time: {context.original_start.isoformat()} to {context.original_end.isoformat()}
- Reason: {'; '.join(context.reasons) or 'Weather below minimums'}

STUDENT CONTEXT:
- Training Stage: {context.training_stage or 'unknown'}
- Last Flight: {context.last_flight_date or 'never'}
- Preferred Instructor: {context.preferred_instructor_id or 'none'}

AVAILABILITY CONSTRAINTS:
- Student Available: {json.dumps(context.student_availability)}
- Instructors Available: {json.dumps(context.instructors)}
- Aircraft Available: {json.dumps(context.aircraft)}

GOALS:
1. Minimize training delay
2. Maintain instructor continuity if possible
3. Ensure student, instructor and aircraft are all available
4. Consider student currency
5. Respect a 30-minute buffer between flights

Generate {self.max_suggestions} reschedule options after {timezone.now().isoformat()}, ranked by preference.
Respond ONLY in JSON with this structure:
{{
  "suggestions": [
    {{
      "slot": "ISO datetime",
      "instructorId": "id",
      "aircraftId": "id",
      "priority": 1,
      "reasoning": "why this is a good option",
      "confidence": "high/medium/low",
      "weatherForecast": "brief description"
    }}
  ],
  "priorityFactors": {{
    "studentCurrency": "description",
    "trainingMilestone": "description",
    "rescheduleHistory": "description"
  }}
}}{route_info}"""

    def _validate(self, context: SuggestionContext, raw: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Keep options that name known resources, lie in the future and are free."""
        known_instructors = {i['id'] for i in context.instructors}
        known_aircraft = {a['id'] for a in context.aircraft}
        now = timezone.now()

        valid = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            start = parse_datetime(str(item.get('slot', '')))
            if start is None:
                continue
            if timezone.is_naive(start):
                start = timezone.make_aware(start)
            if start <= now:
                continue

            instructor_id = item.get('instructorId') or item.get('instructor_id') or context.instructor_id
            aircraft_id = item.get('aircraftId') or item.get('aircraft_id') or context.aircraft_id
            if instructor_id and known_instructors and instructor_id not in known_instructors:
                continue
            if aircraft_id not in known_aircraft:
                continue
            if not _slot_is_free(self.availability_service, context, start, instructor_id, aircraft_id):
                continue

            confidence = str(item.get('confidence', MEDIUM)).lower()
            valid.append({
                'slot': start.isoformat(),
                'end': (start + context.duration).isoformat(),
                'instructor_id': instructor_id,
                'aircraft_id': aircraft_id,
                'priority': len(valid) + 1,
                'reasoning': item.get('reasoning', ''),
                'confidence': confidence if confidence in CONFIDENCE_LEVELS else MEDIUM,
                'weather_forecast': item.get('weatherForecast') or item.get('weather_forecast') or '',
            })
            if len(valid) >= self.max_suggestions:
                break

        return valid


class RuleBasedSuggestionGenerator:
    """
    Same time of day on each of the next three days, rotating through
    the available instructors and aircraft.
    """

    def __init__(self, availability_service: AvailabilityService = None, days: int = FALLBACK_DAYS):
        self.availability_service = availability_service or AvailabilityService()
        self.days = days

    def generate(self, context: SuggestionContext) -> SuggestionResult:
        # Solo bookings stay solo
        if context.instructor_id:
            instructors = [i['id'] for i in context.instructors] or [context.instructor_id]
        else:
            instructors = [None]
        aircraft = [a['id'] for a in context.aircraft] or [context.aircraft_id]

        suggestions = []
        for i in range(self.days):
            start = context.original_start + timedelta(days=i + 1)
            instructor_id, aircraft_id, validated = self._pick_resources(context, start, i, instructors, aircraft)

            suggestions.append({
                'slot': start.isoformat(),
                'end': (start + context.duration).isoformat(),
                'instructor_id': instructor_id,
                'aircraft_id': aircraft_id,
                'priority': i + 1,
                'reasoning': self._reasoning(i, validated),
                'confidence': MEDIUM,
                'weather_forecast': 'Check weather forecast',
            })

        return SuggestionResult(
            suggestions=suggestions,
            generator=GENERATOR_RULE_BASED,
            priority_factors={
                'studentCurrency': (
                    f"Last flight {context.last_flight_date}" if context.last_flight_date
                    else 'Last flight date unknown'
                ),
                'trainingMilestone': f"Stage {context.training_stage or 'unknown'}",
                'rescheduleHistory': 'First reschedule',
            },
        )

    def _pick_resources(self, context, start, offset, instructors, aircraft):
        """
        Round-robin pick starting at ``offset``; the first free pair wins.

        Returns the round-robin pair unvalidated when nothing is free.
        """
        default = (instructors[offset % len(instructors)], aircraft[offset % len(aircraft)])

        for shift in range(max(len(instructors), len(aircraft))):
            instructor_id = instructors[(offset + shift) % len(instructors)]
            aircraft_id = aircraft[(offset + shift) % len(aircraft)]
            if _slot_is_free(self.availability_service, context, start, instructor_id, aircraft_id):
                return instructor_id, aircraft_id, True

        return default[0], default[1], False

    @staticmethod
    def _reasoning(offset: int, validated: bool) -> str:
        reasoning = f"Same time slot, {'next day' if offset == 0 else f'{offset + 1} days later'}"
        if not validated:
            reasoning += '; resource availability could not be confirmed'
        return reasoning
