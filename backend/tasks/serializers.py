"""
Serializers for Task Planner requests.

Incoming task snapshots are validated here before they reach the core.
Nothing is persisted: each request carries the flat task list it wants
ranked, and the response is a derived view of it.
"""

from rest_framework import serializers
from django.conf import settings
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema_field

from .errors import InvalidDueDate, InvalidTopKCount, InvalidWeight
from .records import parse_due_date
from .scoring import validate_weight
from .selection import DEFAULT_TOP_COUNT, validate_count as validate_top_k_count


@extend_schema_field(OpenApiTypes.INT)
class WeightField(serializers.Field):
    """
    Integer weight in [1, 5].

    Unlike ``IntegerField`` this never coerces, so ``3.0``, ``"3"`` and
    booleans are rejected the same way the scorer rejects them.
    """

    def to_internal_value(self, data):
        try:
            return validate_weight(data)
        except InvalidWeight as exc:
            raise serializers.ValidationError(exc.message)

    def to_representation(self, value):
        return value


class TaskInputSerializer(serializers.Serializer):
    """
    Serializer for a single flat task record.

    Accepts the camelCase keys sent by the web client (``parentId``,
    ``dueDate``) as well as snake_case.
    """

    id = serializers.CharField(max_length=64, required=True)
    parent_id = serializers.CharField(max_length=64, required=False, allow_null=True, default=None)
    title = serializers.CharField(max_length=255, required=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    due_date = serializers.CharField(required=True)
    weight = WeightField(required=True)
    completed = serializers.BooleanField(required=False, default=False)
    created_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    updated_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    calendar_event_id = serializers.CharField(required=False, allow_null=True, default=None)

    CAMEL_CASE_KEYS = {
        'parentId': 'parent_id',
        'dueDate': 'due_date',
        'createdAt': 'created_at',
        'updatedAt': 'updated_at',
        'calendarEventId': 'calendar_event_id',
    }

    def to_internal_value(self, data):
        if isinstance(data, dict):
            data = dict(data)
            for camel, snake in self.CAMEL_CASE_KEYS.items():
                if camel in data and snake not in data:
                    data[snake] = data.pop(camel)
        return super().to_internal_value(data)

    def validate_title(self, value):
        """Ensure title is not empty or just whitespace."""
        if not value or not value.strip():
            raise serializers.ValidationError("Title cannot be empty")
        return value.strip()

    def validate_due_date(self, value):
        """Parse ISO dates and date-times into date/datetime objects."""
        try:
            return parse_due_date(value)
        except InvalidDueDate as exc:
            raise serializers.ValidationError(exc.message)


class TaskSnapshotSerializer(serializers.Serializer):
    """
    Serializer for a snapshot request: a flat task list plus "now".

    ``now`` defaults to the server clock when omitted.
    """

    tasks = serializers.ListField(
        child=TaskInputSerializer(),
        min_length=1,
        error_messages={
            'min_length': 'At least one task is required'
        }
    )
    now = serializers.DateTimeField(required=False, allow_null=True, default=None)


class TopTasksInputSerializer(TaskSnapshotSerializer):
    """
    Serializer for top-K requests.
    """

    count = serializers.IntegerField(required=False)
    include_completed = serializers.BooleanField(required=False, default=False)

    def validate_count(self, value):
        try:
            value = validate_top_k_count(value)
        except InvalidTopKCount as exc:
            raise serializers.ValidationError(exc.message)
        limit = settings.TASK_PLANNER.get('MAX_TOP_TASK_COUNT')
        if limit and value > limit:
            raise serializers.ValidationError(f"Count cannot exceed {limit}")
        return value

    def validate(self, attrs):
        if attrs.get('count') is None:
            attrs['count'] = settings.TASK_PLANNER.get('TOP_TASK_COUNT', DEFAULT_TOP_COUNT)
        return attrs


class CalendarInputSerializer(TaskSnapshotSerializer):
    """
    Serializer for calendar grouping requests.
    """

    include_completed = serializers.BooleanField(required=False, default=False)

