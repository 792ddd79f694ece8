# services/scheduling-service/src/apps/api/views/pagination.py
"""
API Pagination
"""

from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list views."""

    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100

    def get_paginated_response_schema(self, schema):
        return {
            'type': 'object',
            'properties': {
                'count': {
                    'type': 'integer',
                    'example': 42,
                },
                'next': {
                    'type': 'string',
                    'nullable': True,
                    'format': 'uri',
                    'example': 'http://api.example.org/bookings/?page=3',
                },
                'previous': {
                    'type': 'string',
                    'nullable': True,
                    'format': 'uri',
                    'example': 'http://api.example.org/bookings/?page=1',
                },
                'results': schema,
            },
        }


class WeatherHistoryPagination(PageNumberPagination):
    """Weather checks for a single booking."""

    page_size = 24  # One day of hourly checks
    page_size_query_param = 'page_size'
    max_page_size = 168
