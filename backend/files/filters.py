"""
File filtering module.

Filter Types:
- search: Case-insensitive substring match on original_filename
- file_type: Case-insensitive substring match on the declared MIME type
- size_min/size_max: Inclusive file size range in bytes
- uploaded_after/uploaded_before: Upload date range, both bounds inclusive
  of the whole named day

All filters use AND logic when combined.
"""

from django import forms
from django_filters import rest_framework as filters
from contracts.models import FileRecord


class FileFilterForm(forms.Form):
    """Cross-field validation for the listing filters."""

    def clean(self):
        cleaned_data = super().clean()
        for name in ('size_min', 'size_max'):
            value = cleaned_data.get(name)
            if value is not None and value < 0:
                self.add_error(name, 'Size values must be non-negative')
        return cleaned_data


class FileFilter(filters.FilterSet):
    """
    FilterSet for FileRecord.

    Query Parameters:
        search: Substring match on filename (case-insensitive)
        file_type: Substring match on MIME type (case-insensitive)
        size_min: Minimum file size in bytes
        size_max: Maximum file size in bytes
        uploaded_after: Files uploaded on or after this date (YYYY-MM-DD)
        uploaded_before: Files uploaded on or before this date (YYYY-MM-DD)
    """

    search = filters.CharFilter(
        field_name='original_filename',
        lookup_expr='icontains',
        max_length=255,
        help_text='Case-insensitive substring match on filename'
    )

    file_type = filters.CharFilter(
        field_name='file_type',
        lookup_expr='icontains',
        max_length=100,
        help_text='Case-insensitive substring match on MIME type'
    )

    size_min = filters.NumberFilter(
        field_name='size',
        lookup_expr='gte',
        help_text='Minimum file size in bytes'
    )
    size_max = filters.NumberFilter(
        field_name='size',
        lookup_expr='lte',
        help_text='Maximum file size in bytes'
    )

    # Day granularity in the current time zone; `date__lte` keeps the
    # whole named day for the upper bound
    uploaded_after = filters.DateFilter(
        field_name='uploaded_at',
        lookup_expr='date__gte',
        help_text='Files uploaded on or after this date'
    )
    uploaded_before = filters.DateFilter(
        field_name='uploaded_at',
        lookup_expr='date__lte',
        help_text='Files uploaded on or before this date'
    )

    class Meta:
        model = FileRecord
        form = FileFilterForm
        fields = [
            'search',
            'file_type',
            'size_min',
            'size_max',
            'uploaded_after',
            'uploaded_before',
        ]
