import logging

from django.conf import settings
from django.http import Http404
from django.views.static import serve
from rest_framework import viewsets, status
from rest_framework.response import Response
from rest_framework.decorators import action

from .exceptions import (
    FileRecordNotFound,
    FileTooLargeError,
    InvalidFilterError,
    StorageIOError,
    UploadRejected,
)
from .serializers import FileRecordSerializer, FileUploadSerializer
from .services import FilterCriteria, get_file_service, get_max_upload_size

logger = logging.getLogger(__name__)


def format_file_size(size_bytes):
    """Format bytes as human-readable string."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


def too_large_response(error: FileTooLargeError, cut_off: bool = False) -> Response:
    """
    400 for an oversized upload. When the upload handler cut the stream
    off, only the bytes received so far are known, so they are reported
    as `received_size` (a lower bound on the payload size).
    """
    size_key = 'received_size' if cut_off else 'file_size'
    return Response(
        {
            'error': 'File size exceeds maximum allowed',
            'details': {
                size_key: error.file_size,
                f'{size_key}_formatted': format_file_size(error.file_size),
                'max_size': error.max_size,
                'max_size_formatted': format_file_size(error.max_size),
            }
        },
        status=status.HTTP_400_BAD_REQUEST
    )


def not_found_response() -> Response:
    return Response(
        {'error': 'File not found'},
        status=status.HTTP_404_NOT_FOUND
    )


class FileViewSet(viewsets.ViewSet):
    """
    ViewSet for file operations with deduplication support.

    Provides:
    - List files with filtering (plain JSON array, newest first)
    - Upload files with automatic deduplication
    - Retrieve and delete single file records
    - Storage metrics and upload limits endpoints

    Filtering (all use AND logic):
    - search: Case-insensitive filename search
    - file_type: Case-insensitive MIME type substring
    - size_min/size_max: File size range in bytes
    - uploaded_after/uploaded_before: Upload date range (YYYY-MM-DD)

    Authentication is enforced by the default permission classes before
    any handler runs; the identity is then passed to every service call.
    """

    def get_service(self):
        return get_file_service()

    def list(self, request):
        try:
            criteria = FilterCriteria.from_query_params(request.query_params)
        except InvalidFilterError as e:
            return Response(
                {'error': 'Invalid filter parameters', 'details': e.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            records = self.get_service().list_files(criteria, request.user)
        except StorageIOError:
            logger.exception("Listing files failed")
            return Response(
                {'error': 'Failed to fetch files'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        serializer = FileRecordSerializer(records, many=True, context={'request': request})
        return Response(serializer.data)

    def retrieve(self, request, pk=None):
        try:
            record = self.get_service().get_file(pk, request.user)
        except FileRecordNotFound:
            return not_found_response()
        except StorageIOError:
            logger.exception(f"Fetching file {pk} failed")
            return Response(
                {'error': 'Failed to fetch file'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        return Response(FileRecordSerializer(record, context={'request': request}).data)

    def create(self, request):
        """
        Upload a file with deduplication.

        If the file content already exists, no duplicate storage occurs.
        The response includes `is_duplicate` flag to indicate if this was a duplicate.
        """
        file_obj = request.FILES.get('file')

        # Set by MaxSizeUploadHandler when it cut the file off mid-stream
        rejected_size = getattr(request, 'upload_rejected_size', None)
        if rejected_size is not None:
            return too_large_response(
                FileTooLargeError(rejected_size, get_max_upload_size()),
                cut_off=True,
            )

        if not file_obj:
            return Response(
                {'error': 'No file provided'},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            file_record, is_duplicate = self.get_service().upload_file(
                file_obj,
                original_filename=file_obj.name,
                file_type=file_obj.content_type or 'application/octet-stream',
                declared_size=file_obj.size,
                identity=request.user,
            )
        except FileTooLargeError as e:
            return too_large_response(e)
        except UploadRejected as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except StorageIOError:
            logger.exception(f"Upload of {file_obj.name!r} failed")
            return Response(
                {'error': 'Upload failed'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        serializer = FileUploadSerializer(
            file_record,
            context={'request': request, 'is_duplicate': is_duplicate}
        )
        return Response(
            serializer.data,
            status=status.HTTP_201_CREATED
        )

    def destroy(self, request, pk=None):
        """
        Delete a file record.

        Physical file is only deleted when no other references exist.
        """
        try:
            self.get_service().delete_file(pk, request.user)
        except FileRecordNotFound:
            return not_found_response()
        except StorageIOError:
            logger.exception(f"Delete of {pk} failed")
            return Response(
                {'error': 'Delete failed'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'], url_path='storage-metrics')
    def storage_metrics(self, request):
        """
        Get storage metrics showing deduplication effectiveness.

        Returns:
            - total_files: Count of all file records
            - unique_contents: Count of unique content hashes
            - logical_size: Total size if all files stored separately
            - physical_size: Actual storage used
            - storage_saved: Bytes saved through deduplication
            - deduplication_ratio: unique_contents / total_files
        """
        try:
            metrics = self.get_service().get_storage_metrics()
        except StorageIOError:
            logger.exception("Storage metrics failed")
            return Response(
                {'error': 'Failed to calculate storage metrics'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        return Response(metrics)

    @action(detail=False, methods=['get'], url_path='upload-limits')
    def upload_limits(self, request):
        """
        Get upload limits for client-side validation.

        Returns:
            - max_file_size: Maximum allowed file size in bytes
            - max_file_size_formatted: Human-readable max size
        """
        max_size = get_max_upload_size()
        return Response({
            'max_file_size': max_size,
            'max_file_size_formatted': format_file_size(max_size),
        })


def serve_blob(request, location):
    """
    GET /uploads/<location>

    Streams a stored blob. Locations are flat names; anything else 404s.
    """
    if '/' in location or location.startswith('.'):
        raise Http404('File not found')
    return serve(request, location, document_root=settings.MEDIA_ROOT)
