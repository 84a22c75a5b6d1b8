from rest_framework import serializers
from contracts.models import FileRecord


class FileRecordSerializer(serializers.ModelSerializer):
    """
    Serializer for FileRecord.
    `file` renders as the URL the blob is served from.
    """
    file = serializers.FileField(read_only=True)

    # Expose content hash for deduplication transparency
    content_hash = serializers.CharField(source='digest', read_only=True)

    class Meta:
        model = FileRecord
        fields = [
            'id',
            'file',
            'original_filename',
            'file_type',
            'size',
            'uploaded_at',
            'content_hash',
        ]
        read_only_fields = fields


class FileUploadSerializer(FileRecordSerializer):
    """Upload response; adds whether the content was already stored."""
    is_duplicate = serializers.SerializerMethodField()

    class Meta(FileRecordSerializer.Meta):
        fields = FileRecordSerializer.Meta.fields + ['is_duplicate']
        read_only_fields = fields

    def get_is_duplicate(self, obj):
        return self.context.get('is_duplicate', False)
