from rest_framework import serializers
from .models import TEJExport


class TEJExportSerializer(serializers.ModelSerializer):
    exported_by_name = serializers.CharField(source='exported_by.username', read_only=True, default=None)
    filename = serializers.CharField(read_only=True)

    class Meta:
        model = TEJExport
        fields = ['id', 'month', 'year', 'format', 'filename', 'line_count', 'total_retenue',
                  'exported_by', 'exported_by_name', 'export_date']
        read_only_fields = fields
