from rest_framework import serializers
from django.db import transaction

from .models import ProductionJob, ProductionMaterial


class ProductionMaterialSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = ProductionMaterial
        fields = ['id', 'product', 'product_name', 'quantity']


class ProductionJobSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.name', read_only=True, default=None)
    technique_display = serializers.CharField(source='get_technique_display', read_only=True)
    priority_display = serializers.CharField(source='get_priority_display', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    allowed_transitions = serializers.SerializerMethodField()
    is_overdue = serializers.BooleanField(read_only=True)
    materials = ProductionMaterialSerializer(many=True, required=False)

    class Meta:
        model = ProductionJob
        fields = [
            'id', 'job_number', 'title', 'technique', 'technique_display', 'priority',
            'priority_display', 'status', 'status_display', 'allowed_transitions',
            'quantity', 'deadline', 'is_overdue', 'client', 'client_name', 'invoice',
            'sales_order', 'started_at', 'completed_at', 'notes', 'materials',
            'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'id', 'job_number', 'status', 'started_at', 'completed_at',
            'created_by', 'created_at', 'updated_at'
        ]

    def get_allowed_transitions(self, obj):
        return list(obj.manual_transitions())

    def validate_title(self, value):
        if not value.strip():
            raise serializers.ValidationError("Le titre du travail est requis.")
        return value.strip()

    def validate(self, attrs):
        if self.instance is not None and 'materials' in attrs and not self.instance.is_editable:
            raise serializers.ValidationError(
                {'materials': "Les matières d'un travail terminé ne peuvent plus être modifiées."}
            )
        invoice = attrs.get('invoice')
        client = attrs.get('client') or (self.instance.client if self.instance else None)
        if invoice is not None and client is not None and invoice.client_id != client.pk:
            raise serializers.ValidationError({'invoice': "La facture n'appartient pas à ce client."})
        return attrs

    def create(self, validated_data):
        materials = validated_data.pop('materials', [])
        with transaction.atomic():
            job = ProductionJob.objects.create(**validated_data)
            for material in materials:
                job.materials.create(**material)
        return job

    def update(self, instance, validated_data):
        materials = validated_data.pop('materials', None)
        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if materials is not None:
                instance.materials.all().delete()
                for material in materials:
                    instance.materials.create(**material)
        return instance
