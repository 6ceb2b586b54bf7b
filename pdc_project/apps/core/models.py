"""
Core models and mixins used across all apps.
"""
from django.db import models
from django.conf import settings


class TimeStampedModel(models.Model):
    """
    Abstract base model with created_at and updated_at fields.
    """
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class UserTrackingModel(models.Model):
    """
    Abstract base model with created_by and updated_by fields.
    """
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='%(app_label)s_%(class)s_created'
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='%(app_label)s_%(class)s_updated'
    )

    class Meta:
        abstract = True


class ActiveModel(models.Model):
    """
    Abstract base model with is_active field.
    """
    is_active = models.BooleanField(default=True)

    class Meta:
        abstract = True


class BaseModel(TimeStampedModel, UserTrackingModel, ActiveModel):
    """
    Base model combining all common fields.
    Every model in the project should inherit from this.

    Fields:
    - created_at
    - updated_at
    - created_by
    - updated_by
    - is_active
    """

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        # Get the current user from thread local storage
        from apps.core.middleware import get_current_user
        user = get_current_user()

        if not self.pk:
            # New record
            if user and user.is_authenticated and not self.created_by_id:
                self.created_by = user

        if user and user.is_authenticated:
            self.updated_by = user

        super().save(*args, **kwargs)


class AuditLog(models.Model):
    """
    System audit log for tracking changes to business records.
    Rows are written by apps.core.audit and never edited.
    """
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('transition', 'Status Transition'),
        ('link', 'Link'),
        ('export', 'Export'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    model = models.CharField(max_length=100)
    record_id = models.CharField(max_length=50, blank=True)
    changes = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    class Meta:
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.user or 'system'} - {self.action} - {self.model}"
