import logging

from django.db.models.signals import post_save
from django.dispatch import receiver
from django.contrib.auth.models import User
from .models import UserProfile

logger = logging.getLogger(__name__)


@receiver(post_save, sender=User)
def create_user_profile(sender, instance, created, **kwargs):
    """
    Every user gets a profile. Superusers start as admin, everyone else
    as sales until an administrator changes the role.
    """
    role = 'admin' if instance.is_superuser else 'sales'
    profile, profile_created = UserProfile.objects.get_or_create(
        user=instance,
        defaults={'role': role, 'is_active': True}
    )
    if profile_created:
        logger.info("Created %s profile for %s", profile.role, instance.username)
