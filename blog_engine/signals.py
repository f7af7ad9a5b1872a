"""
Signal handlers keeping comment reply lists consistent.

Comments can disappear without going through ``Comment.delete_thread``:
a user account deleted with its comments, a post deleted with its
thread, or a bulk delete from the admin. Each removed reply is taken out
of its surviving parent's ``reply_ids``.
"""
from django.db import transaction
from django.db.models.signals import post_delete
from django.dispatch import receiver

from .models import Comment


@receiver(post_delete, sender=Comment)
def detach_deleted_reply(sender, instance, **kwargs):
    if instance.parent_id is None:
        return
    with transaction.atomic():
        parent = Comment.objects.select_for_update().filter(pk=instance.parent_id).first()
        if parent is None or instance.pk not in parent.reply_ids:
            return
        parent.reply_ids = [pk for pk in parent.reply_ids if pk != instance.pk]
        parent.save(update_fields=["reply_ids", "updated_at"])
