from django.conf import settings  # To access global project settings
from django.db import models


# ---------- Audit / Event log ----------
class AuditLog(
    models.Model
):  # Who did what to which business object, and when
    # Which user performed the action
    # (Nullable in case the action was automated
    # (e.g., celery reconciliation, management command))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    # Type of event being logged
    action = models.CharField(
        max_length=50
    )  # Common choices: post, void, transition, payment, receive
    # What kind of object was affected
    object_type = models.CharField(
        max_length=100
    )  # (e.g., "Order", "JournalEntry", "ProductionJob")
    # The primary key (or identifier) of the object
    object_id = models.CharField(max_length=100)
    # Store actual before/after details of what changed, in JSON format
    changes = models.JSONField(null=True, blank=True)
    # Timestamp when the event was logged
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        # Filter logs quickly
        indexes = [
            models.Index(fields=["object_type", "object_id"], name="erp_audit_object_idx"),
            models.Index(fields=["created_at"], name="erp_audit_created_idx"),
        ]

    # Show created_at, user, action, object_type, and object_id in debug logs
    def __str__(self):
        time = self.created_at
        usr = self.user
        action = self.action
        objType = self.object_type
        objId = self.object_id
        return f"[{time:%Y-%m-%d %H:%M}] {usr} {action} {objType}({objId})"
