def audit_log(user, org, action, target=None, payload=None, request=None):
    """
    Append one AuditLog row. Call it inside the caller's transaction.atomic()
    block so the audit record commits or rolls back with the change it describes.
    """
    from .models import AuditLog
    payload = payload or {}
    target_app = target.__class__._meta.app_label if target else ""
    target_model = target.__class__._meta.model_name if target else ""
    target_id = str(target.pk) if target else ""
    ip = request.META.get("REMOTE_ADDR") if request else None
    ua = request.META.get("HTTP_USER_AGENT", "") if request else ""
    actor = user if (user is not None and getattr(user, "is_authenticated", False)) else None
    return AuditLog.objects.create(
        organization=org, actor=actor, action=action,
        target_app=target_app, target_model=target_model, target_id=target_id,
        payload=payload, ip=ip, user_agent=ua
    )


def audit_trail(target):
    """Audit rows for one object, oldest first."""
    from .models import AuditLog
    return AuditLog.objects.filter(
        target_app=target.__class__._meta.app_label,
        target_model=target.__class__._meta.model_name,
        target_id=str(target.pk),
    ).order_by("created_at", "id")
