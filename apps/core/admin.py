from django.contrib import admin
from django.contrib import messages

from apps.core.models import SessionToken


@admin.register(SessionToken)
class SessionTokenAdmin(admin.ModelAdmin):
    list_display = ('username', 'provider', 'created_at', 'short_key', 'expired')
    list_filter = ('provider',)
    search_fields = ('username',)
    readonly_fields = ('key', 'username', 'provider', 'created_at')
    actions = ('revoke_tokens', 'purge_expired')

    def has_add_permission(self, request):
        return False

    def short_key(self, obj: SessionToken) -> str:
        return f"...{obj.key[-6:]}"

    @admin.display(boolean=True)
    def expired(self, obj: SessionToken) -> bool:
        return obj.is_expired()

    @admin.action(description="🔴 Revoke selected tokens")
    def revoke_tokens(self, request, queryset):
        deleted_count, _ = queryset.delete()
        self.message_user(request, f"Revoked {deleted_count} tokens.", level=messages.SUCCESS)

    @admin.action(description="♻️ Purge expired tokens")
    def purge_expired(self, request, queryset):
        expired_ids = [token.id for token in SessionToken.objects.all() if token.is_expired()]
        deleted_count, _ = SessionToken.objects.filter(id__in=expired_ids).delete()
        self.message_user(request, f"Purged {deleted_count} expired tokens.", level=messages.SUCCESS)
