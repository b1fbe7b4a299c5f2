from django.contrib import admin, messages
from django.utils.html import escape as escape_html
from django.utils.safestring import mark_safe

from celebrations.cycles import is_within_current_cycle
from celebrations.models import Recipient, Celebration, CelebrationStatus, CelebrationStatusChange, TriggeredBy, StaleTransitionError, InvalidTransitionError

def yaml_display(data):
    import rtyaml
    return mark_safe("<pre style='font-family: sans-serif;'>" + escape_html(rtyaml.dump(data)) + "</pre>")

def no_delete_action(admin_class):
    class MyClass(admin_class):
        def get_actions(self, request):
            actions = super(MyClass, self).get_actions(request)
            if 'delete_selected' in actions:
                del actions['delete_selected']
            return actions
        def has_delete_permission(self, request, obj=None):
            return False
    return MyClass

class RecipientAdmin(admin.ModelAdmin):
    list_display = ['name', 'fec_id', 'office_sought', 'has_challenger', 'primary_date', 'general_date', 'id']
    list_filter = ['has_challenger', 'state']
    search_fields = ['id', 'fec_id', 'name', 'office_sought', 'ocd_id']

class CelebrationStatusChangeInline(admin.TabularInline):
    model = CelebrationStatusChange
    fields = ['created', 'previous_status', 'new_status', 'reason', 'triggered_by', 'compliance_tier_at_time']
    readonly_fields = fields
    extra = 0
    can_delete = False
    def has_add_permission(self, request, obj=None):
        return False

class CelebrationAdmin(admin.ModelAdmin):
    list_display = ['id', 'current_status', 'donated_by', 'donee', 'donation_amount', 'tip_amount', 'bill_reference', 'congressional_session', 'created', 'in_current_cycle']
    list_filter = ['current_status', 'congressional_session']
    raw_id_fields = ['donated_by', 'donee']
    readonly_fields = ['current_status', 'donation_amount', 'tip_amount', 'created', 'extra_'] # status only changes through the ledger
    exclude = ['extra']
    search_fields = ['id', 'bill_reference', 'donated_by__email', 'donee__name', 'donee__fec_id']
    inlines = [CelebrationStatusChangeInline]

    def in_current_cycle(self, obj):
        return is_within_current_cycle(obj.created)
    in_current_cycle.boolean = True
    in_current_cycle.short_description = "Current cycle"

    def extra_(self, obj):
        return yaml_display(obj.extra)
    extra_.short_description = "Extra"

    actions = ['pause', 'reactivate']
    def _change_status(modeladmin, request, queryset, new_status):
        changed = 0
        for c in queryset.filter():
            try:
                c.change_status(new_status, "Changed by %s." % request.user, triggered_by=TriggeredBy.Admin)
                changed += 1
            except (StaleTransitionError, InvalidTransitionError) as e:
                modeladmin.message_user(request, str(e), level=messages.WARNING)
        modeladmin.message_user(request, "%d Celebration(s) changed." % changed)
    def pause(modeladmin, request, queryset):
        modeladmin._change_status(request, queryset, CelebrationStatus.Paused)
    pause.short_description = "Active => Paused"
    def reactivate(modeladmin, request, queryset):
        modeladmin._change_status(request, queryset, CelebrationStatus.Active)
    reactivate.short_description = "Paused => Active"

class CelebrationStatusChangeAdmin(admin.ModelAdmin):
    list_display = ['id', 'celebration', 'previous_status', 'new_status', 'triggered_by', 'created']
    list_filter = ['new_status', 'triggered_by']
    readonly_fields = ['celebration', 'created', 'previous_status', 'new_status', 'reason', 'triggered_by', 'compliance_tier_at_time', 'metadata_']
    fields = readonly_fields
    search_fields = ['id', 'reason'] + ['celebration__'+f for f in CelebrationAdmin.search_fields]
    def metadata_(self, obj):
        return yaml_display(obj.metadata)
    metadata_.short_description = "Metadata"
    def has_add_permission(self, request):
        return False

admin.site.register(Recipient, RecipientAdmin)
admin.site.register(Celebration, no_delete_action(CelebrationAdmin))
admin.site.register(CelebrationStatusChange, no_delete_action(CelebrationStatusChangeAdmin))
