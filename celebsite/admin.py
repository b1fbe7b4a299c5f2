from django.contrib import admin
from django.http import HttpResponse

from celebsite.models import Donor

class DonorAdmin(admin.ModelAdmin):
    list_display = ['email', 'name', 'compliance_tier_', 'state', 'id', 'created']
    search_fields = ['id', 'email', 'first_name', 'last_name', 'zip_code']
    readonly_fields = ['compliance_tier_', 'missing_fields_', 'extra_']
    exclude = ['extra']

    def compliance_tier_(self, obj):
        return obj.compliance_tier.value
    compliance_tier_.short_description = "Compliance tier"

    def missing_fields_(self, obj):
        from celebrations.tiers import missing_fields
        return ", ".join(missing_fields(obj)) or "(none)"
    missing_fields_.short_description = "Missing FEC fields"

    def extra_(self, obj):
        from celebrations.admin import yaml_display
        return yaml_display(obj.extra)
    extra_.short_description = "Extra"

    actions = ['geocode', 'export_tiers']
    def geocode(modeladmin, request, queryset):
        for donor in queryset.filter():
            try:
                donor.geocode()
            except (OSError, ValueError) as e:
                modeladmin.message_user(request, "%s: %s" % (donor, e))
    def export_tiers(modeladmin, request, queryset):
        # Dump each donor's email address and compliance tier as CSV.
        import csv
        response = HttpResponse(content_type="text/csv")
        w = csv.writer(response)
        w.writerow(["id", "email", "tier"])
        for donor in queryset.order_by('id'):
            w.writerow([donor.id, donor.email, donor.compliance_tier.value])
        return response
    export_tiers.short_description = "Export compliance tiers as CSV"

admin.site.register(Donor, DonorAdmin)
