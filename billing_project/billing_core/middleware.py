from django.utils.deprecation import MiddlewareMixin

from .models import Company


class CurrentCompanyMiddleware(MiddlewareMixin):
    # Run on every request and
    # attach a .company attribute to the request, based on the logged-in user
    def process_request(self, request):
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            # Unauthenticated users never see a tenant
            request.company = None
            return

        companies = Company.objects.all() if user.is_superuser else Company.objects.filter(owner=user)

        # If user switched companies,
        # choice is stored in the session as "active_company_id"
        company_id = request.session.get("active_company_id")
        if company_id:
            # A tampered session id for someone else's company resolves to nothing
            try:
                request.company = companies.filter(pk=company_id).first()
            except (TypeError, ValueError):
                request.company = None
            return

        # Default company fallback: the user's oldest company
        request.company = companies.order_by("created_at", "id").first()
