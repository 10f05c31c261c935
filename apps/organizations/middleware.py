import logging
import uuid
from django.utils.deprecation import MiddlewareMixin
from django.core.exceptions import PermissionDenied

logger = logging.getLogger(__name__)


class TenantMiddleware(MiddlewareMixin):
    """
    Sets the current organization on the request.
    Enforces strict tenant isolation.
    Authorization:
    - Normal Users: Bound to the user's org_id (session or JWT cookie)
    - Super Admins: Can switch via X-Organization-ID header
    """

    def process_request(self, request):
        from apps.identity.decorators import get_current_user

        request.org_id = None

        user = get_current_user(request)
        if user is None:
            return

        # 1. Super Admin Context Switch
        if user.is_superuser:
            header_org = request.headers.get('X-Organization-ID')
            if header_org:
                try:
                    request.org_id = uuid.UUID(header_org)
                except ValueError:
                    logger.warning(f"Invalid X-Organization-ID header: {header_org}")
                    request.org_id = user.org_id
            else:
                request.org_id = user.org_id
            return

        # 2. Regular User Enforced Context
        request.org_id = user.org_id

    def process_view(self, request, view_func, view_args, view_kwargs):
        """
        Verify that URL parameters don't contradict the user's Org ID.
        If a URL has `org_id`, it MUST match.
        """
        url_org_id = view_kwargs.get('org_id')
        if not url_org_id or request.org_id is None:
            return None

        if str(url_org_id) != str(request.org_id):
            logger.warning(f"Security Alert: request for Org {url_org_id} from Org {request.org_id}")
            raise PermissionDenied("You do not have access to this organization.")

        return None
