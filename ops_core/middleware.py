# ops_core/middleware.py

from django.utils.deprecation import MiddlewareMixin
from django.contrib.auth.models import AnonymousUser

from .signals import set_current_user


class CurrentUserMiddleware(MiddlewareMixin):
    """
    Makes request.user available to the audit signals.

    Runs after AuthenticationMiddleware. JWT-authenticated API calls only
    resolve their user inside the DRF view, so views also call
    set_current_user() through ActorMixin.
    """

    def process_request(self, request):
        user = getattr(request, "user", None)

        if user is None or isinstance(user, AnonymousUser):
            set_current_user(None)
        else:
            set_current_user(user)

        return None

    def process_response(self, request, response):
        """
        Clear user after request completes.
        """
        set_current_user(None)
        return response
