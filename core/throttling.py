from rest_framework.throttling import SimpleRateThrottle


class LoginRateThrottle(SimpleRateThrottle):
    """Limite les tentatives de login par IP (scope 'login' dans DEFAULT_THROTTLE_RATES)."""
    scope = "login"

    def get_cache_key(self, request, view):
        return f"throttle:{self.scope}:{self.get_ident(request)}"
