from django.http import JsonResponse

from .authorization import can_moderate, get_active_session, get_bearer_token


class ModerationAccessMiddleware:
    PROTECTED_PREFIX = '/moderation/'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        path = request.path
        if not path.startswith(self.PROTECTED_PREFIX) or request.method == 'OPTIONS':
            return self.get_response(request)

        if get_bearer_token(request) is None:
            return JsonResponse({'detail': 'Authentication credentials were not provided.'}, status=401)

        session = get_active_session(request)
        if session is None:
            return JsonResponse({'detail': 'Token is invalid or expired.'}, status=401)
        if not can_moderate(session.user):
            return JsonResponse({'detail': 'Moderator access required.'}, status=403)

        request.moderator = session.user
        return self.get_response(request)
