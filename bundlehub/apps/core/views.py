from django.db import connection
from django.db.utils import DatabaseError
from django.http import JsonResponse


def health(request):
    try:
        with connection.cursor() as c:
            c.execute('SELECT 1')
            c.fetchone()
    except DatabaseError:
        return JsonResponse({"status": "degraded", "database": "unreachable"}, status=503)
    return JsonResponse({"status": "ok"})
