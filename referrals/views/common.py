from rest_framework.response import Response


def paginate(qs, page=None, page_size=None):
    """Slice ``qs`` the way the list endpoints expect; returns (rows, pagination)."""
    total = qs.count()
    if page_size:
        page = page or 1
        start = (page - 1) * page_size
        qs = qs[start:start + page_size]
    return list(qs), {'total': total, 'page': page or 1, 'pageSize': page_size or total}


def ok(data=None, status=200, **extra):
    payload = {'ok': True, 'data': data}
    payload.update(extra)
    return Response(payload, status=status)
