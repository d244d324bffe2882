class ListResponseMixin:
    """Wraps a service's ``list`` result in the ListResponse envelope.

    ``list`` must take ``limit`` and ``offset`` as its last two positional
    arguments.
    """

    @classmethod
    def list_response(cls, db, *args, **kwargs) -> dict:
        items = cls.list(db, *args, **kwargs)
        if "limit" in kwargs:
            limit, offset = kwargs["limit"], kwargs.get("offset", 0)
        else:
            limit, offset = args[-2], args[-1]
        return {"items": items, "count": len(items), "limit": limit, "offset": offset}
