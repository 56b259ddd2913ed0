from pydantic import BaseModel


class ScrollResult(BaseModel):
    """One scroll page, or all pages collected by do_scroll_all().

    Attributes:
        result:           Point dicts ({"id", "payload", "vector"?}).
        status:           Backend status string (e.g. "ok").
        time:             Backend execution time in seconds.
        next_page_offset: Cursor for the next page; None on the last page and
                          on results returned by do_scroll_all(). Qdrant uses
                          integer or UUID point ids as cursors.
    """

    result: list[dict]
    status: str = "ok"
    time: float = 0
    next_page_offset: str | int | None = None
