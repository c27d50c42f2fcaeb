from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import FastAPI, HTTPException, Query, Response

from quotesync.const import DEFAULT_REMOTE_CATEGORY
from quotesync.errors import FormatError
from quotesync.record import LogicalClock, Origin, Record


@dataclass
class RemoteQuote:
    id: str
    text: str
    category: str
    updated_at: int

    def to_post(self) -> dict[str, Any]:
        return {
            "id": int(self.id) if self.id.isdigit() else self.id,
            "title": self.text,
            "category": self.category,
            "updatedAt": self.updated_at,
        }


class QuoteCloudState:
    """In-memory reference implementation of the remote quote source."""

    def __init__(self) -> None:
        self.quotes: dict[str, RemoteQuote] = {}
        self.clock = LogicalClock()
        self._next_id = 1

    # ------------------------------------------------------------------
    def page(self, limit: int | None) -> list[dict[str, Any]]:
        items = list(self.quotes.values())
        if limit is not None:
            items = items[:limit]
        return [quote.to_post() for quote in items]

    def upsert(self, data: dict[str, Any], *, quote_id: str | None = None) -> RemoteQuote:
        payload = {
            "id": quote_id if quote_id is not None else data.get("id"),
            "text": data.get("text", data.get("title")),
            "category": data.get("category") or DEFAULT_REMOTE_CATEGORY,
        }
        record = Record.from_dict(payload, origin=Origin.LOCAL)
        record_id = record.id or self._allocate_id()
        quote = RemoteQuote(
            id=record_id,
            text=record.text,
            category=record.category,
            updated_at=self.clock.tick(),
        )
        self.quotes[record_id] = quote
        return quote

    def _allocate_id(self) -> str:
        while str(self._next_id) in self.quotes:
            self._next_id += 1
        allocated = str(self._next_id)
        self._next_id += 1
        return allocated


def create_app(state: QuoteCloudState | None = None) -> FastAPI:
    app = FastAPI()
    state = state or QuoteCloudState()
    app.state.state = state

    @app.get("/posts")
    async def handle_posts(limit: Annotated[int | None, Query(alias="_limit", ge=1)] = None) -> list[dict[str, Any]]:
        return state.page(limit)

    @app.post("/posts", status_code=201)
    async def handle_posts_post(data: dict[str, Any]) -> dict[str, Any]:
        try:
            quote = state.upsert(data)
        except FormatError as err:
            raise HTTPException(status_code=400, detail=str(err)) from err
        return quote.to_post()

    @app.put("/posts/{quote_id}")
    async def handle_posts_put(quote_id: str, data: dict[str, Any]) -> dict[str, Any]:
        try:
            quote = state.upsert(data, quote_id=quote_id)
        except FormatError as err:
            raise HTTPException(status_code=400, detail=str(err)) from err
        return quote.to_post()

    @app.delete("/posts/{quote_id}", status_code=204)
    async def handle_posts_delete(quote_id: str) -> Response:
        if state.quotes.pop(quote_id, None) is None:
            raise HTTPException(status_code=404, detail="quote not found")
        return Response(status_code=204)

    return app


def main() -> None:
    import uvicorn

    uvicorn.run(create_app(), host="127.0.0.1", port=8080)


if __name__ == "__main__":
    main()
