import argparse
import asyncio

from records_client.api import RecordsApiClient
from records_client.config import get_client_settings
from records_client.log import setup_logging
from records_client.view import RecordsView

COLUMNS = ("id", "name", "email", "message", "createdAt")


def render(view: RecordsView) -> str:
    lines = [" | ".join(COLUMNS)]
    if view.records:
        for record in view.records:
            lines.append(" | ".join(str(record.get(column, "")) for column in COLUMNS))
    elif view.search:
        lines.append("No records match the search")
    else:
        lines.append("No records yet")
    lines.append(f"Page {view.page} of {max(view.total_pages, 1)} ({view.total} records)")
    if view.notice:
        lines.append(view.notice)
    return "\n".join(lines)


async def watch(search: str, page: int) -> None:
    settings = get_client_settings()
    async with RecordsApiClient(settings.API_URL, timeout=settings.REQUEST_TIMEOUT) as api:
        view = RecordsView(api, page_size=settings.PAGE_SIZE, refresh_interval=settings.REFRESH_INTERVAL)
        view.search = search
        view.page = page
        await view.start()
        try:
            while True:
                print(render(view), flush=True)
                await asyncio.sleep(settings.REFRESH_INTERVAL)
        finally:
            await view.stop()


def main():
    parser = argparse.ArgumentParser(description="Watch the records listing")
    parser.add_argument("--search", default="", help="Case-insensitive filter")
    parser.add_argument("--page", type=int, default=1)
    args = parser.parse_args()

    settings = get_client_settings()
    setup_logging(settings.LOG_LEVEL)
    try:
        asyncio.run(watch(args.search, args.page))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
