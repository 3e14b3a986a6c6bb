import asyncio
import logging

from widget_repo import ConflictError, RepoConfig, Widget, sqlite_repo_factory


async def main():
    config = RepoConfig.from_env()
    async with sqlite_repo_factory(**config.model_dump()) as repo:
        widget = await repo.create(Widget(value="a"))
        print(f"created:  version={widget.version} value={widget.value!r}")

        stale = widget.model_copy()
        widget = await repo.update(widget.model_copy(update={"value": "b"}))
        print(f"updated:  version={widget.version} value={widget.value!r}")

        try:
            await repo.update(stale.model_copy(update={"value": "c"}))
        except ConflictError as e:
            print(f"rejected: {e}")

        widget = await repo.find(widget.id)
        print(f"view:     version={widget.version} value={widget.value!r}")
        print(f"events:   {await repo.event_values(widget.id)!r}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
