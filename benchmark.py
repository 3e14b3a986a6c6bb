import argparse
import asyncio
import os
import random
import string
import tempfile
import time

from widget_repo import ConflictError, Widget, sqlite_repo_factory


async def modify_widget(repo, widget_id: str, attempts: int) -> int:
    """Read-modify-write loop. Returns how many of the attempts were accepted."""
    accepted = 0
    for _ in range(attempts):
        await asyncio.sleep(0.01)
        widget = await repo.find(widget_id)
        widget.value = random.choice(string.ascii_uppercase)
        try:
            await repo.update(widget)
            accepted += 1
        except ConflictError:
            pass
    return accepted


async def run_benchmark(db_path: str, writers: int, attempts: int, pool_size: int):
    async with sqlite_repo_factory(db_path, pool_size=pool_size) as repo:
        widget = await repo.create(Widget(value="a"))

        start_time = time.perf_counter()
        results = await asyncio.gather(
            *(modify_widget(repo, widget.id, attempts) for _ in range(writers))
        )
        duration = time.perf_counter() - start_time

        widget = await repo.find(widget.id)
        event_values = await repo.event_values(widget.id)
        accepted = sum(results)

        print(f"{writers} writers x {attempts} attempts in {duration:.2f} seconds")
        print(f"accepted updates: {accepted}, conflicts: {writers * attempts - accepted}")
        print(f"widget version:   {widget.version}")
        print(f"widget value:     {widget.value}")
        print(f"event values:     {event_values}")
        if widget.value != event_values or widget.version != accepted + 1:
            raise SystemExit("view and event log disagree")


def main():
    parser = argparse.ArgumentParser(description="Concurrent read-modify-write writers against one widget.")
    parser.add_argument("--writers", type=int, default=10)
    parser.add_argument("--attempts", type=int, default=10)
    parser.add_argument("--pool-size", type=int, default=10)
    parser.add_argument("--db-path", help="SQLite file to use; a temporary file by default")
    args = parser.parse_args()

    if args.db_path:
        asyncio.run(run_benchmark(args.db_path, args.writers, args.attempts, args.pool_size))
        return
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = os.path.join(tmpdir, "bench.db")
        asyncio.run(run_benchmark(db_path, args.writers, args.attempts, args.pool_size))


if __name__ == "__main__":
    main()
