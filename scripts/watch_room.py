#!/usr/bin/env python3
"""
Follow a room from the terminal using the adaptive polling engine.

    python scripts/watch_room.py --base-url http://localhost:8000 --session <id>
    python scripts/watch_room.py --base-url http://localhost:8000 --create p1 --ask "Is the man alone?"
"""
import argparse
import asyncio
import logging
import os
import sys

# Add repo root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from soup_engines.sync.engine import PollingSyncEngine, SyncFailed
from soup_engines.sync.progress import extract_progress, is_progress_query
from soup_engines.sync.transport import SessionApiClient


async def run(args: argparse.Namespace) -> int:
    async with SessionApiClient(base_url=args.base_url) as api:
        session_id = args.session
        if not session_id:
            view = await api.create_session(args.create)
            session_id = view.sessionId
            print(f"Created room {session_id} ({view.soup.get('title')})")
            print(view.soup.get("opening"))

        progress = None
        if args.ask:
            reply = await api.ask(session_id, args.ask)
            print(f"> {args.ask}\n{reply.answer}")
            progress = extract_progress(reply.answer, is_progress_query(args.ask), progress)
            if progress is not None:
                print(f"Progress: {progress}%")

        done = asyncio.Event()

        def on_update(view) -> None:
            print(f"[sync] {len(view.history)} turns")

        def on_new_turns(view, added: int) -> None:
            for turn in view.history[-added:]:
                print(f"{turn.role.value}: {turn.content}")

        failed = []

        def on_error(exc: BaseException) -> None:
            print(f"[sync] {exc}", file=sys.stderr)
            if isinstance(exc, SyncFailed):
                failed.append(exc)
                done.set()

        engine = PollingSyncEngine(
            api.fetch_session,
            session_id=session_id,
            on_update=on_update,
            on_new_turns=on_new_turns,
            on_error=on_error,
        )
        engine.start()
        try:
            await asyncio.wait_for(done.wait(), timeout=args.duration)
        except asyncio.TimeoutError:
            pass
        finally:
            engine.stop()
        return 1 if failed else 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Watch a shared riddle room")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--session", help="existing room id")
    parser.add_argument("--create", metavar="PUZZLE_ID", help="create a room for this puzzle")
    parser.add_argument("--ask", help="ask one question before watching")
    parser.add_argument("--duration", type=float, default=60.0, help="seconds to keep polling")
    args = parser.parse_args()
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING"))
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
