"""File sessions — open, write, read and release remote files.

Demonstrates:
- Owning a FileSession with ``async with``
- Caller-driven release with ``with_file`` and a completion callback
- Handling failures delivered as OperationResult values
"""

from __future__ import annotations

import asyncio
import tempfile
from collections.abc import Callable

from remote_sftp import FileSession, NotFound, OpenFlags, OperationResult, SFTPClient
from remote_sftp.channels import LocalChannel


async def main(root: str) -> None:
    async with SFTPClient(LocalChannel(root)) as client:
        # Caller owns the session until it is closed
        session = await client.open_file("/notes.txt", OpenFlags.CREATE | OpenFlags.WRITE)
        assert session is not None
        async with session:
            await session.write(b"first line\n")
            await session.write(b"second line\n")

        # The body decides when the handle is released
        done = asyncio.Event()
        loop = asyncio.get_running_loop()

        def on_closed(result: OperationResult[None]) -> None:
            print(f"Session closed: ok={result.ok}")
            loop.call_soon_threadsafe(done.set)

        async def body(session: FileSession, release: Callable[[], None]) -> None:
            print(f"Read back: {await session.read_all()!r}")
            release()

        await client.with_file("/notes.txt", OpenFlags.READ, body=body, completion=on_closed)
        await done.wait()

        # Failures can be delivered instead of raised
        def on_removed(result: OperationResult[None]) -> None:
            if isinstance(result.error, NotFound):
                print(f"Nothing to remove at {result.error.path}")

        await client.remove_file("/missing.txt", completion=on_removed)
        await asyncio.sleep(0)


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(main(tmp))
