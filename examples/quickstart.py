"""Quickstart — list, inspect and tidy up a directory tree with remote-sftp.

Demonstrates:
- Wrapping a channel in an SFTPClient
- Resolving a path and listing a directory
- Reading attributes, moving and removing items
"""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path

from remote_sftp import SFTPClient
from remote_sftp.channels import LocalChannel


async def main(root: str) -> None:
    (Path(root) / "inbox").mkdir()
    (Path(root) / "inbox" / "hello.txt").write_bytes(b"Hello, world!")

    async with SFTPClient(LocalChannel(root)) as client:
        home = await client.resolve_path("inbox/../inbox")
        print(f"Resolved: {home}")

        for entry in await client.list_directory(str(home)) or []:
            print(f"  {entry.filename:<12} {entry.attributes.size} bytes")

        info = await client.get_attributes("/inbox/hello.txt")
        print(f"Modified: {info.modified_at if info else None}")

        await client.create_directory("/archive")
        await client.move_item("/inbox/hello.txt", "/archive/hello.txt")
        await client.remove_directory("/inbox")
        print(f"Archive: {[e.filename for e in await client.list_directory('/archive') or []]}")


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(main(tmp))
    print("Done! Temp directory cleaned up automatically.")
