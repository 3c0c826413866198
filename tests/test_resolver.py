"""Tests for path resolution."""

from __future__ import annotations

import pytest

from remote_sftp._cancel import CancellationToken
from remote_sftp._errors import ChannelUnavailable, OperationCancelled, ProtocolError
from remote_sftp._path import CanonicalPath
from remote_sftp._resolver import resolve_path
from tests.fakes import ScriptedChannel


class TestFixedPoint:
    @pytest.mark.asyncio
    async def test_canonical_input_settles_in_one_request(self, channel: ScriptedChannel) -> None:
        result = await resolve_path(channel, "/home/user")
        assert result == CanonicalPath("/home/user")
        assert channel.args("realpath") == [("/home/user",)]

    @pytest.mark.asyncio
    async def test_two_step_symlink_chain(self, channel: ScriptedChannel) -> None:
        channel.realpath_script.extend([["/a"], ["/b"], ["/b"]])
        result = await resolve_path(channel, "x")
        assert str(result) == "/b"
        assert channel.args("realpath") == [("x",), ("/a",), ("/b",)]

    @pytest.mark.asyncio
    async def test_requests_equal_rewrites_plus_one(self, channel: ScriptedChannel) -> None:
        chain = [f"/step{i}" for i in range(1, 6)]
        channel.realpath_script.extend([[name] for name in chain])
        channel.realpath_script.append([chain[-1]])
        result = await resolve_path(channel, "start")
        assert str(result) == "/step5"
        assert channel.count("realpath") == len(chain) + 1

    @pytest.mark.asyncio
    async def test_only_first_candidate_is_used(self, channel: ScriptedChannel) -> None:
        channel.realpath_script.extend([["/first", "/second"], ["/first"]])
        assert str(await resolve_path(channel, "rel")) == "/first"
        assert channel.args("realpath")[1] == ("/first",)

    @pytest.mark.asyncio
    async def test_stable_value_returned_verbatim(self, channel: ScriptedChannel) -> None:
        channel.realpath_script.extend([["/data/"], ["/data/"]])
        resolved = await resolve_path(channel, "data")
        assert str(resolved) == "/data/"
        assert resolved.name == "data"


class TestFailures:
    @pytest.mark.asyncio
    async def test_channel_failure_propagates(self, channel: ScriptedChannel) -> None:
        channel.realpath_script.extend([["/a"], ChannelUnavailable("link down", channel="scripted")])
        with pytest.raises(ChannelUnavailable, match="link down"):
            await resolve_path(channel, "x")
        assert channel.count("realpath") == 2

    @pytest.mark.asyncio
    async def test_empty_answer_is_protocol_error(self, channel: ScriptedChannel) -> None:
        channel.realpath_script.append([])
        with pytest.raises(ProtocolError) as exc_info:
            await resolve_path(channel, "x")
        assert exc_info.value.path == "x"
        assert exc_info.value.channel == "scripted"

    @pytest.mark.asyncio
    async def test_relative_fixed_point_is_protocol_error(self, channel: ScriptedChannel) -> None:
        channel.realpath_script.extend([["rel"], ["rel"]])
        with pytest.raises(ProtocolError, match="absolute"):
            await resolve_path(channel, "rel")

    @pytest.mark.asyncio
    async def test_cancelled_token_issues_no_request(self, channel: ScriptedChannel) -> None:
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelled):
            await resolve_path(channel, "/x", token=token)
        assert channel.count("realpath") == 0
