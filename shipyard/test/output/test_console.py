"""Tests for shipyard.output.console module."""

from __future__ import annotations

import threading

from shipyard.output.console import ConsoleProtocol, MockConsole, RichConsole, Style


class TestStyle:
    def test_str_conversion(self) -> None:
        assert str(Style.SUCCESS) == "success"
        assert str(Style.HEADER) == "header"


class TestMockConsole:
    def test_print_captures_message(self) -> None:
        console = MockConsole()
        console.print("hello")
        assert console.outputs[0].message == "hello"
        assert console.outputs[0].style == Style.DEFAULT

    def test_level_prefixes(self) -> None:
        console = MockConsole()
        console.success("done")
        console.error("bad")
        console.warning("careful")
        console.info("fyi")
        assert console.messages == ["OK done", "error: bad", "warning: careful", "info: fyi"]
        assert console.has_error()
        assert console.has_warning()
        assert console.count(Style.INFO) == 1

    def test_find(self) -> None:
        console = MockConsole()
        console.header("Build")
        console.print("build x86_64: running")
        assert [o.message for o in console.find("x86_64")] == ["build x86_64: running"]

    def test_concurrent_writers_lose_nothing(self) -> None:
        console = MockConsole()

        def writer(n: int) -> None:
            for i in range(200):
                console.print(f"{n}:{i}")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(console.outputs) == 6 * 200


class TestRichConsole:
    def test_markup_in_messages_is_escaped(self, capsys) -> None:
        console: ConsoleProtocol = RichConsole()
        console.info("chore(release): [skip ci] bump")
        out = capsys.readouterr().out
        assert "[skip ci]" in out
