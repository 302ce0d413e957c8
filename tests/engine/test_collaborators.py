"""Tests for collaborator argv and environment."""

from pathlib import Path

from fanpipe.contracts.enums import WireFormat
from fanpipe.engine.collaborators import (
    DATABASE_URL_ENV,
    collaborator_env,
    loader_argv,
    multiplexer_argv,
    unloader_argv,
)


class TestArgv:
    def test_unloader(self) -> None:
        argv = unloader_argv(["unloader"], "SELECT -1", WireFormat.CSV, [Path("/w/unload-1"), Path("/w/unload-2")])

        assert argv == ["unloader", "--query=SELECT -1", "--format=csv", "--", "/w/unload-1", "/w/unload-2"]

    def test_loader(self) -> None:
        argv = loader_argv(["py", "-m", "fanpipe", "load"], "public.events", WireFormat.TSV, [Path("/w/load-1")])

        assert argv == ["py", "-m", "fanpipe", "load", "--table=public.events", "--format=tsv", "--", "/w/load-1"]

    def test_multiplexer(self) -> None:
        argv = multiplexer_argv(["mux"], WireFormat.JSONL, [Path("/w/a")], [Path("/w/b"), Path("/w/c")])

        assert argv == ["mux", "--format=jsonl", "--input=/w/a", "--output=/w/b", "--output=/w/c"]


class TestEnvironment:
    def test_database_url_travels_in_environment(self) -> None:
        env = collaborator_env("sqlite:///x.db", base={"PATH": "/bin"})
        assert env == {"PATH": "/bin", DATABASE_URL_ENV: "sqlite:///x.db"}

    def test_no_url(self) -> None:
        assert collaborator_env(None, base={"PATH": "/bin"}) == {"PATH": "/bin"}

    def test_base_not_mutated(self) -> None:
        base = {"PATH": "/bin"}
        collaborator_env("sqlite://", base=base)
        assert base == {"PATH": "/bin"}
