"""Allow ``python -m fanpipe``.

The default collaborator commands rely on this entry point so that spawned
unloader, loader and multiplexer processes use the same interpreter as the
orchestrator.
"""

from fanpipe.cli import app

if __name__ == "__main__":
    app(prog_name="fanpipe")
