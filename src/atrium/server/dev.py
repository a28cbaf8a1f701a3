"""Development server.

Starts a pounce ASGI server with the live Atrium app object. pounce is
installed with the ``server`` extra.
"""


def run_dev_server(
    app: object,
    host: str,
    port: int,
    *,
    reload: bool = False,
    reload_dirs: tuple[str, ...] = (),
) -> None:
    """Serve *app* with a single pounce worker.

    ``reload_dirs`` are watched alongside the working directory when
    ``reload`` is on; pass the content library so edits are picked up.
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(
        host=host,
        port=port,
        workers=1,
        reload=reload,
        reload_include=(".md", ".html"),
        reload_dirs=reload_dirs,
    )
    Server(config, app).run()
