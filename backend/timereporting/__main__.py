from __future__ import annotations

import argparse

import uvicorn

from .config import settings


def seed() -> None:
    from . import models
    from .database import db_session, engine
    from .seed import seed_demo_configuration

    models.Base.metadata.create_all(bind=engine)
    with db_session() as session:
        seed_demo_configuration(session)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="timereporting")
    parser.add_argument("--seed", action="store_true", help="load the demo project configuration and exit")
    args = parser.parse_args(argv)
    if args.seed:
        seed()
        return
    uvicorn.run("timereporting.main:app", host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    main()
