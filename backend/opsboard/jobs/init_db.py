import argparse

from opsboard.core.db import engine, init_db


def main():
    p = argparse.ArgumentParser(description="Create missing opsboard tables")
    p.parse_args()

    init_db(engine)
    print({"database": engine.url.render_as_string(hide_password=True), "status": "ok"})


if __name__ == "__main__":
    main()
