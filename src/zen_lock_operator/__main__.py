"""Run the operator with ``python -m zen_lock_operator``."""

import kopf

from . import main  # noqa: F401


def run() -> None:
    kopf.run(clusterwide=True)


if __name__ == "__main__":
    run()
