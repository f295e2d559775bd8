"""Entry point for `python -m gate_cli` and the `schemagate` console script."""

from __future__ import annotations

from gate_cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
