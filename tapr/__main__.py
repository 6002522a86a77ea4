"""``python -m tapr`` behaves exactly like the ``tapr`` console script."""

from .cli import entrypoint


if __name__ == "__main__":
    entrypoint()
