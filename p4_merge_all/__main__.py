"""Allow ``python -m p4_merge_all``."""

from p4_merge_all.main import cli

if __name__ == "__main__":
    cli()
