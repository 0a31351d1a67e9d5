"""Allow ``python -m ragkit.cli`` to run the eval CLI."""

from ragkit.cli.eval import main

main()
