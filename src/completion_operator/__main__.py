"""Allow ``python -m completion_operator``."""

from completion_operator.cli.main import app

app()
