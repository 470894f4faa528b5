"""Function Registry error codes extending the shared code set."""

CODE_NOT_STAGED = "CODE_NOT_STAGED"
CODE_NOT_PROVIDED = "CODE_NOT_PROVIDED"
CODE_TOO_LARGE = "CODE_TOO_LARGE"
