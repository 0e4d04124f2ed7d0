"""Exception hierarchy for the automerge bot."""


class AutomergeError(Exception):
    """Base exception for automerge errors."""


class ConfigurationError(AutomergeError):
    """Raised when the repository configuration cannot be loaded or is invalid."""


class MalformedInputError(AutomergeError):
    """Raised when a single platform payload item cannot be parsed."""


class RepositoryProcessingError(AutomergeError):
    """Raised when one or more pull requests of a repository failed to process."""

    def __init__(self, repo: str, failed: list[int]):
        numbers = ", ".join(f"#{number}" for number in failed)
        super().__init__(f"Failed to process pull request(s) {numbers} in {repo}")
        self.repo = repo
        self.failed = failed
