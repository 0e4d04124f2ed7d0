"""Drives analysis and merging across all open PRs of the configured repositories."""

import asyncio
import logging

from .analyzer import Analyzer
from .client import GitHubAPIError
from .errors import RepositoryProcessingError
from .merge import MergeQueue, MergeResult
from .models import Actions, Config, PullRequest, RepoConfig
from .platform import Platform

logger = logging.getLogger(__name__)


class RepoProcessor:
    """Processes every open PR of a single repository."""

    def __init__(
        self,
        config: Config,
        repo_config: RepoConfig,
        platform: Platform,
        merge_queue: MergeQueue | None = None,
    ):
        self.config = config
        self.repo_config = repo_config
        self.platform = platform
        self.merge_queue = merge_queue or MergeQueue(platform, repo_config)

    async def process(self) -> None:
        """
        Analyze all open PRs concurrently.

        Every PR is processed even if another one fails; failures are logged
        per PR and reported together afterwards.

        Raises:
            RepositoryProcessingError: If any PR failed to process
        """
        prs = await self.platform.fetch_open_prs(self.repo_config.name)
        logger.info("Processing %d open PR(s) in %s", len(prs), self.repo_config.name)

        results = await asyncio.gather(
            *(self.process_pr(pr) for pr in prs), return_exceptions=True
        )

        failed: list[int] = []
        for pr, result in zip(prs, results):
            if isinstance(result, Exception):
                logger.error(
                    "Failed to process PR #%d in %s: %s",
                    pr.number,
                    self.repo_config.name,
                    result,
                )
                failed.append(pr.number)
            elif isinstance(result, BaseException):
                raise result
        if failed:
            raise RepositoryProcessingError(self.repo_config.name, failed)

    async def process_pr(self, pr: PullRequest) -> Actions:
        """Analyze a single PR and apply the resulting actions."""
        actions = await Analyzer(pr, self.repo_config, self.platform).required_actions()

        if self.config.dry_run:
            logger.info("dry-run PR #%d: %s", pr.number, actions)
        else:
            logger.info("applying to PR #%d: %s", pr.number, actions)
            await self.apply(actions, pr)
        return actions

    async def apply(self, actions: Actions, pr: PullRequest) -> MergeResult | None:
        """Apply the label diff and comments, then queue the merge if allowed."""
        repo = self.repo_config.name

        # Only remove the label(s) that are actually present
        for label in sorted(actions.remove_labels & pr.labels):
            logger.debug("Removing label '%s' from PR #%d", label, pr.number)
            try:
                await self.platform.remove_label(repo, pr.number, label)
            except GitHubAPIError as e:
                # Someone else removed it in the meantime
                if e.status_code != 404:
                    raise
                logger.debug("Error removing label '%s': %s", label, e)

        # Only add the label(s) that are not present yet
        to_add = sorted(actions.add_labels - pr.labels)
        if to_add:
            logger.debug("Adding labels %s to PR #%d", to_add, pr.number)
            await self.platform.add_labels(repo, pr.number, to_add)

        for body in actions.post_comment:
            await self.platform.post_comment(repo, pr.number, body)

        if not actions.merge:
            return None

        logger.info("Attempting to merge PR #%d", pr.number)
        return await self.merge_queue.run(pr)


async def process_all(config: Config, platform: Platform) -> None:
    """Process each configured repository in turn."""
    for repo_config in config.repos:
        await RepoProcessor(config, repo_config, platform).process()
