"""FastMCP server for GitHub PR automerge."""

from typing import Any, Protocol

from fastmcp import Context, FastMCP

from pr_automerge.analyzer import Analyzer
from pr_automerge.client import GitHubAPIError, GitHubClient
from pr_automerge.config import Settings, load_config
from pr_automerge.errors import ConfigurationError, RepositoryProcessingError
from pr_automerge.logs import configure_logging
from pr_automerge.parser import parse_pr_reference
from pr_automerge.processor import RepoProcessor

mcp = FastMCP("PR Automerge")


class ProgressReporter(Protocol):
    """Protocol for progress reporting."""

    async def set_total(self, total: int) -> None: ...
    async def set_message(self, message: str) -> None: ...
    async def increment(self, amount: int = 1) -> None: ...


class ContextProgress:
    """Reports progress through an MCP request context."""

    def __init__(self, ctx: Context):
        self.ctx = ctx
        self.total: int | None = None
        self.current = 0

    async def set_total(self, total: int) -> None:
        self.total = total

    async def set_message(self, message: str) -> None:
        await self.ctx.info(message)

    async def increment(self, amount: int = 1) -> None:
        self.current += amount
        await self.ctx.report_progress(self.current, self.total)


async def triage_pr_impl(
    pr_ref: str,
    dry_run: bool = True,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """
    Analyze a single PR and optionally apply the resulting actions.

    Args:
        pr_ref: GitHub PR URL or ``owner/repo#number``
        dry_run: Only report the actions instead of applying them
        settings: Environment settings (default: loaded from the environment)

    Returns:
        The computed actions, and the merge outcome when they were applied.
    """
    try:
        ref = parse_pr_reference(pr_ref)
    except ValueError as e:
        return {"error": str(e), "success": False}

    settings = settings or Settings()
    try:
        config = load_config(settings.automerge_config)
    except ConfigurationError as e:
        return {"error": str(e), "success": False, "reason": "configuration"}

    repo_config = config.repo(ref.repo)
    # GitHub owner names are case-insensitive
    if ref.owner.lower() != config.owner.lower() or repo_config is None:
        return {
            "error": f"Repository {ref.owner}/{ref.repo} is not configured",
            "success": False,
            "reason": "configuration",
        }

    async with GitHubClient(config.owner, token=settings.token) as client:
        try:
            pr = await client.fetch_pr(ref.repo, ref.number)
            actions = await Analyzer(pr, repo_config, client).required_actions()
            result: dict[str, Any] = {
                "success": True,
                "pr": str(ref),
                "actions": actions.model_dump(mode="json"),
                "applied": False,
            }
            if dry_run or config.dry_run:
                return result

            merge = await RepoProcessor(config, repo_config, client).apply(actions, pr)
            result["applied"] = True
            result["merge"] = merge.model_dump(mode="json") if merge else None
            return result
        except GitHubAPIError as e:
            return {
                "success": False,
                "reason": "api_error",
                "error": str(e),
                "status_code": e.status_code,
            }


async def process_repositories_impl(
    progress: ProgressReporter,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """
    Process every open PR of every configured repository.

    A failing repository does not stop the others; its error is reported in
    the result instead.
    """
    settings = settings or Settings()
    try:
        config = load_config(settings.automerge_config)
    except ConfigurationError as e:
        return {"error": str(e), "success": False, "reason": "configuration"}

    await progress.set_total(len(config.repos))
    repositories: dict[str, str] = {}

    async with GitHubClient(config.owner, token=settings.token) as client:
        await progress.set_message(
            "Connected (authenticated)"
            if client.is_authenticated
            else "Connected (unauthenticated)"
        )
        for repo_config in config.repos:
            await progress.set_message(f"Processing {config.owner}/{repo_config.name}")
            try:
                await RepoProcessor(config, repo_config, client).process()
                repositories[repo_config.name] = "ok"
            except (RepositoryProcessingError, GitHubAPIError) as e:
                repositories[repo_config.name] = str(e)
            await progress.increment()

    return {
        "success": all(status == "ok" for status in repositories.values()),
        "dry_run": config.dry_run,
        "repositories": repositories,
    }


@mcp.tool
async def triage_pr(pr_url: str, dry_run: bool = True) -> dict[str, Any]:  # pragma: no cover
    """
    Decide which labels a PR needs and whether it can be merged.

    Args:
        pr_url: GitHub PR URL (e.g., https://github.com/owner/repo/pull/123)
            or ``owner/repo#123``
        dry_run: Only report the actions instead of applying them (default: True)

    Returns:
        The label, comment and merge actions, plus the merge outcome if applied.
    """
    return await triage_pr_impl(pr_ref=pr_url, dry_run=dry_run)


@mcp.tool
async def process_repositories(ctx: Context) -> dict[str, Any]:  # pragma: no cover
    """
    Triage and automerge the open PRs of every configured repository.

    Returns:
        Per-repository status ("ok" or the error message).
    """
    return await process_repositories_impl(progress=ContextProgress(ctx))


if __name__ == "__main__":
    configure_logging(Settings().log_level)
    mcp.run()
