"""Assemble the pipeline components from configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from promptgate.config import DEFAULT_CONFIG, PromptgateConfig, resolve_db_path
from promptgate.drafts import DraftWorkflow
from promptgate.evaluation import (
    EvaluationOrchestrator,
    IdeaSuggester,
    PlaybackEvaluator,
    ReferenceDatasetManager,
)
from promptgate.inference import InferenceClient, get_client
from promptgate.prompts import TemplateStore
from promptgate.store import PipelineRepository

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    """Every component of one configured pipeline, sharing one repository."""

    config: PromptgateConfig
    repo: PipelineRepository
    client: InferenceClient
    templates: TemplateStore
    datasets: ReferenceDatasetManager
    evaluator: PlaybackEvaluator
    orchestrator: EvaluationOrchestrator
    drafts: DraftWorkflow


def build_pipeline(
    config: PromptgateConfig,
    client: InferenceClient | None = None,
    repo: PipelineRepository | None = None,
) -> Pipeline:
    """Wire the pipeline for `config`.

    `client` and `repo` default to the configured backend and database.
    """
    inference = config.inference
    if repo is None:
        repo = PipelineRepository(resolve_db_path(config))
    if client is None:
        client = get_client(inference)

    templates = TemplateStore(repo)
    datasets = ReferenceDatasetManager(repo)
    evaluator = PlaybackEvaluator(client, inference.model, inference.timeout)

    suggester: IdeaSuggester | None = None
    suggest_ideas = config.suggest_ideas
    if suggest_ideas is None:
        suggest_ideas = bool(DEFAULT_CONFIG.suggest_ideas)
    if suggest_ideas:
        suggester = IdeaSuggester(
            client, inference.model_chain, templates, inference.timeout
        )

    orchestrator = EvaluationOrchestrator(
        repo,
        templates,
        evaluator,
        datasets,
        playback_limit=config.playback_limit,
        suggester=suggester,
    )
    drafts = DraftWorkflow(
        repo, client, inference.model_chain, templates, inference.timeout
    )
    logger.debug(
        "Pipeline ready: backend=%s model=%s db=%s",
        inference.backend,
        inference.model,
        repo.db_path,
    )
    return Pipeline(
        config=config,
        repo=repo,
        client=client,
        templates=templates,
        datasets=datasets,
        evaluator=evaluator,
        orchestrator=orchestrator,
        drafts=drafts,
    )
