"""Command-line interface for agent-tuner."""

import argparse
import asyncio
import json
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")
    os.environ["PYTHONIOENCODING"] = "utf-8"

import yaml
from loguru import logger

from .errors import ConfigurationError, TunerError
from .models import PROFILE_PRESETS, SUPPORTED_PROFILES

AGENT_TUNER_YAML = "agent_tuner.yaml"
DEFAULT_PROFILE = "balanced"
JUDGE_PROMPT_ID = "system_llm_judge_prompt"
REQUIRED_CONFIG_FIELDS = ("dataset", "prompts", "base_configuration", "configurations")

EXAMPLE_CONFIG = """\
# agent-tuner configuration
# API key: set AGENT_TUNER_API_KEY or OPENAI_API_KEY in environment
# For local models (SGLang, vLLM, Ollama) set base_url, no API key needed.

# Required
dataset: dataset.jsonl
prompts: prompts.yaml
base_configuration: rating_v1
configurations:
  rating_v1:
    model: gpt-4o-mini
    temperature: 0.7
    max_tokens: 200
    prompt_id: rating_v1
    output_type: structured
    output_schema:
      type: object
      properties:
        score:
          type: number
      required: [score]

# Comparison: numeric | exact | llm | auto
comparison: numeric
# field: score

# Local model endpoint (uncomment for local inference)
# base_url: http://localhost:8000/v1

# Grid search axes (an empty axis keeps the base value)
grid:
  models: [gpt-4o-mini, gpt-4o]
  temperatures: [0.1, 0.5, 0.9]
  # prompt_ids: [rating_v1]
  # max_tokens: [200, 400]
  # max_cost: 5.0
  # max_concurrent_tests: 3

# Profile for `optimize`: fast | balanced | thorough | advanced
#   fast     - 3 iterations, research disabled
#   balanced - 5 iterations, target 0.9 (default)
#   thorough - 10 iterations, target 0.95, strict convergence
#   advanced - no presets, you control every parameter
profile: balanced

# Optional overrides (any value below overrides the profile default)
# max_iterations: 5
# target_score: 0.9
# enable_research: true
# score_scale: 10
# runs_dir: runs
"""

EXAMPLE_DATASET = [
    {"input": {"text": "This product is amazing, I love it!"}, "expected_output": {"score": 9}},
    {"input": {"text": "Terrible experience, would not recommend."}, "expected_output": {"score": 1}},
    {"input": {"text": "It works fine, nothing special."}, "expected_output": {"score": 5}},
]

EXAMPLE_PROMPTS = {
    "rating_v1": (
        "Rate how positive the following review is on a scale from 0 to 10.\n\n"
        "Review: {input}\n\n"
        'Reply with JSON: {"score": <number>}'
    ),
}

_OPTIMIZATION_KEYS = (
    "target_score",
    "max_iterations",
    "convergence_threshold",
    "min_improvement",
    "enable_research",
    "max_insights",
)

_EVALUATION_KEYS = (
    "strategy",
    "combine_strategies",
    "aggregation",
    "weights",
    "verbosity",
    "score_scale",
)


def main() -> None:
    """agent-tuner CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="agent-tuner",
        description="agent-tuner - grid search and iterative optimization of LLM agent configurations",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init", help="Create example project files")

    grid_parser = subparsers.add_parser("grid", help="Test every configuration combination")
    _add_common_arguments(grid_parser)
    grid_parser.add_argument("--models", type=str, help="Comma-separated models to vary")
    grid_parser.add_argument("--temperatures", type=str, help="Comma-separated temperatures to vary")
    grid_parser.add_argument("--prompt-ids", type=str, help="Comma-separated prompt ids to vary")
    grid_parser.add_argument("--max-tokens", type=str, help="Comma-separated max_tokens values to vary")
    grid_parser.add_argument("--max-cost", type=float, help="Abort when estimated cost exceeds this")
    grid_parser.add_argument("--estimate-only", action="store_true", help="Only print the cost estimate")
    grid_parser.add_argument("--concurrency", type=int, help="Configurations tested in parallel")

    optimize_parser = subparsers.add_parser("optimize", help="Iteratively improve a configuration")
    _add_common_arguments(optimize_parser)
    optimize_parser.add_argument(
        "--profile",
        type=str,
        choices=sorted(SUPPORTED_PROFILES),
        help="Optimization profile: fast|balanced|thorough|advanced",
    )
    optimize_parser.add_argument("--target-score", type=float, help="Stop once this score is reached")
    optimize_parser.add_argument("--max-iterations", type=int, help="Maximum number of iterations")
    optimize_parser.add_argument("--strategy", type=str, help="Evaluation strategy name")
    optimize_parser.add_argument("--no-research", action="store_true", help="Disable research insights")
    optimize_parser.add_argument("--resume", type=str, help="Resume from a previous run directory")
    optimize_parser.add_argument("--verbose", action="store_true", help="Log recommendations every iteration")

    args = parser.parse_args()

    if args.command == "init":
        cmd_init()
    elif args.command == "grid":
        _run_command(cmd_grid, args)
    elif args.command == "optimize":
        _run_command(cmd_optimize, args)
    else:
        parser.print_help()


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=str, default=AGENT_TUNER_YAML, help="Config file path")
    parser.add_argument("--dataset", type=str, help="Path to dataset JSONL file")
    parser.add_argument("--prompts", type=str, help="Path to prompts YAML file")
    parser.add_argument("--configuration", type=str, help="Key of the base configuration")
    parser.add_argument(
        "--comparison",
        type=str,
        choices=["numeric", "exact", "llm", "auto"],
        help="How outputs are compared with expected outputs",
    )
    parser.add_argument("--field", type=str, help="Output field to compare")
    parser.add_argument("--split", type=str, help="Dataset split filter")
    parser.add_argument("--limit", type=int, help="Maximum number of samples")
    parser.add_argument("--base-url", type=str, help="OpenAI-compatible API base URL")
    parser.add_argument("--api-key", type=str, help="API key (or set OPENAI_API_KEY)")
    parser.add_argument("--runs-dir", type=str, help="Directory for run results")


def _run_command(command: Any, args: argparse.Namespace) -> None:
    """Run a command, mapping tuner errors to exit status 1."""
    try:
        command(args)
    except TunerError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        sys.exit(130)


def cmd_init() -> None:
    """Create example agent-tuner project files."""
    cwd = Path.cwd()

    files = {
        AGENT_TUNER_YAML: EXAMPLE_CONFIG,
        "prompts.yaml": yaml.safe_dump(EXAMPLE_PROMPTS, allow_unicode=True, sort_keys=False),
        "dataset.jsonl": "\n".join(
            json.dumps(entry, ensure_ascii=False) for entry in EXAMPLE_DATASET
        ) + "\n",
    }

    for filename, content in files.items():
        filepath = cwd / filename
        if filepath.exists():
            logger.warning(f"Skipped (already exists): {filename}")
            continue
        filepath.write_text(content, encoding="utf-8")
        logger.success(f"Created: {filename}")

    print("\nProject initialized! Next steps:")
    print(f"  1. Edit {AGENT_TUNER_YAML}: set models and base_url (for local) or API key (for cloud)")
    print("  2. Edit prompts.yaml with your agent prompts")
    print("  3. Replace dataset.jsonl with your labeled samples")
    print("  4. Run: agent-tuner grid  or  agent-tuner optimize")


def cmd_grid(args: argparse.Namespace) -> None:
    """Run a grid search over the configured variations."""
    from .core import GridSearchEngine, ProgressTracker, ResultWriter
    from .models import (
        ConcurrencySettings,
        ConfigurationVariations,
        CostLimits,
        GridSearchParams,
    )
    from .pricing import CostEstimator, PricingTable

    effective = _load_effective_config(args)
    settings = _build_settings(effective)
    context = _build_context(effective, settings)

    grid = dict(effective.get("grid") or {})
    for key, value in {
        "models": _split_list(args.models),
        "temperatures": _split_list(args.temperatures, float),
        "prompt_ids": _split_list(args.prompt_ids),
        "max_tokens": _split_list(args.max_tokens, int),
        "max_cost": args.max_cost,
        "max_concurrent_tests": args.concurrency,
    }.items():
        if value is not None:
            grid[key] = value

    concurrency = ConcurrencySettings()
    if grid.get("max_concurrent_tests"):
        concurrency = ConcurrencySettings(
            max_concurrent_tests=grid["max_concurrent_tests"],
            batch_size=grid.get("batch_size", grid["max_concurrent_tests"]),
        )

    params = GridSearchParams(
        base_configuration_key=effective["base_configuration"],
        variations=ConfigurationVariations(
            models=grid.get("models") or [],
            temperatures=grid.get("temperatures") or [],
            prompt_ids=grid.get("prompt_ids") or [],
            max_tokens=grid.get("max_tokens") or [],
        ),
        dataset=context["dataset_filter"],
        concurrency=concurrency,
        cost_limits=CostLimits(
            estimate_only=args.estimate_only,
            max_estimated_cost=grid.get("max_cost"),
            cost_per_token=settings.default_cost_per_token,
        ),
        comparison=context["comparison"],
    )

    engine = GridSearchEngine(
        tester=context["tester"],
        configurations=context["configurations"],
        datasets=context["datasets"],
        cost_estimator=CostEstimator(PricingTable()),
    )
    writer = ResultWriter(runs_dir=settings.runs_dir)

    with ProgressTracker(desc="Grid search", unit="cfg") as tracker:
        result = asyncio.run(engine.run(params, on_progress=tracker))

    if result.estimate_only:
        print(f"Estimated cost: ${result.estimated_cost:.4f}")
        return

    run_id = _grid_run_id()
    writer.save_grid_result(result, run_id)
    writer.print_grid_result(result)


def cmd_optimize(args: argparse.Namespace) -> None:
    """Run iterative optimization of the base configuration."""
    from .core import (
        CheckpointStore,
        ConfigurationProposer,
        FlowOrchestrator,
        ProgressTracker,
        PromptRewriter,
        ResultWriter,
        TestOptions,
    )
    from .evaluation import ConfigurationEvaluator
    from .models import FlowConfig

    effective = _load_effective_config(args)
    settings = _build_settings(effective)
    context = _build_context(effective, settings)
    params = _build_optimization_params(effective)

    base = asyncio.run(context["configurations"].find_by_key(effective["base_configuration"]))
    if base is None:
        raise ConfigurationError(
            f"Base configuration '{effective['base_configuration']}' not found"
        )
    dataset = asyncio.run(context["datasets"].find_many(context["dataset_filter"]))
    if not dataset:
        raise ConfigurationError("No test data available for the dataset filters")

    evaluator = ConfigurationEvaluator(context["tester"])
    proposer = ConfigurationProposer(PromptRewriter(context["llm"], context["prompts"]))
    flow = FlowOrchestrator(evaluator, proposer=proposer)
    store = CheckpointStore(settings.runs_dir)
    writer = ResultWriter(runs_dir=settings.runs_dir)
    flow_config = FlowConfig(verbose=bool(effective.get("verbose")))
    options = TestOptions(comparison=context["comparison"])

    logger.info(
        f"Starting optimization of '{effective['base_configuration']}' "
        f"({effective['profile']} profile, {len(dataset)} samples)"
    )

    with ProgressTracker(total=params.max_iterations, desc="Optimizing", unit="iter") as tracker:
        resume_from = effective.get("resume")
        if resume_from:
            state = store.load(resume_from)
            result = asyncio.run(flow.resume(
                state.to_dict(),
                dataset,
                flow_config=flow_config,
                checkpoint=store.save,
                on_progress=tracker,
                options=options,
            ))
        else:
            result = asyncio.run(flow.run(
                base,
                dataset,
                params=params,
                flow_config=flow_config,
                checkpoint=store.save,
                on_progress=tracker,
                options=options,
            ))

    writer.save_optimization_result(result)
    writer.print_optimization_result(result, analysis=flow.analyze_history(result))


def _load_effective_config(args: argparse.Namespace) -> Dict[str, Any]:
    """Load YAML, merge CLI overrides and validate required fields."""
    config_data = _load_yaml_config(args.config)
    try:
        effective = _merge_config(config_data, args)
        _validate_required_config(effective)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    return effective


def _build_settings(effective: Dict[str, Any]) -> "Settings":
    from .config import Settings

    overrides: Dict[str, Any] = {}
    for key in ("base_url", "model", "runs_dir", "judge_configuration_key"):
        if effective.get(key) is not None:
            overrides[key] = effective[key]
    settings = Settings(**overrides)

    api_key = effective.get("api_key") or settings.api_key
    if not api_key:
        if settings.base_url:
            api_key = "local"
            logger.info("Using local endpoint without API key.")
        else:
            raise ConfigurationError(
                "No API key. Set AGENT_TUNER_API_KEY / OPENAI_API_KEY or use --api-key."
            )
    settings.api_key = api_key
    Path(settings.runs_dir).mkdir(parents=True, exist_ok=True)
    return settings


def _build_context(effective: Dict[str, Any], settings: "Settings") -> Dict[str, Any]:
    """Wire the LLM client, repositories, runner, comparator and tester."""
    from .clients import LLMClient
    from .core import ConfigurationTester, OutputComparator
    from .execution import JUDGE_OUTPUT_SCHEMA, DEFAULT_JUDGE_PROMPT, LLMAgentRunner
    from .models import ComparisonConfig, Configuration, DatasetFilter
    from .repositories import (
        InMemoryConfigurationRepository,
        InMemoryPromptRepository,
        JsonlDatasetRepository,
    )

    prompts_data = _load_prompts(Path(effective["prompts"]))
    prompts_data.setdefault(JUDGE_PROMPT_ID, DEFAULT_JUDGE_PROMPT)
    prompts = InMemoryPromptRepository(prompts_data)

    configurations = InMemoryConfigurationRepository(
        _parse_configurations(effective["configurations"])
    )
    judge_key = settings.judge_configuration_key
    if asyncio.run(configurations.find_by_key(judge_key)) is None:
        asyncio.run(configurations.create(Configuration(
            key=judge_key,
            model=settings.model,
            temperature=0.0,
            prompt_id=JUDGE_PROMPT_ID,
            output_schema=JUDGE_OUTPUT_SCHEMA,
        )))

    llm = LLMClient(settings)
    runner = LLMAgentRunner(llm, configurations, prompts)
    comparator = OutputComparator(judge=runner, judge_configuration_key=judge_key)

    comparison: Optional[ComparisonConfig] = None
    if effective.get("comparison"):
        comparison = ComparisonConfig(method=effective["comparison"], field=effective.get("field"))

    dataset_filter = DatasetFilter(
        version=effective.get("version"),
        split=effective.get("split"),
        **({"limit": effective["limit"]} if effective.get("limit") else {}),
    )

    return {
        "llm": llm,
        "prompts": prompts,
        "configurations": configurations,
        "datasets": JsonlDatasetRepository(Path(effective["dataset"])),
        "tester": ConfigurationTester(runner, configurations, comparator),
        "comparison": comparison,
        "dataset_filter": dataset_filter,
    }


def _build_optimization_params(effective: Dict[str, Any]) -> "OptimizationParams":
    """Build OptimizationParams from the effective config dict."""
    from .models import EvaluationConfig, OptimizationParams

    overrides = {
        key: effective[key] for key in _OPTIMIZATION_KEYS if effective.get(key) is not None
    }
    evaluation = {
        key: effective[key] for key in _EVALUATION_KEYS if effective.get(key) is not None
    }
    try:
        if evaluation:
            overrides["evaluation"] = EvaluationConfig(**evaluation)
        return OptimizationParams.from_profile(effective.get("profile", DEFAULT_PROFILE), **overrides)
    except ValueError as e:
        raise ConfigurationError(f"Invalid optimization settings: {e}") from e


def _parse_configurations(data: Any) -> List["Configuration"]:
    """Parse the configurations mapping of the YAML file."""
    from .models import Configuration

    if not isinstance(data, dict):
        raise ConfigurationError("'configurations' must map keys to configuration fields")
    try:
        return [Configuration(key=key, **(fields or {})) for key, fields in data.items()]
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _load_prompts(prompts_path: Path) -> Dict[str, str]:
    """Load prompt templates keyed by prompt id from a YAML file."""
    if not prompts_path.exists():
        raise ConfigurationError(f"Prompts file not found: {prompts_path}")
    with open(prompts_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Prompts file must map prompt ids to templates: {prompts_path}")
    logger.info(f"Loaded {len(data)} prompts from {prompts_path}")
    return {str(key): str(value) for key, value in data.items()}


def _load_yaml_config(config_path: str) -> Dict[str, Any]:
    """Load YAML config file if it exists."""
    path = Path(config_path)
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def _merge_config(yaml_data: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Merge config using 3 layers: required + profile + overrides."""
    profile_from_env = os.environ.get("AGENT_TUNER_PROFILE")
    result = dict(yaml_data)
    cli_overrides = {
        "dataset": args.dataset,
        "prompts": args.prompts,
        "base_configuration": args.configuration,
        "comparison": args.comparison,
        "field": args.field,
        "split": args.split,
        "limit": args.limit,
        "base_url": args.base_url,
        "api_key": args.api_key,
        "runs_dir": args.runs_dir,
        "profile": getattr(args, "profile", None),
        "target_score": getattr(args, "target_score", None),
        "max_iterations": getattr(args, "max_iterations", None),
        "strategy": getattr(args, "strategy", None),
        "resume": getattr(args, "resume", None),
    }
    if getattr(args, "no_research", False):
        cli_overrides["enable_research"] = False
    if getattr(args, "verbose", False):
        cli_overrides["verbose"] = True
    for key, value in cli_overrides.items():
        if value is not None:
            result[key] = value

    profile = (result.get("profile") or profile_from_env or DEFAULT_PROFILE).strip().lower()
    if profile not in SUPPORTED_PROFILES:
        raise ValueError(
            f"Unsupported profile '{profile}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_PROFILES))}"
        )

    # Layer 1: profile defaults
    effective = dict(PROFILE_PRESETS[profile]) if profile != "advanced" else {}
    # Layer 2/3: user overrides from YAML + CLI
    effective.update(result)
    effective["profile"] = profile
    return effective


def _validate_required_config(config: Dict[str, Any]) -> None:
    """Validate required user-facing config fields."""
    missing = [field for field in REQUIRED_CONFIG_FIELDS if not config.get(field)]
    if missing:
        raise ValueError(
            f"Missing required config fields: {', '.join(missing)}. "
            f"Set them in {AGENT_TUNER_YAML} or pass via CLI."
        )


def _split_list(value: Optional[str], cast: Any = str) -> Optional[List[Any]]:
    if value is None:
        return None
    return [cast(item.strip()) for item in value.split(",") if item.strip()]


def _grid_run_id() -> str:
    return f"grid_run_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
